"""Database bootstrap helpers for the Booking Store."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


def make_engine(dsn: str, **kwargs) -> Engine:
    """Build the process engine; callers own its disposal."""

    return create_engine(dsn, pool_pre_ping=True, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    # `expire_on_commit=False` keeps ORM objects readable after commit in handlers.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass


def dialect_insert(db, model):
    """Return an `INSERT` construct supporting `ON CONFLICT` for the session's dialect."""

    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"unsupported dialect for upserts: {dialect}")
    return insert(model)
