"""Structured JSON logging with request, event and booking context."""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from tablebook.common.config import settings

trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
event_id_ctx: ContextVar[str] = ContextVar("event_id", default="")
booking_ref_ctx: ContextVar[str] = ContextVar("booking_ref", default="")

_CONTEXT_VARS = {"trace_id": trace_id_ctx, "event_id": event_id_ctx, "booking_ref": booking_ref_ctx}


class ContextFilter(logging.Filter):
    """Stamp service name and correlation ids onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        for name, var in _CONTEXT_VARS.items():
            setattr(record, name, var.get())
        return True


@contextmanager
def log_context(**values: str | None):
    """Bind correlation ids (`trace_id`, `event_id`, `booking_ref`) for the enclosed block."""

    tokens = [(_CONTEXT_VARS[name], _CONTEXT_VARS[name].set(value or "")) for name, value in values.items()]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def configure_logging() -> None:
    """Install the JSON stdout handler on the root logger; call once per process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(event_id)s %(booking_ref)s %(message)s"
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    # Uvicorn's access log would duplicate the metrics middleware.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger("tablebook")
