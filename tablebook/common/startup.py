"""Redacted configuration snapshot logged once at process start."""

from tablebook.common.logging import logger

SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN", "DSN")


def _display(name: str, value) -> str:
    if value is None or value == "":
        return "<unset>"
    if any(marker in name.upper() for marker in SECRET_MARKERS):
        return "<redacted>"
    return str(value)


def log_startup_config(settings, fields: list[str]) -> None:
    """Log the effective value of selected settings fields, secrets redacted."""

    config = {"service": settings.service_name}
    for field in fields:
        config[field] = _display(field, getattr(settings, field, None))
    logger.info("startup_config=%s", config)
