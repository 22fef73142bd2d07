from __future__ import annotations

import json
import logging
import logging.config
import os

_CURRENT_SOURCE_NAME = "-"
_CURRENT_RECORDING_ID: str | None = None
_STANDARD_LOGRECORD_ATTRS = {
    "name",
    "msg",
    "message",
    "asctime",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


class _SourceNameFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "source_name") or getattr(record, "source_name") in (None, ""):
            record.source_name = _CURRENT_SOURCE_NAME
        return True


class _RecordingIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "recording_id") or getattr(record, "recording_id") in (None, ""):
            record.recording_id = _CURRENT_RECORDING_ID
        return True


class _JsonExtraFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _extract_extras(record)
        if not extras:
            return base
        extras_json = json.dumps(extras, indent=2, default=str, sort_keys=True)
        return f"{base}\n{extras_json}"


def _extract_extras(record: logging.LogRecord) -> dict[str, object]:
    extras: dict[str, object] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOGRECORD_ATTRS:
            continue
        if key in {"source_name", "recording_id"}:
            continue
        extras[key] = value
    return extras


def set_source_name(name: str | None) -> None:
    """Set the `source_name` value injected into log records."""
    global _CURRENT_SOURCE_NAME
    _CURRENT_SOURCE_NAME = name or "-"


def set_recording_id(recording_id: str | None) -> None:
    """Set the `recording_id` value injected into log records."""
    global _CURRENT_RECORDING_ID
    _CURRENT_RECORDING_ID = recording_id or None


def _install_filters() -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        if not any(isinstance(f, _SourceNameFilter) for f in handler.filters):
            handler.addFilter(_SourceNameFilter())
        if not any(isinstance(f, _RecordingIdFilter) for f in handler.filters):
            handler.addFilter(_RecordingIdFilter())


def configure_logging(
    *, log_level: str = "INFO", source_name: str | None = None, quiet: bool = False
) -> None:
    """Configure root logging with a consistent format.

    Format includes `source_name` plus `module:lineno`. With `quiet`, only
    warnings and errors reach the console.
    """
    console_level_name = str(log_level).upper()
    if quiet and logging.getLevelName(console_level_name) in (logging.DEBUG, logging.INFO):
        console_level_name = "WARNING"
    default_console_fmt = (
        "%(asctime)s %(levelname)s [%(source_name)s] "
        "%(module)s %(pathname)s:%(lineno)d %(message)s"
    )
    console_fmt = os.getenv("CONSOLE_LOG_FORMAT", default_console_fmt)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "()": "bombuscv.logging_setup._JsonExtraFormatter",
                    "format": console_fmt,
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": console_level_name,
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {"level": "DEBUG", "handlers": ["console"]},
        }
    )

    _install_filters()
    set_source_name(source_name)
    logging.captureWarnings(True)
