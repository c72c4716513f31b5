"""Structured operation logging on top of the standard logging module.

Handlers log through an OperationLogger bound to the request context:

    log = OperationLogger(logger).bind(handler="pet", method="Create")
    log.info("pet rendered", id=3)
    # -> "pet rendered handler=pet method=Create id=3"

The key/value pairs are also attached to the record as ``record.fields``
so tests and structured handlers can read them without parsing.
"""

import logging
import os
from typing import Any

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Keyword arguments understood by Logger._log itself
_LOGGING_KWARGS = ("exc_info", "stack_info", "stacklevel", "extra")


class OperationLogger(logging.LoggerAdapter):
    """LoggerAdapter that renders bound and per-call key/value fields."""

    def __init__(self, logger: logging.Logger, fields: dict[str, Any] | None = None):
        super().__init__(logger, dict(fields or {}))

    def bind(self, **fields: Any) -> "OperationLogger":
        """Return a logger carrying these fields in addition to the current ones."""
        return OperationLogger(self.logger, {**self.extra, **fields})

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        fields = dict(self.extra)
        for key in list(kwargs):
            if key not in _LOGGING_KWARGS:
                fields[key] = kwargs.pop(key)

        if fields:
            rendered = " ".join(f"{key}={value}" for key, value in fields.items())
            msg = f"{msg} {rendered}"

        extra = dict(kwargs.get("extra") or {})
        extra["fields"] = fields
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str, **fields: Any) -> OperationLogger:
    return OperationLogger(logging.getLogger(name), fields)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the server process.

    The level comes from the argument, then CRUDFORGE_LOG_LEVEL, then INFO.
    """
    level_name = (level or os.environ.get("CRUDFORGE_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=DEFAULT_FORMAT)
