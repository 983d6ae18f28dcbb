"""
Logging setup.

Installs one stream handler on the root logger with a key=value formatter
that appends any ``extra=`` fields passed to a log call, so structured
context (order numbers, scopes, correlation ids) ends up on the same line.
"""

import logging
import sys

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class KeyValueFormatter(logging.Formatter):
    """Formats records as ``<time> <level> <logger> <message> key=value ...``."""

    def __init__(self):
        super().__init__(fmt="%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not extras:
            return base
        fields = " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        return f"{base} {fields}"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging once.

    Calling it again only updates the level.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(getattr(h, "_order_ledger_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(KeyValueFormatter())
    handler._order_ledger_handler = True
    root.addHandler(handler)

    # SQL echo is controlled by settings.db_echo, keep the engine logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
