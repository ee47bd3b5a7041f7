"""Process-wide logging setup.

Modules log through ``logging.getLogger(__name__)``; this only decides the
output format. JSON lines (python-json-logger) are meant for log shippers,
plain text for local development.
"""

import logging
import sys
from datetime import datetime, timezone

from pythonjsonlogger import jsonlogger

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class RoutingJsonFormatter(jsonlogger.JsonFormatter):
    """Adds an ISO timestamp and the level name to every record."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault(
            "timestamp", datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        )
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(RoutingJsonFormatter("%(message)s"))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    # Quiet chatty libraries
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
