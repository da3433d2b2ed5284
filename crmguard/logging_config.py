import json
import logging
import sys
from datetime import datetime, timezone


LOGGER_NAME = "crmguard"

# Extra fields surfaced by the JSON formatter when present on a record
EXTRA_FIELDS = ("event_type", "identifier", "user_hash", "remaining", "removed")


class JSONFormatter(logging.Formatter):
    """Format records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                entry[key] = val
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "text") -> logging.Logger:
    """Attach a stdout handler to the crmguard logger. Safe to call twice."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Prevent creation of handlers more than once
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(name)s "
            "%(message)s  (in %(filename)s:%(lineno)d)"
        ))
    logger.addHandler(handler)
    return logger
