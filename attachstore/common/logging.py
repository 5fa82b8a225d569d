import json
import logging
from logging.config import dictConfig
from typing import Callable

WARNINGS_LOGGER = "attachstore.warnings"

# Record attributes set through ``extra=`` by storage calls.
CONTEXT_FIELDS = ("key", "bucket", "md5", "attempt")

# Side channel for non-fatal anomalies (retries, caller digest mismatches).
WarningSink = Callable[[str], None]


def emit_warning(message: str) -> None:
    logging.getLogger(WARNINGS_LOGGER).warning(message)


def setup_logging(level: str = "INFO", *, json_output: bool = True) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": JsonFormatter,
                },
                "plain": {
                    "format": "%(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_output else "plain",
                },
            },
            "loggers": {
                "attachstore": {
                    "level": level,
                    "handlers": ["console"],
                    "propagate": False,
                },
            },
        }
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)
