"""Console logging setup shared by the CLI and library callers"""

import logging
import logging.config


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured_level: str | None = None


def build_logging_config(level: str = "INFO") -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "one2mp": {"handlers": ["console"], "level": level, "propagate": False},
        },
    }


def setup_logging(level: str = "INFO") -> None:
    """Install the console handler for the one2mp logger tree; repeated calls with the same level are no-ops."""
    global _configured_level
    level = level.upper()
    if _configured_level == level:
        return
    logging.config.dictConfig(build_logging_config(level))
    _configured_level = level
