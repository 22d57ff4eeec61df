from __future__ import annotations

import logging
import logging.config

_configured = False


def configure_logging(level: str = "INFO") -> None:
    global _configured
    level = (level or "INFO").upper()

    if _configured:
        logging.getLogger().setLevel(level)
        return

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"handlers": ["console"], "level": level},
            "loggers": {
                # SQL echo is noisy at INFO
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
    _configured = True
