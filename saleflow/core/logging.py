# saleflow/core/logging.py

import os
import sys
from logging.config import dictConfig

from saleflow.core.config import APP_ENV

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if APP_ENV == "development" else "INFO").upper()

# chatty third-party loggers; APScheduler reports every job run at INFO
QUIET_LOGGERS = ("apscheduler", "httpx", "httpcore", "sqlalchemy.engine")


def setup_logging():
    loggers = {
        # request_logging_middleware
        "access": {
            "handlers": ["access_console"],
            "level": "INFO",
            "propagate": False,
        },
        "saleflow": {
            "level": LOG_LEVEL,
        },
    }
    loggers.update({name: {"level": "WARNING"} for name in QUIET_LOGGERS})

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                },
                "access": {
                    "format": (
                        "%(asctime)s | ACCESS | %(client_addr)s | %(shop)s | "
                        "%(method)s | %(path)s | %(status_code)s | %(process_time_ms)sms"
                    ),
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "default",
                },
                "access_console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "access",
                },
            },
            "loggers": loggers,
            "root": {
                "level": LOG_LEVEL,
                "handlers": ["console"],
            },
        }
    )
