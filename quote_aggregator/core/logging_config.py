"""
Logging configuration for the Quote Aggregator service.
Supports both JSON and text logging formats.
"""

import logging
import logging.config
import sys
from typing import Dict, Any, Optional
from pythonjsonlogger import jsonlogger

from .config import settings, Settings


def setup_logging(config: Optional[Settings] = None) -> None:
    """Setup structured logging for the application."""
    config = config or settings

    if config.log_format == "json":
        logging_config = get_json_logging_config(config.log_level)
    else:
        logging_config = get_text_logging_config(config.log_level)

    logging.config.dictConfig(logging_config)

    # Set log level for the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.log_level))

    # Reduce noise from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("yfinance").setLevel(logging.WARNING)


def get_json_logging_config(log_level: str) -> Dict[str, Any]:
    """Get JSON logging configuration."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s %(module)s %(funcName)s %(lineno)d",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json",
                "stream": sys.stdout
            }
        },
        "loggers": {
            "": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False
            },
            "quote_aggregator": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False
            }
        }
    }


def get_text_logging_config(log_level: str) -> Dict[str, Any]:
    """Get text logging configuration."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s (%(filename)s:%(lineno)d)",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "detailed": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s [in %(pathname)s:%(lineno)d]",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard" if log_level == "INFO" else "detailed",
                "stream": sys.stdout
            }
        },
        "loggers": {
            "": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False
            },
            "quote_aggregator": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False
            }
        }
    }


def create_logger(module_name: str) -> logging.Logger:
    """Create a logger for a specific module."""
    if module_name.startswith("quote_aggregator"):
        return logging.getLogger(module_name)
    return logging.getLogger(f"quote_aggregator.{module_name}")
