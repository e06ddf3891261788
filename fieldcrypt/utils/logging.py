"""Logging configuration."""

import logging
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

from fieldcrypt.config import EncryptionSettings, get_settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def build_formatter(settings: EncryptionSettings) -> logging.Formatter:
    """Return the formatter for the configured log format."""
    if settings.log_format == "json":
        return jsonlogger.JsonFormatter(
            fmt=JSON_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
            static_fields={
                "service": settings.service_name,
                "environment": settings.environment,
            },
        )
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(settings: Optional[EncryptionSettings] = None) -> logging.Handler:
    """Setup logging configuration."""
    settings = settings or get_settings()

    # Clear existing handlers
    logging.root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(settings))

    logging.root.setLevel(settings.log_level)
    logging.root.addHandler(handler)

    logging.getLogger("fieldcrypt").setLevel(settings.log_level)

    # Reduce noise from external libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return handler
