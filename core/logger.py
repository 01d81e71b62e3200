"""
Service logger setup

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("lead_billing_service", level="INFO")
"""

import logging
import sys
from typing import Optional

from .config import LoggingConfig

_configured = False


def setup_service_logger(
    service_name: str,
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Configure root logging once per process and return the service logger.

    Args:
        service_name: Logger name, usually the service package name
        level: Overrides LOG_LEVEL
        log_format: Overrides LOG_FORMAT
    """
    global _configured

    config = LoggingConfig.from_env()
    level_name = (level or config.log_level).upper()
    formatter = logging.Formatter(log_format or config.log_format)

    root = logging.getLogger()
    if not _configured:
        if config.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)
        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        _configured = True

    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Third-party noise
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    return logging.getLogger(service_name)


__all__ = ["setup_service_logger"]
