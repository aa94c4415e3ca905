"""
Centralized logging configuration for the inventory and products services.
"""
import logging
import sys
from typing import Optional


def setup_logging(
    level: str = "INFO",
    service_name: Optional[str] = None,
    log_format: Optional[str] = None
) -> None:
    """
    Configure process-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Prefixed to every line so both services can share a log sink
        log_format: Custom log format string (optional)
    """
    if log_format is None:
        prefix = f"[{service_name}] " if service_name else ""
        log_format = prefix + '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True
    )

    # Set specific log levels for noisy libraries
    logging.getLogger('aiokafka').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
    logging.getLogger('apscheduler').setLevel(logging.WARNING)
