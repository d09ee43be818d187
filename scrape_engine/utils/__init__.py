"""Shared utilities."""
from .logger import logger, setup_logger
from .periodic import PeriodicTask
from .dates import parse_date

__all__ = ["logger", "setup_logger", "PeriodicTask", "parse_date"]
