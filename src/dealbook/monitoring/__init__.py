"""Monitoring package."""

from dealbook.monitoring.events import EventLog
from dealbook.monitoring.logger import setup_logging

__all__ = [
    "EventLog",
    "setup_logging",
]
