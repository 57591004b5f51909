"""Core utilities: logging, exceptions, background tasks."""

from whalewatch.core.exceptions import WhalewatchError
from whalewatch.core.logging import get_logger, setup_logging
from whalewatch.core.tasks import TaskSupervisor

__all__ = [
    "TaskSupervisor",
    "WhalewatchError",
    "get_logger",
    "setup_logging",
]
