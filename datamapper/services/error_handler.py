"""Error reporting for the mapping session."""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from datamapper.services.notifications import NotificationChannel

logger = logging.getLogger(__name__)


class ErrorLevel(str, Enum):
    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"


@dataclass
class ErrorInfo:
    """One reported problem."""

    level: ErrorLevel
    message: str
    error: Optional[BaseException] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now()


class ErrorHandler:
    """Collects reported errors and publishes them on error_reported."""

    def __init__(self):
        self.errors: List[ErrorInfo] = []
        self.error_reported = NotificationChannel("error_reported")
        self._lock = threading.Lock()

    def error(self, message: str, error: Optional[BaseException] = None) -> ErrorInfo:
        return self._add(ErrorLevel.ERROR, message, error)

    def warn(self, message: str, error: Optional[BaseException] = None) -> ErrorInfo:
        return self._add(ErrorLevel.WARN, message, error)

    def info(self, message: str) -> ErrorInfo:
        return self._add(ErrorLevel.INFO, message, None)

    def _add(self, level: ErrorLevel, message: str, error: Optional[BaseException]) -> ErrorInfo:
        info = ErrorInfo(level=level, message=message, error=error)
        with self._lock:
            self.errors.append(info)

        if level == ErrorLevel.ERROR:
            logger.error(message)
        elif level == ErrorLevel.WARN:
            logger.warning(message)
        else:
            logger.info(message)

        self.error_reported.publish(info)
        return info

    def get_errors(self, level: Optional[ErrorLevel] = None) -> List[ErrorInfo]:
        with self._lock:
            if level is None:
                return list(self.errors)
            return [e for e in self.errors if e.level == level]

    def clear(self) -> None:
        with self._lock:
            self.errors = []
