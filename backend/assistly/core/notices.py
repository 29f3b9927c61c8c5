"""
Notice Board

Transient, user-visible notices raised by the authoring controllers
(the "toasts" an operator sees): successes, duplicate attach attempts,
dangling references, partial saves and remote rejections.
"""
import logging
from typing import Dict, Any, List, Optional
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    """Severity of a notice"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.SUCCESS: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.ERROR,
}


@dataclass
class Notice:
    """A single notice shown to the operator"""
    level: NoticeLevel
    message: str
    code: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "code": self.code,
            "timestamp": self.timestamp.isoformat(),
        }


class NoticeBoard:
    """
    Collects notices for the current edit session.

    Every notice is also logged, so headless callers (API, tests) see
    the same trail a human would see as toasts.
    """

    def __init__(self, max_notices: int = 100):
        self.notices: List[Notice] = []
        self.max_notices = max_notices

    def push(self, level: NoticeLevel, message: str, code: Optional[str] = None) -> Notice:
        notice = Notice(level=level, message=message, code=code)
        self.notices.append(notice)
        if len(self.notices) > self.max_notices:
            self.notices = self.notices[-self.max_notices:]
        logger.log(_LOG_LEVELS[level], f"[notice:{level.value}] {message}")
        return notice

    def info(self, message: str, code: Optional[str] = None) -> Notice:
        return self.push(NoticeLevel.INFO, message, code)

    def success(self, message: str, code: Optional[str] = None) -> Notice:
        return self.push(NoticeLevel.SUCCESS, message, code)

    def warning(self, message: str, code: Optional[str] = None) -> Notice:
        return self.push(NoticeLevel.WARNING, message, code)

    def error(self, message: str, code: Optional[str] = None) -> Notice:
        return self.push(NoticeLevel.ERROR, message, code)

    def latest(self) -> Optional[Notice]:
        return self.notices[-1] if self.notices else None

    def drain(self) -> List[Notice]:
        """Return and clear all pending notices"""
        drained, self.notices = self.notices, []
        return drained

    def has(self, level: NoticeLevel) -> bool:
        return any(n.level == level for n in self.notices)
