from .config import settings, get_settings
from .exceptions import (
    AssistlyError,
    ValidationFailed,
    DanglingReferenceError,
    ApiError,
    UploadTooLarge,
    ChannelError
)
from .notices import NoticeBoard, Notice, NoticeLevel

__all__ = [
    "settings", "get_settings",
    "AssistlyError", "ValidationFailed", "DanglingReferenceError",
    "ApiError", "UploadTooLarge", "ChannelError",
    "NoticeBoard", "Notice", "NoticeLevel"
]
