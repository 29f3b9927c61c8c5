"""
Chat channel message models
"""
from enum import Enum
from typing import Optional, Any, Dict
from datetime import datetime
from dataclasses import dataclass, field
from pydantic import BaseModel, Field


class MessageKind(str, Enum):
    """Message kinds exchanged over the persistent chat channel"""
    # client -> server
    USER = "user"
    FILE_UPLOAD = "file_upload"

    # server -> client
    BOT = "bot"
    REVIEW_PROMPT = "review_prompt"
    WARN = "warn"
    ERROR = "error"

    # local transcript only
    USER_FILE = "user_file"


# Kinds that complete a bot turn and clear the typing indicator
BOT_REPLY_KINDS = frozenset({MessageKind.BOT.value, MessageKind.REVIEW_PROMPT.value})


class ChatMessage(BaseModel):
    """
    One transcript entry.

    `type` stays a plain string so unknown server kinds are kept and
    displayed instead of being rejected.
    """

    model_config = {"extra": "allow", "populate_by_name": True}

    type: str
    content: str = ""
    step: Optional[str] = None
    review_url: Optional[str] = Field(default=None, alias="reviewUrl")
    file_id: Optional[str] = Field(default=None, alias="fileId")
    filename: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    download_url: Optional[str] = Field(default=None, alias="downloadUrl")

    @property
    def is_bot_reply(self) -> bool:
        return self.type in BOT_REPLY_KINDS

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def user_message(content: str) -> ChatMessage:
    return ChatMessage(type=MessageKind.USER.value, content=content)


def warn_message(content: str) -> ChatMessage:
    return ChatMessage(type=MessageKind.WARN.value, content=content)


def error_message(content: str) -> ChatMessage:
    return ChatMessage(type=MessageKind.ERROR.value, content=content)


@dataclass
class FileUpload:
    """A file picked locally, ready to be sent to an upload endpoint"""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"
    picked_at: datetime = field(default_factory=datetime.now)

    @property
    def size(self) -> int:
        return len(self.content)


class UploadedFile(BaseModel):
    """Upload endpoint response"""

    model_config = {"extra": "allow", "populate_by_name": True}

    file_id: str = Field(alias="fileId")
    filename: str
    content_type: str = Field(default="application/octet-stream", alias="contentType")
