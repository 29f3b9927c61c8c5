"""
Widget Runtime

State machine behind the embeddable visitor chat:

    CLOSED -> OPENING -> CONNECTED -> DISCONNECTED
       ^________|____________|____________|

Each open is a fresh session. Protocol and upload failures end up in the
transcript; nothing here raises at the embedding page.
"""
import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
from dataclasses import dataclass
from pydantic import ValidationError

from ..core.config import settings
from ..core.exceptions import ApiError, ChannelError, UploadTooLarge
from ..models.chat import (
    ChatMessage, FileUpload, MessageKind,
    user_message, warn_message, error_message
)
from ..services.country import CountryDetector
from ..services.uploads import UploadService
from .channel import ChatChannel, WebSocketChannel, build_channel_url
from .host import HostNotifier, NullHostNotifier

logger = logging.getLogger(__name__)

MALFORMED_MESSAGE = "Malformed message from server"
CONNECT_FAILED = "Unable to connect to chat. Please try again later."
SEND_FAILED = "Your message could not be sent."
CHANNEL_FAILED = "Connection to chat was lost."

LEFT_BUTTON = 0


class WidgetState(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


PLACEHOLDERS = {
    WidgetState.CLOSED: "",
    WidgetState.OPENING: "Connecting...",
    WidgetState.CONNECTED: "Type your message...",
    WidgetState.DISCONNECTED: "Chat ended",
}


@dataclass
class Bounds:
    """Widget bounding box in page coordinates"""
    left: float
    top: float
    width: float
    height: float

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.left + self.width and self.top <= y <= self.top + self.height


class WidgetRuntime:
    """
    One embedded chat widget.

    Args:
        app_id: Tenant the visitor is chatting with
        uploads: File upload side channel
        country: Country code sent with the connection; detected on open when omitted
        host: Host frame notifier (no-op when standalone)
        channel_factory: Builds a channel for a connection URL
        country_detector: Resolves the visitor country from timezone and locale
    """

    def __init__(
        self,
        app_id: str,
        uploads: UploadService,
        country: Optional[str] = None,
        host: Optional[HostNotifier] = None,
        channel_factory: Optional[Callable[[str], ChatChannel]] = None,
        ws_url: Optional[str] = None,
        open_height: Optional[int] = None,
        closed_height: Optional[int] = None,
        max_upload_bytes: Optional[int] = None,
        country_detector: Optional[CountryDetector] = None,
        timezone: Optional[str] = None,
        locale: Optional[str] = None
    ):
        self.app_id = app_id
        self.uploads = uploads
        self.country = country
        self.country_detector = country_detector
        self.timezone = timezone
        self.locale = locale
        self.detected_country: Optional[str] = None
        self.host = host or NullHostNotifier()
        self.channel_factory = channel_factory or WebSocketChannel
        self.ws_url = ws_url
        self.open_height = open_height or settings.WIDGET_OPEN_HEIGHT
        self.closed_height = closed_height or settings.WIDGET_CLOSED_HEIGHT
        self.max_upload_bytes = max_upload_bytes or settings.MAX_UPLOAD_BYTES

        self.state = WidgetState.CLOSED
        self.messages: List[ChatMessage] = []
        self.is_typing = False
        self.is_uploading = False
        self.input_text = ""
        self.selected_file: Optional[FileUpload] = None

        self._channel: Optional[ChatChannel] = None
        self._listener: Optional[asyncio.Task] = None
        # Bumped on every open and close; in-flight work from an older session is dropped
        self._session = 0

    # ==================== VIEW STATE ====================

    @property
    def is_open(self) -> bool:
        return self.state != WidgetState.CLOSED

    @property
    def placeholder(self) -> str:
        return PLACEHOLDERS[self.state]

    @property
    def input_enabled(self) -> bool:
        return self.state == WidgetState.CONNECTED

    @property
    def channel_url(self) -> str:
        country = self.country or self.detected_country or settings.DEFAULT_COUNTRY_CODE
        return build_channel_url(self.app_id, country, self.ws_url)

    # ==================== LIFECYCLE ====================

    async def open(self) -> None:
        """Launcher click: start a fresh session"""
        if self.state != WidgetState.CLOSED:
            return

        self._session += 1
        session = self._session
        self.messages = []
        self.is_typing = False
        self.input_text = ""
        self.selected_file = None
        self.state = WidgetState.OPENING
        self.host.notify_resize(self.open_height)
        self.host.notify_state(True)

        if self.country is None and self.country_detector is not None:
            detected = await self.country_detector.detect(self.timezone, self.locale)
            if self._session != session or self.state != WidgetState.OPENING:
                return
            self.detected_country = detected.country_code

        channel = self.channel_factory(self.channel_url)
        self._channel = channel
        try:
            await channel.connect()
        except ChannelError as e:
            logger.error(f"Widget for app {self.app_id} could not connect: {e}")
            if self._channel is channel:
                self._channel = None
                self.state = WidgetState.DISCONNECTED
                self.messages.append(error_message(CONNECT_FAILED))
            return

        if self._channel is not channel or self.state != WidgetState.OPENING:
            # Closed while the handshake was in flight
            await channel.close()
            return

        self.state = WidgetState.CONNECTED
        self._listener = asyncio.create_task(self._listen(channel))
        logger.info(f"Widget session opened for app {self.app_id}")

    async def close(self) -> None:
        """Close button, outside click or teardown"""
        if self.state == WidgetState.CLOSED:
            return

        self._session += 1
        listener, self._listener = self._listener, None
        channel, self._channel = self._channel, None
        self.state = WidgetState.CLOSED
        self.is_typing = False
        self.is_uploading = False
        self.selected_file = None

        if listener is not None and not listener.done():
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass
        if channel is not None:
            try:
                await channel.close()
            except ChannelError as e:
                logger.warning(f"Error closing chat channel: {e}")

        self.host.notify_resize(self.closed_height)
        self.host.notify_state(False)
        logger.info(f"Widget session closed for app {self.app_id}")

    async def handle_pointer_down(self, x: float, y: float, bounds: Bounds, button: int = LEFT_BUTTON) -> bool:
        """Close on a left click outside the widget; returns True when it closed"""
        if not self.is_open or button != LEFT_BUTTON:
            return False
        if bounds.contains(x, y):
            return False
        await self.close()
        return True

    async def unmount(self) -> None:
        await self.close()

    async def _listen(self, channel: ChatChannel) -> None:
        failed = False
        try:
            async for raw in channel.frames():
                self.handle_incoming(raw)
        except ChannelError as e:
            logger.warning(f"Chat channel failed: {e}")
            failed = True

        if self._channel is channel and self.state == WidgetState.CONNECTED:
            if failed:
                self.messages.append(error_message(CHANNEL_FAILED))
            self._on_remote_close()

    def _on_remote_close(self) -> None:
        self._channel = None
        self._listener = None
        self.state = WidgetState.DISCONNECTED
        self.is_typing = False
        logger.info(f"Chat ended by remote for app {self.app_id}")

    # ==================== MESSAGES ====================

    def handle_incoming(self, raw: Union[str, bytes, Dict[str, Any]]) -> Optional[ChatMessage]:
        """Append one server frame to the transcript"""
        try:
            data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            message = ChatMessage.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Malformed chat frame: {e}")
            self.messages.append(warn_message(MALFORMED_MESSAGE))
            return None

        self.messages.append(message)
        if message.is_bot_reply:
            self.is_typing = False
        return message

    async def send_text(self, text: Optional[str] = None) -> bool:
        """
        Send a visitor message. A no-op unless connected with non-empty text.
        The local echo is appended before the channel write.
        """
        content = (self.input_text if text is None else text).strip()
        if self.state != WidgetState.CONNECTED or not content or self._channel is None:
            return False

        self.messages.append(user_message(content))
        self.is_typing = True
        if text is None:
            self.input_text = ""

        try:
            await self._channel.send({"type": MessageKind.USER.value, "content": content})
        except ChannelError as e:
            logger.error(f"Failed to send chat message: {e}")
            self.is_typing = False
            self.messages.append(error_message(SEND_FAILED))
        return True

    # ==================== FILE UPLOAD ====================

    def select_file(self, file: FileUpload) -> None:
        self.selected_file = file

    def check_upload_size(self, file: FileUpload) -> None:
        if file.size > self.max_upload_bytes:
            raise UploadTooLarge(file.filename, file.size, self.max_upload_bytes)

    async def upload_file(self, file: Optional[FileUpload] = None) -> bool:
        """
        Upload over the side channel, then announce the file on the chat
        channel. The picker is reset whatever the outcome.
        """
        file = file or self.selected_file
        if file is None or self.state != WidgetState.CONNECTED:
            return False

        try:
            self.check_upload_size(file)
        except UploadTooLarge as e:
            logger.info(f"Rejected upload of {file.filename}: {file.size} bytes")
            self.messages.append(warn_message(str(e)))
            self.selected_file = None
            return False

        session = self._session
        self.is_uploading = True
        try:
            uploaded = await self.uploads.upload(self.app_id, file)
            if self._session != session:
                logger.info(f"Discarding upload of {file.filename}: session closed")
                return False
            download_url = self.uploads.download_url(self.app_id, uploaded.file_id)
            announcement = ChatMessage(
                type=MessageKind.FILE_UPLOAD.value,
                file_id=uploaded.file_id,
                filename=uploaded.filename,
                content_type=uploaded.content_type,
                download_url=download_url,
            )
            if self._channel is None:
                raise ChannelError("Channel closed during upload")
            await self._channel.send(announcement.to_wire())
            if self._session != session:
                return False
        except (ApiError, ChannelError) as e:
            logger.error(f"File upload failed for {file.filename}: {e}")
            if self._session != session:
                return False
            self.messages.append(error_message(f"Failed to upload {file.filename}. Please try again."))
            return False
        finally:
            if self._session == session:
                self.is_uploading = False
                self.selected_file = None

        self.messages.append(ChatMessage(
            type=MessageKind.USER_FILE.value,
            content=uploaded.filename,
            file_id=uploaded.file_id,
            filename=uploaded.filename,
            content_type=uploaded.content_type,
            download_url=download_url,
        ))
        return True
