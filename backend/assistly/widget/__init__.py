from .host import HostNotifier, NullHostNotifier, CallbackHostNotifier, RecordingHostNotifier
from .channel import ChatChannel, WebSocketChannel, build_channel_url
from .runtime import WidgetRuntime, WidgetState, Bounds, PLACEHOLDERS
from .renderer import (
    BotMessageRenderer, TextSegment, LinkSegment, ButtonSegment, DownloadSegment, plain_text
)

__all__ = [
    "HostNotifier",
    "NullHostNotifier",
    "CallbackHostNotifier",
    "RecordingHostNotifier",
    "ChatChannel",
    "WebSocketChannel",
    "build_channel_url",
    "WidgetRuntime",
    "WidgetState",
    "Bounds",
    "PLACEHOLDERS",
    "BotMessageRenderer",
    "TextSegment",
    "LinkSegment",
    "ButtonSegment",
    "DownloadSegment",
    "plain_text"
]
