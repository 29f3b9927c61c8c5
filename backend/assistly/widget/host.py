"""
Host frame notifier

Fire-and-forget signals to the page embedding the widget. Nothing is sent
when the widget is not inside a foreign frame.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

RESIZE_EVENT = "resize-iframe"
STATE_EVENT = "widget-state"


class HostNotifier:
    """Base notifier: subclasses decide how a message reaches the host"""

    @property
    def is_embedded(self) -> bool:
        return False

    def post_message(self, message: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _post(self, message: Dict[str, Any]) -> None:
        if not self.is_embedded:
            return
        try:
            self.post_message(message)
        except Exception as e:
            # The host page must never break the widget
            logger.warning(f"Host notification {message.get('type')} failed: {e}")

    def notify_resize(self, height: int) -> None:
        self._post({"type": RESIZE_EVENT, "height": height})

    def notify_state(self, is_open: bool) -> None:
        self._post({"type": STATE_EVENT, "isOpen": is_open})


class NullHostNotifier(HostNotifier):
    """Used when the widget runs standalone"""

    def post_message(self, message: Dict[str, Any]) -> None:
        pass


class CallbackHostNotifier(HostNotifier):
    """Delivers host messages through a callable (a bridge, or a list in tests)"""

    def __init__(self, post: Callable[[Dict[str, Any]], None], embedded: bool = True):
        self._post_fn = post
        self._embedded = embedded

    @property
    def is_embedded(self) -> bool:
        return self._embedded

    def post_message(self, message: Dict[str, Any]) -> None:
        self._post_fn(message)


class RecordingHostNotifier(CallbackHostNotifier):
    """Keeps every posted message; handy for previews and tests"""

    def __init__(self, embedded: bool = True):
        self.sent: List[Dict[str, Any]] = []
        super().__init__(self.sent.append, embedded=embedded)

    def last(self, event_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        for message in reversed(self.sent):
            if event_type is None or message.get("type") == event_type:
                return message
        return None
