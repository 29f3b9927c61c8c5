"""
Unit tests for the widget runtime state machine (fake channel, mock upload transport).
"""
import asyncio
import pytest
import pytest_asyncio
import httpx

from assistly.models.chat import FileUpload
from assistly.services.country import CountryDetector
from assistly.services.uploads import UploadService
from assistly.widget import (
    Bounds, BotMessageRenderer, ButtonSegment, CallbackHostNotifier, RecordingHostNotifier,
    WidgetRuntime, WidgetState
)

from helpers import FakeChannel

MB = 1024 * 1024
WIDGET_BOUNDS = Bounds(left=100, top=100, width=300, height=500)


@pytest.fixture
def host():
    return RecordingHostNotifier()


@pytest_asyncio.fixture
async def runtime(upload_service, channel_factory, host):
    widget = WidgetRuntime(
        "app-1",
        upload_service,
        country="GB",
        host=host,
        channel_factory=channel_factory,
        ws_url="wss://chat.test",
        open_height=500,
        closed_height=100,
        max_upload_bytes=10 * MB,
    )
    yield widget
    await widget.close()


@pytest_asyncio.fixture
async def opened(runtime, channels):
    await runtime.open()
    return runtime, channels[0]


class TestLifecycle:
    """Tests for open/close transitions and host signals."""

    @pytest.mark.asyncio
    async def test_open_connects_and_resizes_host(self, runtime, channels, host):
        await runtime.open()
        assert runtime.state == WidgetState.CONNECTED
        assert runtime.placeholder == "Type your message..."
        assert runtime.input_enabled
        assert host.sent == [
            {"type": "resize-iframe", "height": 500},
            {"type": "widget-state", "isOpen": True},
        ]
        assert channels[0].url == "wss://chat.test/ws?app_id=app-1&country=GB"

    @pytest.mark.asyncio
    async def test_open_sends_no_greeting(self, opened):
        runtime, channel = opened
        assert channel.sent == []
        assert runtime.messages == []

    @pytest.mark.asyncio
    async def test_open_twice_keeps_one_session(self, opened, channels):
        runtime, _ = opened
        await runtime.open()
        assert len(channels) == 1

    @pytest.mark.asyncio
    async def test_close_closes_channel_and_shrinks_host(self, opened, host):
        runtime, channel = opened
        await runtime.close()
        assert runtime.state == WidgetState.CLOSED
        assert channel.closed
        assert host.sent[-2:] == [
            {"type": "resize-iframe", "height": 100},
            {"type": "widget-state", "isOpen": False},
        ]

    @pytest.mark.asyncio
    async def test_connect_failure_shows_error_in_transcript(self, upload_service, host):
        widget = WidgetRuntime(
            "app-1", upload_service, host=host,
            channel_factory=lambda url: FakeChannel(url, fail_connect=True)
        )
        await widget.open()
        assert widget.state == WidgetState.DISCONNECTED
        assert widget.messages[-1].type == "error"
        assert not widget.input_enabled

    @pytest.mark.asyncio
    async def test_remote_close_disables_input_and_keeps_history(self, opened):
        runtime, channel = opened
        await channel.deliver({"type": "bot", "content": "Hi there"})
        await channel.hang_up()
        assert runtime.state == WidgetState.DISCONNECTED
        assert runtime.placeholder == "Chat ended"
        assert not runtime.input_enabled
        assert [m.content for m in runtime.messages] == ["Hi there"]

    @pytest.mark.asyncio
    async def test_dropped_connection_shows_error_in_transcript(self, opened):
        runtime, channel = opened
        await runtime.send_text("Hello?")
        await channel.fail("abnormal closure 1006")
        assert runtime.state == WidgetState.DISCONNECTED
        assert runtime.placeholder == "Chat ended"
        assert not runtime.is_typing
        assert runtime.messages[-1].type == "error"
        assert runtime.messages[-1].content == "Connection to chat was lost."

    @pytest.mark.asyncio
    async def test_detected_country_used_when_none_given(self, upload_service, channel_factory, channels):
        widget = WidgetRuntime(
            "app-1", upload_service,
            channel_factory=channel_factory,
            ws_url="wss://chat.test",
            country_detector=CountryDetector(lookup_url="", default_code="US"),
            timezone="Europe/Berlin",
        )
        await widget.open()
        assert channels[0].url == "wss://chat.test/ws?app_id=app-1&country=DE"
        assert widget.detected_country == "DE"
        await widget.close()

    @pytest.mark.asyncio
    async def test_explicit_country_skips_detection(self, upload_service, channel_factory, channels):
        widget = WidgetRuntime(
            "app-1", upload_service,
            country="GB",
            channel_factory=channel_factory,
            ws_url="wss://chat.test",
            country_detector=CountryDetector(lookup_url="", default_code="US"),
            timezone="Europe/Berlin",
        )
        await widget.open()
        assert channels[0].url.endswith("country=GB")
        assert widget.detected_country is None
        await widget.close()

    @pytest.mark.asyncio
    async def test_no_host_signals_when_not_embedded(self, upload_service, channel_factory):
        host = RecordingHostNotifier(embedded=False)
        widget = WidgetRuntime("app-1", upload_service, host=host, channel_factory=channel_factory)
        await widget.open()
        await widget.close()
        assert host.sent == []


class TestHostNotifier:
    """Tests for host frame signalling."""

    def test_failing_bridge_does_not_raise(self):
        def broken(message):
            raise RuntimeError("frame detached")

        notifier = CallbackHostNotifier(broken)
        notifier.notify_resize(500)

    def test_last_by_type(self):
        notifier = RecordingHostNotifier()
        notifier.notify_resize(500)
        notifier.notify_state(True)
        assert notifier.last("resize-iframe") == {"type": "resize-iframe", "height": 500}
        assert notifier.last()["type"] == "widget-state"


class TestOutsideClick:
    """Tests for pointer-down handling."""

    @pytest.mark.asyncio
    async def test_left_click_outside_closes(self, opened):
        runtime, _ = opened
        assert await runtime.handle_pointer_down(10, 10, WIDGET_BOUNDS)
        assert runtime.state == WidgetState.CLOSED

    @pytest.mark.asyncio
    async def test_right_click_outside_ignored(self, opened):
        runtime, _ = opened
        assert not await runtime.handle_pointer_down(10, 10, WIDGET_BOUNDS, button=2)
        assert runtime.state == WidgetState.CONNECTED

    @pytest.mark.asyncio
    async def test_click_inside_ignored(self, opened):
        runtime, _ = opened
        assert not await runtime.handle_pointer_down(200, 300, WIDGET_BOUNDS)
        assert runtime.is_open


class TestMessaging:
    """Tests for sending and receiving chat messages."""

    @pytest.mark.asyncio
    async def test_send_appends_echo_and_sets_typing(self, opened):
        runtime, channel = opened
        assert await runtime.send_text("  Hello  ")
        assert runtime.messages[-1].type == "user"
        assert runtime.messages[-1].content == "Hello"
        assert runtime.is_typing
        assert channel.sent == [{"type": "user", "content": "Hello"}]

    @pytest.mark.asyncio
    async def test_send_uses_input_text(self, opened):
        runtime, channel = opened
        runtime.input_text = "From the box"
        await runtime.send_text()
        assert channel.sent[-1]["content"] == "From the box"
        assert runtime.input_text == ""

    @pytest.mark.asyncio
    async def test_blank_text_is_noop(self, opened):
        runtime, channel = opened
        assert not await runtime.send_text("   ")
        assert runtime.messages == []
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_send_while_disconnected_is_noop(self, opened):
        runtime, channel = opened
        await channel.hang_up()
        assert not await runtime.send_text("Anyone there?")
        assert runtime.messages == []
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_bot_reply_clears_typing(self, opened):
        runtime, channel = opened
        await runtime.send_text("Hi")
        await channel.deliver({"type": "bot", "content": "Hello!"})
        assert not runtime.is_typing

    @pytest.mark.asyncio
    async def test_review_prompt_clears_typing(self, opened):
        runtime, channel = opened
        await runtime.send_text("Thanks")
        await channel.deliver({"type": "review_prompt", "content": "Rate us", "reviewUrl": "https://r.test"})
        assert not runtime.is_typing
        assert runtime.messages[-1].review_url == "https://r.test"

    @pytest.mark.asyncio
    async def test_warn_does_not_clear_typing(self, opened):
        runtime, channel = opened
        await runtime.send_text("Hi")
        await channel.deliver({"type": "warn", "content": "Slow down"})
        assert runtime.is_typing

    @pytest.mark.asyncio
    async def test_malformed_frame_becomes_warning(self, opened):
        runtime, channel = opened
        await channel.deliver("{not json")
        await channel.deliver('["a", "list"]')
        assert [m.type for m in runtime.messages] == ["warn", "warn"]
        assert runtime.messages[0].content == "Malformed message from server"
        assert runtime.state == WidgetState.CONNECTED

    @pytest.mark.asyncio
    async def test_unknown_kind_kept(self, opened):
        runtime, channel = opened
        await channel.deliver({"type": "system", "content": "Agent joined"})
        assert runtime.messages[-1].type == "system"

    @pytest.mark.asyncio
    async def test_button_click_sends_label(self, opened):
        runtime, channel = opened
        await channel.deliver({
            "type": "bot",
            "content": 'Pick one: <button value="a">Option A</button><button>Option B</button>',
        })
        renderer = BotMessageRenderer(runtime.send_text)
        buttons = [s for s in renderer.render_message(runtime.messages[-1]) if isinstance(s, ButtonSegment)]
        assert [b.value for b in buttons] == ["a", "Option B"]

        await buttons[1].click()
        assert channel.sent[-1] == {"type": "user", "content": "Option B"}
        assert runtime.messages[-1].type == "user"
        assert runtime.messages[-1].content == "Option B"

    @pytest.mark.asyncio
    async def test_close_while_typing_then_reopen_is_clean(self, opened, channels):
        runtime, channel = opened
        await runtime.send_text("Hello?")
        assert runtime.is_typing
        await runtime.close()
        await runtime.open()
        assert runtime.messages == []
        assert not runtime.is_typing
        assert len(channels) == 2
        assert channel.closed
        assert runtime.state == WidgetState.CONNECTED


class TestFileUpload:
    """Tests for the upload side channel."""

    @pytest.mark.asyncio
    async def test_oversized_file_rejected_locally(self, opened, upload_requests):
        runtime, channel = opened
        runtime.select_file(FileUpload("video.mp4", b"0" * (30 * MB), "video/mp4"))
        assert not await runtime.upload_file()
        assert upload_requests == []
        assert channel.sent == []
        assert runtime.messages[-1].type == "warn"
        assert "10MB" in runtime.messages[-1].content
        assert runtime.selected_file is None

    @pytest.mark.asyncio
    async def test_small_file_announced_once(self, opened, upload_requests):
        runtime, channel = opened
        runtime.select_file(FileUpload("scan.pdf", b"0" * MB, "application/pdf"))
        assert await runtime.upload_file()
        assert len(upload_requests) == 1
        announcements = [m for m in channel.sent if m["type"] == "file_upload"]
        assert len(announcements) == 1
        assert announcements[0]["fileId"] == "file-1"
        assert announcements[0]["downloadUrl"].endswith("/chat/apps/app-1/uploads/file-1")
        assert runtime.messages[-1].type == "user_file"
        assert runtime.selected_file is None

    @pytest.mark.asyncio
    async def test_upload_failure_resets_picker(self, channel_factory, channels):
        failing = UploadService(
            base_url="https://files.test/api",
            client=httpx.AsyncClient(transport=httpx.MockTransport(
                lambda r: httpx.Response(500, json={"message": "Disk full"})
            )),
        )
        widget = WidgetRuntime("app-1", failing, channel_factory=channel_factory)
        await widget.open()
        widget.select_file(FileUpload("scan.pdf", b"0" * MB, "application/pdf"))
        assert not await widget.upload_file()
        assert widget.messages[-1].type == "error"
        assert widget.selected_file is None
        assert channels[0].sent == []
        await widget.close()

    @pytest.mark.asyncio
    async def test_malformed_upload_response_shows_error(self, channel_factory, channels):
        garbled = UploadService(
            base_url="https://files.test/api",
            client=httpx.AsyncClient(transport=httpx.MockTransport(
                lambda r: httpx.Response(200, json={"data": {"ok": True}})
            )),
        )
        widget = WidgetRuntime("app-1", garbled, channel_factory=channel_factory)
        await widget.open()
        widget.select_file(FileUpload("scan.pdf", b"0" * MB, "application/pdf"))
        assert not await widget.upload_file()
        assert widget.messages[-1].type == "error"
        assert widget.selected_file is None
        assert not widget.is_uploading
        assert channels[0].sent == []
        await widget.close()

    @pytest.mark.asyncio
    async def test_upload_finishing_after_reopen_is_discarded(self, channel_factory, channels):
        started = asyncio.Event()
        release = asyncio.Event()

        async def handler(request):
            started.set()
            await release.wait()
            return httpx.Response(201, json={"data": {
                "fileId": "file-1", "filename": "scan.pdf", "contentType": "application/pdf",
            }})

        slow = UploadService(
            base_url="https://files.test/api",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        widget = WidgetRuntime("app-1", slow, channel_factory=channel_factory)
        await widget.open()
        widget.select_file(FileUpload("scan.pdf", b"0" * MB, "application/pdf"))
        upload = asyncio.create_task(widget.upload_file())
        await started.wait()

        await widget.close()
        await widget.open()
        next_file = FileUpload("notes.txt", b"hello", "text/plain")
        widget.select_file(next_file)
        release.set()

        assert await upload is False
        assert channels[0].sent == []
        assert channels[1].sent == []
        assert [m for m in widget.messages if m.type in ("user_file", "error")] == []
        assert widget.selected_file is next_file
        assert widget.state == WidgetState.CONNECTED
        await widget.close()
