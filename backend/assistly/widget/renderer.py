"""
Bot Message Renderer

Turns a bot reply into display segments. Two inline tags are recognised:

    <button value="a">Option A</button>   (value optional, label used otherwise)
    <file url="https://..." name="report.pdf"/>   (name optional)

Everything else is text; bare http(s) URLs inside text become links.
A tag that does not parse is kept as text.
"""
import re
import logging
from typing import Awaitable, Callable, List, Optional, Union
from dataclasses import dataclass

from ..models.chat import ChatMessage, MessageKind

logger = logging.getLogger(__name__)

TAG_RE = re.compile(
    r"<button\b(?P<button_attrs>[^>]*)>(?P<label>(?:(?!<button\b).)*?)</button>"
    r"|<file\b(?P<file_attrs>[^>]*?)/?>(?:</file>)?",
    re.IGNORECASE | re.DOTALL
)
ATTR_RE = re.compile(r"""(\w+)\s*=\s*(["'])(.*?)\2""", re.DOTALL)
URL_RE = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
TRAILING_PUNCT_RE = re.compile(r"[.,;?!)]+$")

DEFAULT_DOWNLOAD_LABEL = "Download"
REVIEW_LINK_LABEL = "Leave a review"

SendFn = Callable[[str], Awaitable[bool]]


@dataclass
class TextSegment:
    text: str
    kind: str = "text"


@dataclass
class LinkSegment:
    href: str
    text: str
    kind: str = "link"


@dataclass
class DownloadSegment:
    url: str
    name: str = DEFAULT_DOWNLOAD_LABEL
    kind: str = "download"


@dataclass
class ButtonSegment:
    label: str
    value: str
    on_click: Optional[SendFn] = None
    kind: str = "button"

    async def click(self) -> bool:
        """Send the button value exactly as if the visitor had typed it"""
        if self.on_click is None:
            return False
        return await self.on_click(self.value)


Segment = Union[TextSegment, LinkSegment, DownloadSegment, ButtonSegment]


def _attrs(raw: str) -> dict:
    return {name.lower(): value for name, _, value in ATTR_RE.findall(raw or "")}


def safe_href(url: str) -> Optional[str]:
    """Only http(s) targets are linkable"""
    url = (url or "").strip()
    if re.match(r"^https?://", url, re.IGNORECASE):
        return url
    return None


def format_bullets(text: str) -> str:
    """Inline ' • ' bullets start on their own line"""
    return text.replace(" • ", "\n• ")


def split_links(text: str) -> List[Segment]:
    """Text with bare URLs turned into link segments; line breaks kept"""
    text = format_bullets(text)
    segments: List[Segment] = []
    last = 0
    for match in URL_RE.finditer(text):
        if match.start() > last:
            segments.append(TextSegment(text[last:match.start()]))
        raw_url = match.group(0)
        href = TRAILING_PUNCT_RE.sub("", raw_url)
        segments.append(LinkSegment(href=href, text=href))
        if len(href) < len(raw_url):
            segments.append(TextSegment(raw_url[len(href):]))
        last = match.end()
    if last < len(text):
        segments.append(TextSegment(text[last:]))
    return segments


class BotMessageRenderer:
    """
    Stateless renderer; buttons call back into `send` (the runtime's
    `send_text`).
    """

    def __init__(self, send: Optional[SendFn] = None):
        self.send = send

    def _tag_segment(self, match: "re.Match") -> Optional[Segment]:
        if match.group("label") is not None:
            label = match.group("label").strip()
            value = _attrs(match.group("button_attrs")).get("value", "").strip()
            if not label and not value:
                return None
            return ButtonSegment(label=label or value, value=value or label, on_click=self.send)

        attrs = _attrs(match.group("file_attrs"))
        url = safe_href(attrs.get("url", ""))
        if url is None:
            return None
        return DownloadSegment(url=url, name=attrs.get("name", "").strip() or DEFAULT_DOWNLOAD_LABEL)

    def render(self, text: str) -> List[Segment]:
        """Single pass over the text, left to right"""
        text = text or ""
        segments: List[Segment] = []
        last = 0
        for match in TAG_RE.finditer(text):
            segment = self._tag_segment(match)
            if segment is None:
                # Leave it in the text run
                logger.debug(f"Unrecognised tag kept as text: {match.group(0)[:40]}")
                continue
            if match.start() > last:
                segments.extend(split_links(text[last:match.start()]))
            segments.append(segment)
            last = match.end()
        if last < len(text):
            segments.extend(split_links(text[last:]))
        return segments

    def render_message(self, message: ChatMessage) -> List[Segment]:
        segments = self.render(message.content)
        if message.type == MessageKind.REVIEW_PROMPT.value:
            href = safe_href(message.review_url or "")
            if href:
                segments.append(LinkSegment(href=href, text=REVIEW_LINK_LABEL))
        return segments


def plain_text(segments: List[Segment]) -> str:
    """Flatten segments back to readable text (labels for controls)"""
    parts = []
    for segment in segments:
        if isinstance(segment, TextSegment):
            parts.append(segment.text)
        elif isinstance(segment, LinkSegment):
            parts.append(segment.text)
        elif isinstance(segment, ButtonSegment):
            parts.append(f"[{segment.label}]")
        else:
            parts.append(f"[{segment.name}]")
    return "".join(parts)
