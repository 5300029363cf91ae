"""Thread/message content conversion.

Content is stored as TipTap editor JSON; older rows hold HTML directly.
"""
import json
import logging
import re
from html import escape
from urllib.parse import parse_qs, urlparse

import nh3

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"<[^>]*>")

BLOCK_TAGS = {
    "doc": None,
    "paragraph": "p",
    "blockquote": "blockquote",
    "orderedList": "ol",
    "listItem": "li",
}

MARK_TAGS = {
    "bold": "strong",
    "italic": "em",
}

YOUTUBE_EMBED_BASE = "https://www.youtube-nocookie.com/embed/"

ALLOWED_IFRAME_PREFIXES = (
    "https://www.youtube.com/embed/",
    "https://www.youtube-nocookie.com/embed/",
)
ALLOWED_URL_SCHEMES = {"http", "https", "mailto"}
LINK_REL = "noopener noreferrer nofollow"

SANITIZE_TAGS = nh3.ALLOWED_TAGS | {"iframe", "div"}
SANITIZE_ATTRIBUTES = {
    **{tag: set(attrs) for tag, attrs in nh3.ALLOWED_ATTRIBUTES.items()},
    "div": {"data-youtube-video"},
    "iframe": {"src", "width", "height", "allow", "allowfullscreen", "frameborder"},
}


def _youtube_embed_url(src: str) -> str | None:
    parsed = urlparse(src)
    host = parsed.netloc.lower()
    video_id = None
    if host.endswith("youtu.be"):
        video_id = parsed.path.lstrip("/")
    elif "youtube" in host:
        if parsed.path.startswith("/embed/"):
            video_id = parsed.path[len("/embed/"):]
        else:
            video_id = (parse_qs(parsed.query).get("v") or [None])[0]
    if not video_id:
        return None
    return f"{YOUTUBE_EMBED_BASE}{escape(video_id.split('/')[0])}?controls=1"


def _render_marks(text: str, marks: list[dict]) -> str:
    html = escape(text)
    for mark in marks or []:
        mark_type = mark.get("type")
        if mark_type in MARK_TAGS:
            tag = MARK_TAGS[mark_type]
            html = f"<{tag}>{html}</{tag}>"
        elif mark_type == "link":
            href = escape((mark.get("attrs") or {}).get("href") or "", quote=True)
            html = f'<a href="{href}">{html}</a>'
    return html


def _render_node(node) -> str:
    if not isinstance(node, dict):
        return ""

    node_type = node.get("type")
    attrs = node.get("attrs") or {}

    if node_type == "text":
        return _render_marks(node.get("text", ""), node.get("marks"))
    if node_type == "hardBreak":
        return "<br>"
    if node_type == "image":
        src = escape(attrs.get("src") or "", quote=True)
        alt = escape(attrs.get("alt") or "", quote=True)
        return f'<img src="{src}" alt="{alt}">'
    if node_type == "youtube":
        embed = _youtube_embed_url(attrs.get("src") or "")
        if embed is None:
            return ""
        width = int(attrs.get("width") or 640)
        height = int(attrs.get("height") or 480)
        return (
            f'<div data-youtube-video=""><iframe width="{width}" height="{height}" '
            f'src="{embed}" allowfullscreen="true"></iframe></div>'
        )

    inner = "".join(_render_node(child) for child in node.get("content") or [])
    if node_type not in BLOCK_TAGS:
        # Nodes from disabled extensions keep their text but lose their markup
        return inner
    tag = BLOCK_TAGS[node_type]
    if tag is None:
        return inner
    if node_type == "orderedList" and attrs.get("start") not in (None, 1):
        return f'<ol start="{int(attrs["start"])}">{inner}</ol>'
    return f"<{tag}>{inner}</{tag}>"


def _parse(content: str):
    try:
        return json.loads(content)
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to parse content as JSON: {e}")
        return None


def _filter_attribute(tag: str, attribute: str, value: str) -> str | None:
    if tag == "iframe" and attribute == "src" and not value.startswith(ALLOWED_IFRAME_PREFIXES):
        return None
    return value


def sanitize_html(html: str) -> str:
    """Drops scripts, styles, event handlers and unsafe URLs; iframes keep a
    ``src`` only when it points at a YouTube embed. Links open in a new tab.
    """
    return nh3.clean(
        html,
        tags=SANITIZE_TAGS,
        attributes=SANITIZE_ATTRIBUTES,
        url_schemes=ALLOWED_URL_SCHEMES,
        link_rel=LINK_REL,
        attribute_filter=_filter_attribute,
        set_tag_attribute_values={"a": {"target": "_blank"}},
    )


def from_json_to_html(content: str) -> str:
    if content.startswith("<"):
        return sanitize_html(content)

    parsed = _parse(content)
    if parsed is None:
        return ""
    return sanitize_html(_render_node(parsed))


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _extract_text(node) -> str:
    if isinstance(node, str):
        return node
    if not isinstance(node, dict):
        return ""
    if node.get("type") == "youtube":
        return "[Video] "

    text = node.get("text") or ""
    if isinstance(node.get("content"), list):
        text += "".join(_extract_text(child) for child in node["content"])
    if node.get("type") == "paragraph" and text:
        text += " "
    return text


def from_json_to_plain_text(content: str, max_length: int | None = None) -> str:
    if content.startswith("<"):
        text = TAG_PATTERN.sub("", content)
        return truncate_text(text, max_length) if max_length else text

    parsed = _parse(content)
    if parsed is None:
        return ""
    text = _extract_text(parsed).strip()
    return truncate_text(text, max_length) if max_length else text


def is_valid_content(content: str) -> bool:
    """Non-empty HTML, or TipTap JSON with at least some text or media."""
    if not content or not content.strip():
        return False
    if content.startswith("<"):
        return bool(TAG_PATTERN.sub("", content).strip()) or "<img" in content
    parsed = _parse(content)
    if not isinstance(parsed, dict):
        return False
    return bool(_extract_text(parsed).strip()) or '"image"' in content
