"""
Inline Formatting

Turns message text into structured spans instead of markup strings.

Recognized tokens:
    **bold**
    `inline code`
    [label](https://example.com)

Only http, https and mailto links become link spans; anything else stays
plain text. Renderers escape every span, so user text can never inject markup.
"""

import html
import re
from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

ALLOWED_LINK_SCHEMES = frozenset({"http", "https", "mailto"})

_TOKEN_PATTERN = re.compile(
    r"\*\*(?P<bold>.+?)\*\*"
    r"|`(?P<code>[^`]+)`"
    r"|\[(?P<label>[^\]]+)\]\((?P<href>[^)\s]+)\)"
)


class Span(BaseModel):
    """One formatted run of text."""

    kind: Literal["plain", "bold", "code", "link"]
    text: str
    href: str | None = None

    model_config = ConfigDict(frozen=True)


def is_safe_href(href: str) -> bool:
    return urlparse(href).scheme.lower() in ALLOWED_LINK_SCHEMES


def format_line(line: str) -> list[Span]:
    spans: list[Span] = []
    position = 0
    for match in _TOKEN_PATTERN.finditer(line):
        if match.start() > position:
            spans.append(Span(kind="plain", text=line[position : match.start()]))
        if match.group("bold") is not None:
            spans.append(Span(kind="bold", text=match.group("bold")))
        elif match.group("code") is not None:
            spans.append(Span(kind="code", text=match.group("code")))
        elif is_safe_href(match.group("href")):
            spans.append(Span(kind="link", text=match.group("label"), href=match.group("href")))
        else:
            spans.append(Span(kind="plain", text=match.group(0)))
        position = match.end()
    if position < len(line):
        spans.append(Span(kind="plain", text=line[position:]))
    return _merge_plain(spans)


def format_text(text: str) -> list[list[Span]]:
    """Format text line by line; an empty line yields an empty span list."""
    return [format_line(line) for line in text.split("\n")]


def render_html(lines: list[list[Span]]) -> str:
    """Render formatted lines as escaped HTML paragraphs."""
    paragraphs = []
    for spans in lines:
        body = "".join(_span_to_html(span) for span in spans)
        paragraphs.append(f"<p>{body or '&nbsp;'}</p>")
    return "".join(paragraphs)


def _span_to_html(span: Span) -> str:
    text = html.escape(span.text)
    if span.kind == "bold":
        return f"<strong>{text}</strong>"
    if span.kind == "code":
        return f"<code>{text}</code>"
    if span.kind == "link":
        href = html.escape(span.href or "", quote=True)
        return f'<a href="{href}" rel="noopener noreferrer" target="_blank">{text}</a>'
    return text


def _merge_plain(spans: list[Span]) -> list[Span]:
    merged: list[Span] = []
    for span in spans:
        if merged and span.kind == "plain" and merged[-1].kind == "plain":
            merged[-1] = Span(kind="plain", text=merged[-1].text + span.text)
        else:
            merged.append(span)
    return merged
