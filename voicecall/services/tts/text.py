"""Text cleanup before synthesis."""

from __future__ import annotations

import re

# Order matters: fenced code before inline code, images before links
_MARKDOWN_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"```[\s\S]*?```"), "code block"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"#{1,6}\s"), ""),
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), r"image: \1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
]


def strip_markdown(text: str) -> str:
    """Turn a chat-formatted reply into something sensible to read aloud.

    >>> strip_markdown("**Done.** See [docs](https://x.y)")
    'Done. See docs'
    """
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()
