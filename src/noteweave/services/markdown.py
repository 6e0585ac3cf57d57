"""
Markdown Utilities

Pure text helpers shared by note writes (plain-text derivation, word
counts) and the related-notes engine (display previews).

``strip_markdown`` is deterministic: the same content always yields the
same ``content_plain``, which keeps the full-text index consistent with the
stored markdown.
"""

from __future__ import annotations

import re
from typing import Final

# Order matters: block constructs first, then list markers (so a leading
# "* " is not mistaken for emphasis), then inline constructs.
_STRIP_RULES: Final[list[tuple[re.Pattern[str], str]]] = [
    (re.compile(r"```[\s\S]*?```"), ""),  # fenced code blocks
    (re.compile(r"`([^`]+)`"), r"\1"),  # inline code
    (re.compile(r"^(-{3,}|_{3,}|\*{3,})\s*$", re.MULTILINE), ""),  # horizontal rules
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),  # headings
    (re.compile(r"^>\s?", re.MULTILINE), ""),  # blockquotes
    (re.compile(r"^[ \t]*[-*+]\s+\[[ xX]\]\s+", re.MULTILINE), ""),  # task lists
    (re.compile(r"^[ \t]*[-*+]\s+", re.MULTILINE), ""),  # bullet lists
    (re.compile(r"^[ \t]*\d+\.\s+", re.MULTILINE), ""),  # ordered lists
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), ""),  # images
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),  # links keep their text
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),  # bold
    (re.compile(r"\*(.+?)\*"), r"\1"),  # italic (asterisk)
    (re.compile(r"(?<!\w)_(.+?)_(?!\w)"), r"\1"),  # italic (underscore, not snake_case)
    (re.compile(r"\n{3,}"), "\n\n"),
]

_PREVIEW_RULES: Final[list[tuple[re.Pattern[str], str]]] = [
    (re.compile(r"#{1,6}\s+"), ""),
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"\n+"), " "),
]

ELLIPSIS: Final[str] = "..."


def strip_markdown(markdown: str) -> str:
    """Remove markdown syntax and return plain text for indexing."""
    text = markdown
    for pattern, replacement in _STRIP_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def count_words(text: str) -> int:
    """Number of whitespace-separated tokens in ``text``."""
    return len(text.split())


def build_preview(content: str, length: int = 150) -> str:
    """
    Short display excerpt of a note.

    Strips heading, emphasis, inline-code and link syntax, folds newlines
    into spaces and truncates to ``length`` characters with an ellipsis.
    """
    text = content
    for pattern, replacement in _PREVIEW_RULES:
        text = pattern.sub(replacement, text)
    text = text.strip()
    if len(text) > length:
        return text[:length] + ELLIPSIS
    return text
