"""Plain-text keys for outline lines."""

import re

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"\*(.+?)\*")
_CODE_RE = re.compile(r"`(.+?)`")
_LINK_RE = re.compile(r"\[(.+?)\]\(.+?\)")


def _strip_once(text: str) -> str:
    text = _BOLD_RE.sub(r"\1", text)
    text = _ITALIC_RE.sub(r"\1", text)
    text = _CODE_RE.sub(r"\1", text)
    text = _LINK_RE.sub(r"\1", text)
    return text.strip()


def normalize_text(text: str) -> str:
    """
    Strip inline Markdown decorations from a line's visible text.

    - ``**bold**`` and ``*italic*`` lose their markers
    - inline code loses its backticks
    - ``[label](target)`` collapses to ``label``
    - surrounding whitespace is trimmed

    A single pass can expose new pairs (a collapsed link may leave an
    emphasis pair behind), so passes repeat until the text is stable.
    Every substitution shortens the text, which bounds the loop.

    Examples:
        >>> normalize_text("**bold** text")
        'bold text'
        >>> normalize_text("[link](http://x)")
        'link'
    """
    current = text.strip()
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return current
        current = stripped
