"""Map normalized node text back to the document line that produced it."""

import re
from dataclasses import dataclass

from .model import LineSpan, NodeLineIndex
from .normalize import normalize_text

HEADING_RE = re.compile(r"^(#{1,6})(\s+)(.+)$")
LIST_ITEM_RE = re.compile(r"^(\s*)([-*+])(\s+)(.+)$")


@dataclass(frozen=True)
class OutlineLine:
    kind: str  # "heading" | "list"
    prefix: str  # "#" run or indentation + bullet, with trailing spaces
    body: str
    level: int  # heading level, or indentation width for list items


def match_outline_line(line: str) -> OutlineLine | None:
    """Split a heading or list-item line into marker prefix and body."""
    m = HEADING_RE.match(line)
    if m:
        hashes, spaces, body = m.groups()
        return OutlineLine("heading", hashes + spaces, body, len(hashes))

    m = LIST_ITEM_RE.match(line)
    if m:
        indent, bullet, spaces, body = m.groups()
        return OutlineLine("list", indent + bullet + spaces, body, len(indent.expandtabs(4)))

    return None


def build_index(document_text: str) -> NodeLineIndex:
    """
    Build the normalized-text -> line mapping for a whole document.

    Only single-line constructs are indexed, so every span has
    ``start == end``. When two lines normalize to the same text the later
    one wins.
    """
    index: NodeLineIndex = {}
    for i, line in enumerate(document_text.split("\n")):
        outline = match_outline_line(line)
        if outline is None:
            continue
        index[normalize_text(outline.body)] = LineSpan(i, i)
    return index


def rewrite_line(line: str, old_text: str, new_text: str) -> str | None:
    """
    Replace the first literal ``old_text`` in the body of an outline line.

    The marker prefix is never touched. Returns None when the line is no
    longer a heading or list item; returns the line unchanged when the body
    does not contain ``old_text``.
    """
    outline = match_outline_line(line)
    if outline is None:
        return None
    return outline.prefix + outline.body.replace(old_text, new_text, 1)
