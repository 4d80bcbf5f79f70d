from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any

DocumentHandle = str  # path relative to the document store root


@dataclass
class Node:
    content: str  # visible text, markup stripped
    children: list[Node] = field(default_factory=list)
    depth: int = 0
    lines: tuple[int, int] | None = None  # [start, end) source lines

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class LineSpan:
    start: int  # zero-based, inclusive
    end: int


NodeLineIndex = dict[str, LineSpan]


@dataclass
class TransformResult:
    root: Node
    features: frozenset[str] = frozenset()
    frontmatter: dict[str, Any] = field(default_factory=dict)


# front matter key -> (RenderOptions field, smallest accepted value)
_OPTION_KEYS = {
    "colorFreezeLevel": ("color_freeze_level", 0),
    "duration": ("duration", 0),
    "maxWidth": ("max_width", 1),
}


@dataclass(frozen=True)
class RenderOptions:
    color_freeze_level: int = 2  # branches below this depth share their parent's colour
    duration: int = 300  # transition time in ms
    max_width: int = 300  # wrap width per node in px

    def derive(self, frontmatter: dict[str, Any] | None) -> RenderOptions:
        """Overlay the ``markmap:`` section of a document's front matter."""
        if not frontmatter:
            return self
        section = frontmatter.get("markmap")
        if not isinstance(section, dict):
            return self
        overrides: dict[str, int] = {}
        for key, (attr, minimum) in _OPTION_KEYS.items():
            value = section.get(key)
            if isinstance(value, int) and not isinstance(value, bool) and value >= minimum:
                overrides[attr] = value
        return replace(self, **overrides) if overrides else self


@dataclass(frozen=True)
class Geometry:
    left: float
    top: float
    width: float
    font_size: str | None = None
