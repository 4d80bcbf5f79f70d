import io
import re
from typing import Any

import yaml

from ..core.errors import ParseError
from ..core.line_index import HEADING_RE, match_outline_line
from ..core.model import Node, TransformResult
from ..core.normalize import normalize_text
from ..core.ports import Transformer

_FM = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
FENCE_RE = re.compile(r"^\s*(```|~~~)")
CODE_RE = re.compile(r"`[^`]+`")
LINK_RE = re.compile(r"\[(.+?)\]\(.+?\)")
KATEX_RE = re.compile(r"\$[^$\s][^$]*\$")


def split_frontmatter(text: str) -> tuple[dict[str, Any], int]:
    """
    Return (front matter, number of lines it occupies).

    Front matter starts on the very first line. A `---` block that holds a
    heading, or whose YAML is not a mapping, is ordinary Markdown between
    horizontal rules and yields ({}, 0).
    """
    m = _FM.match(text)
    if not m:
        return {}, 0
    block = m.group(1)
    if any(HEADING_RE.match(line) for line in block.split("\n")):
        return {}, 0
    try:
        fm = yaml.safe_load(io.StringIO(block))
    except yaml.YAMLError as e:
        raise ParseError(f"invalid front matter: {e}") from e
    if not isinstance(fm, dict):
        return {}, 0
    return fm, text[: m.end()].count("\n")


class MarkdownTransformer(Transformer):
    """
    Build a mind-map tree from a Markdown outline.

    Headings nest by level; list items nest under the closest heading and by
    indentation among themselves. Lines in fenced code blocks and paragraph
    text do not become nodes.
    """

    def __init__(self, max_depth: int = 64):
        self.max_depth = max_depth

    def transform(self, text: str) -> TransformResult:
        if not isinstance(text, str):
            raise ParseError(f"expected text, got {type(text).__name__}")

        frontmatter, skip = split_frontmatter(text)
        features: set[str] = set()
        if frontmatter:
            features.add("frontmatter")

        title = frontmatter.get("title")
        top = Node(content=normalize_text(str(title)) if title else "", depth=0)

        headings: list[tuple[int, Node]] = [(0, top)]
        items: list[tuple[int, Node]] = []  # (indent, node)
        in_fence = False

        for i, line in enumerate(text.split("\n")):
            if i < skip:
                continue

            if FENCE_RE.match(line):
                in_fence = not in_fence
                features.add("code")
                continue
            if in_fence:
                continue

            outline = match_outline_line(line)
            if outline is None:
                continue

            self._scan_features(outline.body, features)

            if outline.kind == "heading":
                while headings[-1][0] >= outline.level:
                    headings.pop()
                parent = headings[-1][1]
                node = self._add_child(parent, outline.body, i)
                headings.append((outline.level, node))
                items.clear()
            else:
                while items and items[-1][0] >= outline.level:
                    items.pop()
                parent = items[-1][1] if items else headings[-1][1]
                node = self._add_child(parent, outline.body, i)
                items.append((outline.level, node))

        root = top
        if not top.content and len(top.children) == 1:
            root = top.children[0]
            self._shift_depths(root, -1)

        return TransformResult(root=root, features=frozenset(features), frontmatter=frontmatter)

    def _add_child(self, parent: Node, body: str, line_no: int) -> Node:
        depth = parent.depth + 1
        if depth > self.max_depth:
            raise ParseError(f"line {line_no + 1}: outline nested deeper than {self.max_depth} levels")
        node = Node(content=normalize_text(body), depth=depth, lines=(line_no, line_no + 1))
        parent.children.append(node)
        return node

    @staticmethod
    def _shift_depths(root: Node, delta: int) -> None:
        stack = [root]
        while stack:
            node = stack.pop()
            node.depth += delta
            stack.extend(node.children)

    @staticmethod
    def _scan_features(body: str, features: set[str]) -> None:
        if CODE_RE.search(body):
            features.add("code")
        if LINK_RE.search(body):
            features.add("links")
        if KATEX_RE.search(body):
            features.add("katex")
