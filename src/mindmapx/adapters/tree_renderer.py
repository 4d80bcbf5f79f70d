"""Headless renderer: keeps diagram state and emits a JSON payload for a front end."""

from dataclasses import dataclass, field
from typing import Any

from ..core.model import Node, RenderOptions
from ..core.ports import Renderer

MIN_SCALE = 0.1
MAX_SCALE = 5.0

# layout estimate used by fit_to_view
SPACING_HORIZONTAL = 80
NODE_HEIGHT = 28


@dataclass
class Surface:
    width: float = 1200
    height: float = 800


@dataclass
class Diagram:
    root: Node
    options: RenderOptions
    surface: Surface = field(default_factory=Surface)
    scale: float = 1.0
    fitted: bool = False
    version: int = 1


def _clamp(scale: float) -> float:
    return max(MIN_SCALE, min(MAX_SCALE, scale))


class TreeRenderer(Renderer):
    def __init__(self, surface: Surface | None = None):
        self.surface = surface or Surface()

    def render(self, root: Node, options: RenderOptions) -> Diagram:
        return Diagram(
            root=root,
            options=options,
            surface=Surface(self.surface.width, self.surface.height),
        )

    def update(self, diagram: Diagram, root: Node, options: RenderOptions) -> None:
        # camera (scale) is kept across updates
        diagram.root = root
        diagram.options = options
        diagram.version += 1

    def rescale(self, diagram: Diagram, factor: float) -> None:
        diagram.scale = _clamp(diagram.scale * factor)
        diagram.fitted = False

    def fit_to_view(self, diagram: Diagram) -> None:
        width, height = tree_extent(diagram.root, diagram.options)
        if width <= 0 or height <= 0:
            return
        scale = min(diagram.surface.width / width, diagram.surface.height / height)
        diagram.scale = _clamp(scale)
        diagram.fitted = True


def tree_extent(root: Node, options: RenderOptions) -> tuple[float, float]:
    """Rough (width, height) of the laid-out tree at scale 1."""
    levels = 0
    leaves = 0
    stack = [(root, 1)]
    while stack:
        node, level = stack.pop()
        levels = max(levels, level)
        if not node.children:
            leaves += 1
        stack.extend((child, level + 1) for child in node.children)
    width = levels * (options.max_width + SPACING_HORIZONTAL)
    height = max(leaves, 1) * NODE_HEIGHT
    return width, height


def assign_colors(root: Node, freeze_level: int) -> dict[int, int]:
    """
    Map ``id(node)`` to a colour index.

    Each node up to ``freeze_level`` starts a new colour; deeper nodes reuse
    their parent's colour so whole sub-branches stay uniform. A level of 0
    disables freezing.
    """
    colors: dict[int, int] = {}
    next_color = 0
    stack: list[tuple[Node, int | None]] = [(root, None)]
    while stack:
        node, inherited = stack.pop()
        if inherited is None or freeze_level <= 0 or node.depth <= freeze_level:
            color = next_color
            next_color += 1
        else:
            color = inherited
        colors[id(node)] = color
        stack.extend((child, color) for child in reversed(node.children))
    return colors


def to_payload(diagram: Diagram) -> dict[str, Any]:
    """JSON-ready view of a diagram."""
    colors = assign_colors(diagram.root, diagram.options.color_freeze_level)

    def encode(node: Node) -> dict[str, Any]:
        return {
            "content": node.content,
            "depth": node.depth,
            "lines": list(node.lines) if node.lines else None,
            "color": colors[id(node)],
            "children": [encode(child) for child in node.children],
        }

    return {
        "root": encode(diagram.root),
        "scale": diagram.scale,
        "fitted": diagram.fitted,
        "version": diagram.version,
        "options": {
            "colorFreezeLevel": diagram.options.color_freeze_level,
            "duration": diagram.options.duration,
            "maxWidth": diagram.options.max_width,
        },
    }
