"""Tests for the headless tree renderer."""

import pytest

from mindmapx.adapters.tree_renderer import (
    NODE_HEIGHT,
    SPACING_HORIZONTAL,
    Surface,
    TreeRenderer,
    assign_colors,
    to_payload,
    tree_extent,
)
from mindmapx.core.model import Node, RenderOptions


def sample_tree():
    return Node(
        "root",
        depth=0,
        children=[
            Node("a", depth=1, children=[Node("a1", depth=2, children=[Node("a1x", depth=3)])]),
            Node("b", depth=1, children=[Node("b1", depth=2)]),
        ],
    )


def test_render_starts_unfitted_at_scale_one():
    diagram = TreeRenderer().render(sample_tree(), RenderOptions())

    assert diagram.scale == 1.0
    assert diagram.fitted is False
    assert diagram.version == 1


def test_update_keeps_camera():
    renderer = TreeRenderer()
    diagram = renderer.render(sample_tree(), RenderOptions())
    renderer.rescale(diagram, 2.0)

    new_root = Node("other")
    renderer.update(diagram, new_root, RenderOptions(max_width=100))

    assert diagram.root is new_root
    assert diagram.options.max_width == 100
    assert diagram.scale == 2.0
    assert diagram.version == 2


def test_rescale_clamps():
    renderer = TreeRenderer()
    diagram = renderer.render(sample_tree(), RenderOptions())

    renderer.rescale(diagram, 100)
    assert diagram.scale == 5.0
    renderer.rescale(diagram, 1e-6)
    assert diagram.scale == 0.1


def test_tree_extent():
    width, height = tree_extent(sample_tree(), RenderOptions(max_width=200))

    assert width == 4 * (200 + SPACING_HORIZONTAL)
    assert height == 2 * NODE_HEIGHT


def test_fit_to_view_uses_limiting_axis():
    renderer = TreeRenderer(Surface(width=1200, height=28))
    diagram = renderer.render(sample_tree(), RenderOptions(max_width=200))

    renderer.fit_to_view(diagram)

    assert diagram.scale == pytest.approx(28 / (2 * NODE_HEIGHT))
    assert diagram.fitted is True


def test_fit_to_view_clamps_on_huge_surface():
    renderer = TreeRenderer(Surface(width=1e6, height=1e6))
    diagram = renderer.render(Node("only"), RenderOptions())

    renderer.fit_to_view(diagram)

    assert diagram.scale == 5.0


def test_rescale_clears_fitted():
    renderer = TreeRenderer()
    diagram = renderer.render(sample_tree(), RenderOptions())
    renderer.fit_to_view(diagram)

    renderer.rescale(diagram, 1.3)

    assert diagram.fitted is False


def test_colors_freeze_below_level():
    root = sample_tree()
    colors = assign_colors(root, freeze_level=1)
    a, b = root.children

    assert len({colors[id(root)], colors[id(a)], colors[id(b)]}) == 3
    assert colors[id(a.children[0])] == colors[id(a)]
    assert colors[id(a.children[0].children[0])] == colors[id(a)]
    assert colors[id(b.children[0])] == colors[id(b)]


def test_colors_without_freezing_are_unique():
    root = sample_tree()
    colors = assign_colors(root, freeze_level=0)

    assert len(set(colors.values())) == len(list(root.walk()))


def test_payload_shape():
    renderer = TreeRenderer()
    diagram = renderer.render(sample_tree(), RenderOptions(color_freeze_level=1, duration=0))

    payload = to_payload(diagram)

    assert payload["root"]["content"] == "root"
    assert [c["content"] for c in payload["root"]["children"]] == ["a", "b"]
    assert payload["root"]["lines"] is None
    assert payload["options"] == {"colorFreezeLevel": 1, "duration": 0, "maxWidth": 300}
    assert payload["scale"] == 1.0
    assert payload["version"] == 1


def test_fit_to_view_with_degenerate_extent():
    renderer = TreeRenderer()
    diagram = renderer.render(Node("only"), RenderOptions(max_width=-80))

    renderer.fit_to_view(diagram)

    assert diagram.scale == 1.0
    assert diagram.fitted is False
