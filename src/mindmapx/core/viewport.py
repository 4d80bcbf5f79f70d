import math
from typing import Any, Callable

from .ports import Renderer


class ViewportController:
    """
    Tracks the logical zoom scale of one diagram and drives the renderer.

    By default the scale is clamped once here and the renderer receives the
    effective factor, so both sides agree. ``forward_unclamped`` forwards
    the raw factor instead and leaves clamping to the renderer as well.
    """

    def __init__(
        self,
        renderer: Renderer,
        diagram: Callable[[], Any],
        *,
        min_scale: float = 0.1,
        max_scale: float = 5.0,
        zoom_in_factor: float = 1.3,
        zoom_out_factor: float = 0.7,
        wheel_sensitivity: float = 0.1,
        forward_unclamped: bool = False,
    ):
        self.renderer = renderer
        self.diagram = diagram
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.zoom_in_factor = zoom_in_factor
        self.zoom_out_factor = zoom_out_factor
        self.wheel_sensitivity = wheel_sensitivity
        self.forward_unclamped = forward_unclamped
        self.scale = 1.0

    def _clamp(self, scale: float) -> float:
        return max(self.min_scale, min(self.max_scale, scale))

    def zoom(self, factor: float) -> bool:
        """Apply a multiplicative factor. Returns False when nothing is drawn yet."""
        diagram = self.diagram()
        if diagram is None:
            return False

        previous = self.scale
        self.scale = self._clamp(previous * factor)

        if self.forward_unclamped:
            self.renderer.rescale(diagram, factor)
        elif self.scale != previous:
            self.renderer.rescale(diagram, self.scale / previous)
        return True

    def zoom_in(self) -> bool:
        return self.zoom(self.zoom_in_factor)

    def zoom_out(self) -> bool:
        return self.zoom(self.zoom_out_factor)

    def wheel_factor(self, delta: float) -> float:
        # exp keeps the factor positive; the exponent is bounded so huge
        # deltas saturate instead of overflowing
        exponent = max(-50.0, min(50.0, -delta * self.wheel_sensitivity))
        return math.exp(exponent)

    def on_wheel(self, delta: float, modifier_held: bool) -> bool:
        """Continuous zoom; only consumed while Ctrl/Cmd is held."""
        if not modifier_held:
            return False
        self.zoom(self.wheel_factor(delta))
        return True

    def fit(self) -> None:
        diagram = self.diagram()
        if diagram is not None:
            self.renderer.fit_to_view(diagram)
