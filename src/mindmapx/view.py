"""One mind-map view: sync engine, edit overlay and viewport for a single diagram."""

from pathlib import PurePosixPath

from .config import MindMapConfig
from .core.model import DocumentHandle, Geometry
from .core.overlay import EditOutcome, NodeEditOverlay
from .core.ports import DocumentStore, OverlaySurface, Renderer, Transformer
from .core.sync import SyncEngine, SyncOutcome
from .core.viewport import ViewportController

VIEW_TYPE = "mindmap-view"


class MindMapView:
    def __init__(
        self,
        config: MindMapConfig,
        store: DocumentStore,
        transformer: Transformer,
        renderer: Renderer,
        surface: OverlaySurface,
    ):
        self.config = config
        self.engine = SyncEngine(
            store,
            transformer,
            renderer,
            config.render.options(),
            debounce_ms=config.sync.debounce_ms,
            trailing=config.sync.trailing,
        )
        self.overlay = NodeEditOverlay(self.engine, surface, min_width=config.edit.min_width)
        vp = config.viewport
        self.viewport = ViewportController(
            renderer,
            lambda: self.engine.diagram,
            min_scale=vp.min_scale,
            max_scale=vp.max_scale,
            zoom_in_factor=vp.zoom_in_factor,
            zoom_out_factor=vp.zoom_out_factor,
            wheel_sensitivity=vp.wheel_sensitivity,
            forward_unclamped=vp.forward_unclamped,
        )

    @property
    def handle(self) -> DocumentHandle | None:
        return self.engine.handle

    @property
    def diagram(self):
        return self.engine.diagram

    def display_text(self) -> str:
        if self.handle is None:
            return "Mind map"
        return f"Mind map: {PurePosixPath(self.handle).stem}"

    async def set_file(self, handle: DocumentHandle) -> SyncOutcome:
        # an open edit belongs to the previous document
        self.overlay.cancel()
        outcome = await self.engine.bind(handle)
        if outcome is SyncOutcome.COALESCED:
            await self.engine.wait_idle()
        return outcome

    async def refresh(self) -> SyncOutcome:
        outcome = await self.engine.sync()
        if outcome is SyncOutcome.COALESCED:
            await self.engine.wait_idle()
        self.viewport.fit()
        return outcome

    def zoom_in(self) -> bool:
        return self.viewport.zoom_in()

    def zoom_out(self) -> bool:
        return self.viewport.zoom_out()

    def fit(self) -> None:
        self.viewport.fit()

    def on_wheel(self, delta: float, modifier_held: bool) -> bool:
        return self.viewport.on_wheel(delta, modifier_held)

    def on_node_double_click(self, display_text: str, anchor: Geometry) -> bool:
        return self.overlay.start_edit(display_text, anchor)

    async def commit_edit(self, new_text: str | None = None) -> EditOutcome:
        return await self.overlay.commit(new_text)

    def cancel_edit(self) -> bool:
        return self.overlay.cancel()

    def close(self) -> None:
        self.overlay.cancel()
        self.engine.close()
