"""Runtime wiring helper for CLI and API hosts."""

from dataclasses import dataclass, field
from pathlib import Path

from .adapters.fs_store import FsDocumentStore
from .adapters.markdown_transformer import MarkdownTransformer
from .adapters.tree_renderer import Surface, TreeRenderer
from .config import MindMapConfig, load_config
from .core.errors import StorageError
from .core.model import DocumentHandle, Geometry
from .core.ports import DocumentStore, OverlaySurface, Renderer, Transformer
from .view import MindMapView


class DetachedControl:
    """Edit control for hosts without a screen: holds the typed value."""

    def __init__(self, text: str, anchor: Geometry):
        self.value = text
        self.anchor = anchor
        self.removed = False

    def remove(self) -> None:
        self.removed = True


class DetachedSurface(OverlaySurface):
    """Holds only the most recent control."""

    def __init__(self):
        self.control: DetachedControl | None = None

    def create_control(self, text: str, anchor: Geometry) -> DetachedControl:
        self.control = DetachedControl(text, anchor)
        return self.control

    @property
    def current(self) -> DetachedControl | None:
        if self.control is not None and not self.control.removed:
            return self.control
        return None


@dataclass
class MindMapHost:
    """Owns at most one mind-map view and rebinds it on request."""
    config: MindMapConfig
    store: DocumentStore
    transformer: Transformer
    renderer: Renderer
    surface: OverlaySurface = field(default_factory=DetachedSurface)
    view: MindMapView | None = None

    async def open_diagram(self, handle: DocumentHandle) -> MindMapView:
        """Show ``handle`` as a mind map, reusing the existing view if any."""
        if self.view is None:
            self.view = MindMapView(
                self.config, self.store, self.transformer, self.renderer, self.surface
            )
        await self.view.set_file(handle)
        return self.view

    def close(self) -> None:
        if self.view is not None:
            self.view.close()
            self.view = None


@dataclass
class Runtime:
    """Container for all wired components."""
    config: MindMapConfig
    store: FsDocumentStore
    host: MindMapHost

    def handle_for(self, path: Path) -> DocumentHandle:
        """
        Document handle for a filesystem path under the store root.

        Relative paths that do not exist from the working directory are
        taken relative to the root.
        """
        if not path.is_absolute() and not path.exists():
            path = self.store.root / path
        handle = self.store.handle_for(path)
        if handle is None:
            raise StorageError(str(path), f"not under document root {self.store.root}")
        return handle


def build_runtime(root: Path | None = None, config_path: Path | None = None) -> Runtime:
    """Build and wire all components for a document root."""
    config = load_config(config_path=config_path, root=root)

    # CLI args win over config values
    if root is not None:
        config.store.root = root

    store = FsDocumentStore(config.store.root)
    renderer = TreeRenderer(Surface(config.render.surface_width, config.render.surface_height))
    host = MindMapHost(
        config=config,
        store=store,
        transformer=MarkdownTransformer(),
        renderer=renderer,
    )

    return Runtime(config=config, store=store, host=host)
