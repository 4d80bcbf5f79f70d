from typing import Any, Callable, Protocol

from .model import DocumentHandle, Geometry, Node, RenderOptions, TransformResult

Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """
    Owns document text. Reads and writes are awaited; notifications are plain
    callbacks invoked on the event loop.
    """

    async def read(self, handle: DocumentHandle) -> str:
        pass

    async def write(self, handle: DocumentHandle, text: str) -> None:
        pass

    def on_modified(
        self, handle: DocumentHandle, callback: Callable[[DocumentHandle], None]
    ) -> Unsubscribe:
        pass

    def on_active_editor_changed(
        self, callback: Callable[[DocumentHandle], None]
    ) -> Unsubscribe:
        pass


class Transformer(Protocol):
    """
    Markdown text -> node tree. Deterministic; raises ParseError.
    """

    def transform(self, text: str) -> TransformResult:
        pass


class Renderer(Protocol):
    """
    First render creates a diagram handle; update keeps its camera state.
    """

    def render(self, root: Node, options: RenderOptions) -> Any:
        pass

    def update(self, diagram: Any, root: Node, options: RenderOptions) -> None:
        pass

    def rescale(self, diagram: Any, factor: float) -> None:
        pass

    def fit_to_view(self, diagram: Any) -> None:
        pass


class EditControl(Protocol):
    value: str

    def remove(self) -> None:
        pass


class OverlaySurface(Protocol):
    def create_control(self, text: str, anchor: Geometry) -> EditControl:
        pass
