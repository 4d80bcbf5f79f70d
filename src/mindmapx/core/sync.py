"""
Sync engine: document text -> node tree -> node-line index -> diagram.

One engine owns one document binding, one diagram handle and one index
snapshot. Passes never overlap: a trigger that arrives while a pass runs sets
a single pending flag, and the running pass loops once more when it ends.
"""

import asyncio
from enum import Enum
from typing import Any, Callable

from loguru import logger

from .errors import MindMapError
from .line_index import build_index
from .model import DocumentHandle, Node, NodeLineIndex, RenderOptions
from .ports import DocumentStore, Renderer, Transformer, Unsubscribe
from .scheduler import Debouncer


class SyncState(Enum):
    IDLE = "idle"
    SYNCING = "syncing"


class SyncOutcome(Enum):
    RENDERED = "rendered"
    COALESCED = "coalesced"  # folded into the pass already running
    STALE = "stale"  # binding changed while the pass was reading
    UNBOUND = "unbound"


class SyncEngine:
    def __init__(
        self,
        store: DocumentStore,
        transformer: Transformer,
        renderer: Renderer,
        options: RenderOptions | None = None,
        *,
        debounce_ms: int = 300,
        trailing: bool = False,
        clock: Callable[[], float] | None = None,
    ):
        self.store = store
        self.transformer = transformer
        self.renderer = renderer
        self.options = options or RenderOptions()

        self.state = SyncState.IDLE
        self.handle: DocumentHandle | None = None
        self.diagram: Any = None
        self.root: Node | None = None
        self.features: frozenset[str] = frozenset()
        self.index: NodeLineIndex = {}
        self.passes = 0
        self.last_error: MindMapError | None = None

        self._pending = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._generation = 0
        self._subscriptions: list[Unsubscribe] = []
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Callable[["SyncEngine"], None]] = []

        debounce_kwargs: dict[str, Any] = {"trailing": trailing}
        if clock is not None:
            debounce_kwargs["clock"] = clock
        self.debouncer = Debouncer(self.request_sync, debounce_ms, **debounce_kwargs)

    def add_render_listener(self, listener: Callable[["SyncEngine"], None]) -> None:
        """Call ``listener(engine)`` after every applied render."""
        self._listeners.append(listener)

    # Binding

    async def bind(self, handle: DocumentHandle) -> SyncOutcome:
        """Attach to ``handle`` (detaching from any previous one) and sync."""
        self.unbind()
        self.handle = handle
        self._subscriptions.append(self.store.on_modified(handle, self.notify_modified))
        self._subscriptions.append(self.store.on_active_editor_changed(self.notify_editor_changed))
        logger.debug("Bound to {}", handle)
        return await self.sync()

    def unbind(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions.clear()
        self.debouncer.cancel()
        self._generation += 1
        self.handle = None

    # Triggers

    def notify_modified(self, handle: DocumentHandle) -> None:
        """Document changed on disk."""
        if handle == self.handle:
            self.debouncer()

    def notify_editor_changed(self, handle: DocumentHandle) -> None:
        """Document changed in an open editor (live typing)."""
        if handle == self.handle:
            self.debouncer()

    def request_sync(self) -> None:
        """Schedule a pass on the running loop; errors are logged, not raised."""
        task = asyncio.get_running_loop().create_task(self._background_sync())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _background_sync(self) -> None:
        try:
            await self.sync()
        except MindMapError as e:
            logger.warning("Sync of {} failed: {}", self.handle, e)

    async def join(self) -> None:
        """Wait until every scheduled pass has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def generation(self) -> int:
        """Bumped on every bind/unbind; work started under an older value is stale."""
        return self._generation

    async def wait_idle(self) -> None:
        """Wait for the running pass (and its pending follow-up) to end."""
        await self._idle.wait()

    # Passes

    async def sync(self) -> SyncOutcome:
        """
        Run a synchronization pass now.

        Raises ParseError or StorageError from the pass; the previous diagram,
        tree and index are left as they were.
        """
        if self.state is SyncState.SYNCING:
            self._pending = True
            return SyncOutcome.COALESCED

        self.state = SyncState.SYNCING
        self._idle.clear()
        try:
            while True:
                self._pending = False
                outcome = await self._run_pass()
                if not self._pending:
                    return outcome
        except MindMapError as e:
            self.last_error = e
            raise
        finally:
            self._pending = False
            self.state = SyncState.IDLE
            self._idle.set()

    async def _run_pass(self) -> SyncOutcome:
        handle = self.handle
        generation = self._generation
        if handle is None:
            return SyncOutcome.UNBOUND

        text = await self.store.read(handle)
        if generation != self._generation:
            logger.debug("Discarding result for unbound document {}", handle)
            return SyncOutcome.STALE

        result = self.transformer.transform(text)
        index = build_index(text)
        options = self.options.derive(result.frontmatter)

        if self.diagram is None:
            self.diagram = self.renderer.render(result.root, options)
        else:
            self.renderer.update(self.diagram, result.root, options)

        self.root = result.root
        self.features = result.features
        self.index = index
        self.passes += 1
        self.last_error = None
        logger.debug("Rendered {} ({} indexed lines, pass {})", handle, len(index), self.passes)

        for listener in self._listeners:
            listener(self)
        return SyncOutcome.RENDERED

    def close(self) -> None:
        self.unbind()
        for task in self._tasks:
            task.cancel()
