"""Filesystem document store with watchdog change notifications."""

import asyncio
from collections import defaultdict
from pathlib import Path
from typing import Callable

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..core.errors import StorageError
from ..core.model import DocumentHandle
from ..core.ports import DocumentStore, Unsubscribe

Callback = Callable[[DocumentHandle], None]


def should_skip(path: Path) -> bool:
    """Editor swap/temp files and non-Markdown files never notify."""
    name = path.name

    # Skip hidden files
    if name.startswith("."):
        return True

    # Skip temp/swap files
    if name.endswith("~") or name.endswith(".swp") or name.startswith(".#"):
        return True

    return path.suffix.lower() not in (".md", ".markdown")


class ModifiedHandler(FileSystemEventHandler):
    """Forward file events from the observer thread onto the event loop."""

    def __init__(self, store: "FsDocumentStore", loop: asyncio.AbstractEventLoop):
        super().__init__()
        self.store = store
        self.loop = loop

    def _forward(self, src_path: str | bytes) -> None:
        path = Path(str(src_path))
        if should_skip(path):
            return
        handle = self.store.handle_for(path)
        if handle is not None:
            self.loop.call_soon_threadsafe(self.store.dispatch_modified, handle)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # editors that save via rename-over land here
        if not event.is_directory:
            self._forward(event.dest_path)


class FsDocumentStore(DocumentStore):
    def __init__(self, root: Path):
        self.root = root
        self._modified: dict[DocumentHandle, list[Callback]] = defaultdict(list)
        self._editor_changed: list[Callback] = []
        self._observer: Observer | None = None

    def _path(self, handle: DocumentHandle) -> Path:
        return self.root / handle

    def handle_for(self, path: Path) -> DocumentHandle | None:
        try:
            return path.resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return None

    async def read(self, handle: DocumentHandle) -> str:
        try:
            return await asyncio.to_thread(self._path(handle).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(handle, f"read failed: {e}") from e

    async def write(self, handle: DocumentHandle, text: str) -> None:
        """Replace the whole document, then notify subscribers like an external change."""
        try:
            await asyncio.to_thread(self._path(handle).write_text, text, encoding="utf-8")
        except OSError as e:
            raise StorageError(handle, f"write failed: {e}") from e
        self.dispatch_modified(handle)

    def exists(self, handle: DocumentHandle) -> bool:
        return self._path(handle).is_file()

    # Notifications

    def on_modified(self, handle: DocumentHandle, callback: Callback) -> Unsubscribe:
        self._modified[handle].append(callback)

        def unsubscribe() -> None:
            callbacks = self._modified.get(handle, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def on_active_editor_changed(self, callback: Callback) -> Unsubscribe:
        self._editor_changed.append(callback)

        def unsubscribe() -> None:
            if callback in self._editor_changed:
                self._editor_changed.remove(callback)

        return unsubscribe

    def dispatch_modified(self, handle: DocumentHandle) -> None:
        for callback in list(self._modified.get(handle, [])):
            callback(handle)

    def notify_editor_change(self, handle: DocumentHandle) -> None:
        """Entry point for a host reporting live typing in an open editor."""
        for callback in list(self._editor_changed):
            callback(handle)

    # Watching

    def start_watching(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if self._observer is not None:
            return
        loop = loop or asyncio.get_running_loop()
        observer = Observer()
        observer.schedule(ModifiedHandler(self, loop), str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug("Watching {}", self.root)

    def stop_watching(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
