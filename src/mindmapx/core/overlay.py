"""In-place node editing, written back to the document through the line index."""

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from .line_index import rewrite_line
from .model import DocumentHandle, Geometry
from .normalize import normalize_text
from .ports import EditControl, OverlaySurface
from .sync import SyncEngine


class EditOutcome(Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"  # empty or identical text, nothing to write
    NOT_FOUND = "not_found"  # pre-edit text missing from the index
    NOT_EDITABLE = "not_editable"  # line is no longer a heading/list item
    INACTIVE = "inactive"  # no session, or a commit already running
    STALE = "stale"  # view was rebound after the edit started


@dataclass
class EditSession:
    original_text: str
    anchor: Geometry
    control: EditControl
    handle: DocumentHandle | None = None
    generation: int = 0
    committing: bool = False


class NodeEditOverlay:
    """
    At most one edit session per overlay. ``start_edit`` while a session is
    active leaves that session untouched and returns False.
    """

    def __init__(self, engine: SyncEngine, surface: OverlaySurface, min_width: float = 100):
        self.engine = engine
        self.surface = surface
        self.min_width = min_width
        self.session: EditSession | None = None

    @property
    def active(self) -> bool:
        return self.session is not None

    def start_edit(self, display_text: str, anchor: Geometry) -> bool:
        if self.session is not None:
            return False
        anchor = Geometry(
            left=anchor.left,
            top=anchor.top,
            width=max(anchor.width, self.min_width),
            font_size=anchor.font_size,
        )
        control = self.surface.create_control(display_text, anchor)
        self.session = EditSession(
            original_text=display_text,
            anchor=anchor,
            control=control,
            handle=self.engine.handle,
            generation=self.engine.generation,
        )
        return True

    def cancel(self) -> bool:
        if self.session is None or self.session.committing:
            return False
        self._end()
        return True

    async def handle_key(self, key: str) -> EditOutcome | None:
        if key == "Enter":
            return await self.commit()
        if key == "Escape":
            self.cancel()
        return None

    async def handle_blur(self) -> EditOutcome:
        return await self.commit()

    async def commit(self, new_text: str | None = None) -> EditOutcome:
        """
        Write the edited text into the source line of the node.

        ``new_text`` defaults to the control's current value. The session is
        closed whatever the outcome, including when the store raises.
        """
        session = self.session
        if session is None or session.committing:
            return EditOutcome.INACTIVE

        session.committing = True
        try:
            value = session.control.value if new_text is None else new_text
            return await self._apply(session, value.strip())
        finally:
            self._end()

    async def _apply(self, session: EditSession, new_text: str) -> EditOutcome:
        old_text = session.original_text
        if not new_text or new_text == old_text:
            return EditOutcome.UNCHANGED

        handle = self.engine.handle
        if handle is None or handle != session.handle or self.engine.generation != session.generation:
            logger.warning("Edit dropped: {!r} was started on {}, now showing {}", old_text, session.handle, handle)
            return EditOutcome.STALE

        content = await self.engine.store.read(handle)
        if self.engine.generation != session.generation:
            logger.warning("Edit dropped: {} was unbound while reading", handle)
            return EditOutcome.STALE
        lines = content.split("\n")

        span = self.engine.index.get(normalize_text(old_text))
        if span is None or span.start >= len(lines):
            logger.warning("Edit dropped: {!r} no longer maps to a line in {}", old_text, handle)
            return EditOutcome.NOT_FOUND

        rewritten = rewrite_line(lines[span.start], old_text, new_text)
        if rewritten is None or rewritten == lines[span.start]:
            logger.warning("Edit dropped: line {} of {} no longer holds {!r}", span.start + 1, handle, old_text)
            return EditOutcome.NOT_EDITABLE

        lines[span.start] = rewritten
        await self.engine.store.write(handle, "\n".join(lines))
        logger.debug("Rewrote line {} of {}", span.start + 1, handle)
        return EditOutcome.WRITTEN

    def _end(self) -> None:
        if self.session is not None:
            self.session.control.remove()
            self.session = None
