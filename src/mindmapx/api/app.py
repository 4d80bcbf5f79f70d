"""FastAPI application exposing a mind-map view as a local JSON API."""

import secrets
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from pydantic import BaseModel

from ..adapters.tree_renderer import to_payload
from ..core.errors import MindMapError, ParseError, StorageError
from ..core.model import Geometry
from ..view import MindMapView


class OpenRequest(BaseModel):
    path: str


class WheelRequest(BaseModel):
    delta: float
    modifier: bool = True


class StartEditRequest(BaseModel):
    text: str
    left: float = 0
    top: float = 0
    width: float = 0
    font_size: str | None = None


class CommitRequest(BaseModel):
    value: str | None = None


class KeyRequest(BaseModel):
    key: str


def _raise_http(e: MindMapError) -> None:
    if isinstance(e, ParseError):
        raise HTTPException(status_code=422, detail=str(e)) from e
    if isinstance(e, StorageError):
        raise HTTPException(status_code=503, detail=str(e)) from e
    raise HTTPException(status_code=500, detail=str(e)) from e


def create_app(
    runtime: Any,
    token: str | None = None,
    enable_cors: bool = False,
    watch: bool = False,
    document: str | None = None,
) -> FastAPI:
    """
    Create FastAPI application with runtime injected.

    Args:
        runtime: Runtime instance with store and host
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware
        watch: Start the filesystem watcher for the app's lifetime
        document: Handle to open when the app starts

    Returns:
        FastAPI application instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if watch:
            runtime.store.start_watching()
        if document is not None:
            try:
                await runtime.host.open_diagram(document)
            except MindMapError as e:
                logger.warning("Could not open {}: {}", document, e)
        try:
            yield
        finally:
            runtime.host.close()
            if watch:
                runtime.store.stop_watching()

    app = FastAPI(
        title="mindmapx API",
        description="Local JSON API for a live Markdown mind map",
        version="0.1.0",
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
        lifespan=lifespan,
    )

    # Add CORS middleware if enabled
    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Security setup
    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    def current_view() -> MindMapView:
        view = runtime.host.view
        if view is None or view.diagram is None:
            raise HTTPException(status_code=409, detail="No diagram open")
        return view

    def diagram_response(view: MindMapView) -> dict[str, Any]:
        payload = to_payload(view.diagram)
        payload["document"] = view.handle
        payload["title"] = view.display_text()
        payload["features"] = sorted(view.engine.features)
        payload["editing"] = view.overlay.active
        return payload

    @app.get("/health")
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Health check endpoint."""
        view = runtime.host.view
        return {"status": "ok", "document": view.handle if view else None}

    @app.post("/open")
    async def open_document(req: OpenRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Bind the view to a document and render it."""
        try:
            handle = runtime.handle_for(runtime.store.root / req.path)
        except StorageError as e:
            raise HTTPException(status_code=404, detail=f"Document {req.path} not found") from e
        if not runtime.store.exists(handle):
            raise HTTPException(status_code=404, detail=f"Document {req.path} not found")
        try:
            await runtime.host.open_diagram(handle)
        except MindMapError as e:
            _raise_http(e)
        return diagram_response(current_view())

    @app.get("/diagram")
    async def diagram(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Current diagram payload."""
        return diagram_response(current_view())

    @app.post("/refresh")
    async def refresh(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Re-read the document, re-render and fit."""
        view = current_view()
        try:
            await view.refresh()
        except MindMapError as e:
            _raise_http(e)
        return diagram_response(view)

    @app.post("/zoom/in")
    async def zoom_in(auth: None = Depends(verify_token)) -> dict[str, Any]:
        view = current_view()
        view.zoom_in()
        return {"scale": view.viewport.scale, "diagram_scale": view.diagram.scale}

    @app.post("/zoom/out")
    async def zoom_out(auth: None = Depends(verify_token)) -> dict[str, Any]:
        view = current_view()
        view.zoom_out()
        return {"scale": view.viewport.scale, "diagram_scale": view.diagram.scale}

    @app.post("/zoom/wheel")
    async def zoom_wheel(req: WheelRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        view = current_view()
        consumed = view.on_wheel(req.delta, req.modifier)
        return {
            "consumed": consumed,
            "scale": view.viewport.scale,
            "diagram_scale": view.diagram.scale,
        }

    @app.post("/fit")
    async def fit(auth: None = Depends(verify_token)) -> dict[str, Any]:
        view = current_view()
        view.fit()
        return {"scale": view.viewport.scale, "diagram_scale": view.diagram.scale}

    @app.post("/edit/start")
    async def start_edit(req: StartEditRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Open the edit overlay on a node (double-click)."""
        view = current_view()
        anchor = Geometry(left=req.left, top=req.top, width=req.width, font_size=req.font_size)
        started = view.on_node_double_click(req.text, anchor)
        session = view.overlay.session
        return {
            "started": started,
            "text": session.original_text if session else None,
        }

    @app.post("/edit/commit")
    async def commit_edit(req: CommitRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        view = current_view()
        try:
            outcome = await view.commit_edit(req.value)
        except MindMapError as e:
            _raise_http(e)
        return {"outcome": outcome.value}

    @app.post("/edit/cancel")
    async def cancel_edit(auth: None = Depends(verify_token)) -> dict[str, Any]:
        view = current_view()
        return {"cancelled": view.cancel_edit()}

    @app.post("/edit/key")
    async def edit_key(req: KeyRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        view = current_view()
        try:
            outcome = await view.overlay.handle_key(req.key)
        except MindMapError as e:
            _raise_http(e)
        return {"outcome": outcome.value if outcome else None, "editing": view.overlay.active}

    @app.post("/editor-change")
    async def editor_change(req: OpenRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Report live typing in an external editor."""
        handle = runtime.store.handle_for(Path(runtime.store.root) / req.path)
        if handle is not None:
            runtime.store.notify_editor_change(handle)
        return {"document": handle}

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
