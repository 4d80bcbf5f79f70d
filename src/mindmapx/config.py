"""Configuration loader for mindmap.toml."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .core.model import RenderOptions

CONFIG_NAME = "mindmap.toml"


@dataclass
class StoreConfig:
    """Document store configuration."""
    root: Path


@dataclass
class SyncConfig:
    """Synchronization trigger configuration."""
    debounce_ms: int = 300
    trailing: bool = False
    watch: bool = True


@dataclass
class RenderConfig:
    """Renderer options and drawing surface size."""
    color_freeze_level: int = 2
    duration: int = 300
    max_width: int = 300
    surface_width: int = 1200
    surface_height: int = 800

    def options(self) -> RenderOptions:
        return RenderOptions(
            color_freeze_level=self.color_freeze_level,
            duration=self.duration,
            max_width=self.max_width,
        )


@dataclass
class ViewportConfig:
    """Zoom behaviour."""
    min_scale: float = 0.1
    max_scale: float = 5.0
    zoom_in_factor: float = 1.3
    zoom_out_factor: float = 0.7
    wheel_sensitivity: float = 0.1
    forward_unclamped: bool = False


@dataclass
class EditConfig:
    """Node edit overlay configuration."""
    min_width: int = 100


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"


@dataclass
class MindMapConfig:
    """Complete mindmapx configuration."""
    store: StoreConfig
    sync: SyncConfig
    render: RenderConfig
    viewport: ViewportConfig
    edit: EditConfig
    log: LogConfig


def load_config(config_path: Path | None = None, root: Path | None = None) -> MindMapConfig:
    """
    Load configuration from mindmap.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/mindmap.toml
    3. root/mindmap.toml

    Args:
        config_path: Explicit path to config file
        root: Document root for fallback search

    Returns:
        MindMapConfig with resolved settings
    """
    toml_data: dict[str, Any] = {}

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if root:
        search_paths.append(root / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            break

    store_data = toml_data.get("store", {})
    store_config = StoreConfig(
        root=Path(store_data.get("root", root or Path("."))),
    )

    sync_data = toml_data.get("sync", {})
    sync_config = SyncConfig(
        debounce_ms=sync_data.get("debounce_ms", 300),
        trailing=sync_data.get("trailing", False),
        watch=sync_data.get("watch", True),
    )

    render_data = toml_data.get("render", {})
    render_config = RenderConfig(
        color_freeze_level=render_data.get("color_freeze_level", 2),
        duration=render_data.get("duration", 300),
        max_width=render_data.get("max_width", 300),
        surface_width=render_data.get("surface_width", 1200),
        surface_height=render_data.get("surface_height", 800),
    )

    viewport_data = toml_data.get("viewport", {})
    viewport_config = ViewportConfig(
        min_scale=viewport_data.get("min_scale", 0.1),
        max_scale=viewport_data.get("max_scale", 5.0),
        zoom_in_factor=viewport_data.get("zoom_in_factor", 1.3),
        zoom_out_factor=viewport_data.get("zoom_out_factor", 0.7),
        wheel_sensitivity=viewport_data.get("wheel_sensitivity", 0.1),
        forward_unclamped=viewport_data.get("forward_unclamped", False),
    )

    edit_data = toml_data.get("edit", {})
    edit_config = EditConfig(
        min_width=edit_data.get("min_width", 100),
    )

    log_data = toml_data.get("log", {})
    log_config = LogConfig(
        level=log_data.get("level", "INFO"),
    )

    return MindMapConfig(
        store=store_config,
        sync=sync_config,
        render=render_config,
        viewport=viewport_config,
        edit=edit_config,
        log=log_config,
    )
