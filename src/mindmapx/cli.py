"""CLI for mindmapx - live mind map of a Markdown outline."""

import argparse
import asyncio
import json
import platform
import signal
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .adapters.tree_renderer import to_payload
from .core.line_index import build_index
from .core.model import Geometry, Node
from .core.overlay import EditOutcome
from .logging_config import configure_logging
from .runtime import Runtime, build_runtime


def _format_tree(node: Node, indent: int = 0) -> list[str]:
    lines = [f"{'  ' * indent}- {node.content}"]
    for child in node.children:
        lines.extend(_format_tree(child, indent + 1))
    return lines


def cmd_show(args: argparse.Namespace, rt: Runtime) -> int:
    """Print the mind-map tree of a document."""
    handle = rt.handle_for(args.path)

    async def run() -> Any:
        view = await rt.host.open_diagram(handle)
        rt.host.close()
        return view

    view = asyncio.run(run())

    if args.json:
        print(json.dumps(to_payload(view.diagram), indent=2, ensure_ascii=False))
    else:
        print("\n".join(_format_tree(view.diagram.root)))
    return 0


def cmd_index(args: argparse.Namespace, rt: Runtime) -> int:
    """Print the node-text -> line mapping of a document."""
    handle = rt.handle_for(args.path)
    text = asyncio.run(rt.store.read(handle))
    index = build_index(text)

    if args.json:
        data = {key: [span.start, span.end] for key, span in index.items()}
        print(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        for key, span in sorted(index.items(), key=lambda kv: kv[1].start):
            print(f"{span.start + 1}\t{key}")
    return 0


def cmd_edit(args: argparse.Namespace, rt: Runtime) -> int:
    """Rename a node the way a double-click edit would."""
    handle = rt.handle_for(args.path)

    async def run() -> EditOutcome:
        view = await rt.host.open_diagram(handle)
        try:
            view.on_node_double_click(args.old, Geometry(left=0, top=0, width=0))
            return await view.commit_edit(args.new)
        finally:
            rt.host.close()

    outcome = asyncio.run(run())

    if args.json:
        print(json.dumps({"document": handle, "outcome": outcome.value}))
    elif not args.quiet:
        print(f"{handle}: {outcome.value}")

    if outcome in (EditOutcome.NOT_FOUND, EditOutcome.NOT_EDITABLE, EditOutcome.STALE):
        print(f"Error: no editable line for {args.old!r} in {handle}", file=sys.stderr)
        return 1
    return 0


def cmd_watch(args: argparse.Namespace, rt: Runtime) -> int:
    """Re-render a document whenever it changes."""
    handle = rt.handle_for(args.path)

    def report(engine: Any) -> None:
        root = engine.root
        if args.json:
            event = {
                "type": "render",
                "document": engine.handle,
                "pass": engine.passes,
                "nodes": sum(1 for _ in root.walk()),
                "indexed": len(engine.index),
            }
            print(json.dumps(event), flush=True)
        elif not args.quiet:
            nodes = sum(1 for _ in root.walk())
            print(f"Rendered {engine.handle}: {nodes} nodes (pass {engine.passes})", flush=True)

    async def run() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, stop.set)

        rt.store.start_watching(loop)
        try:
            view = await rt.host.open_diagram(handle)
            view.engine.add_render_listener(report)
            report(view.engine)
            if not args.quiet and not args.json:
                print(f"Watching {handle} (debounce: {rt.config.sync.debounce_ms}ms)", flush=True)
                print("Press Ctrl+C to stop", flush=True)
            await stop.wait()
        finally:
            rt.host.close()
            rt.store.stop_watching()

    asyncio.run(run())

    if not args.quiet and not args.json:
        print("Watch stopped", flush=True)
    return 0


def cmd_serve(args: argparse.Namespace, rt: Runtime) -> int:
    """Start local JSON API server."""
    import uvicorn

    from .api.app import create_app, generate_token

    handle = rt.handle_for(args.path) if args.path else None

    # Determine token
    token_arg = getattr(args, "token", "auto")
    token = None

    if token_arg == "auto":
        token = generate_token()
        print(f"Generated bearer token: {token}")
        print(f"Use in requests: Authorization: Bearer {token}")
    elif token_arg == "none":
        print("Warning: Running without authentication. Only use in trusted environments.")
        token = None
    else:
        token = token_arg

    app = create_app(
        rt,
        token=token,
        enable_cors=args.cors,
        watch=rt.config.sync.watch,
        document=handle,
    )

    print(f"Starting server on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


def _version_string() -> str:
    return f"mindmapx {__version__} (python {platform.python_version()}, platform {platform.system().lower()})"


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="mindmapx", description="Live mind map of a Markdown outline"
    )
    parser.add_argument("--version", action="version", version=_version_string())
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/mindmap.toml, root/mindmap.toml)",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Document root directory (overrides config)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Minimize output"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # show command
    parser_show = subparsers.add_parser("show", help="Print the mind-map tree")
    parser_show.add_argument("path", type=Path, help="Markdown document")

    # index command
    parser_index = subparsers.add_parser("index", help="Print node text -> line mapping")
    parser_index.add_argument("path", type=Path, help="Markdown document")

    # edit command
    parser_edit = subparsers.add_parser("edit", help="Rename a node in place")
    parser_edit.add_argument("path", type=Path, help="Markdown document")
    parser_edit.add_argument("old", help="Node text as displayed")
    parser_edit.add_argument("new", help="Replacement text")

    # watch command
    parser_watch = subparsers.add_parser("watch", help="Re-render on every change")
    parser_watch.add_argument("path", type=Path, help="Markdown document")

    # serve command
    parser_serve = subparsers.add_parser("serve", help="Start local JSON API server")
    parser_serve.add_argument("path", type=Path, nargs="?", help="Document to open at startup")
    parser_serve.add_argument(
        "--host", default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser_serve.add_argument(
        "--port", type=int, default=8765,
        help="Port to bind to (default: 8765)"
    )
    parser_serve.add_argument(
        "--token", default="auto",
        help="Bearer token (auto|<string>|none, default: auto)"
    )
    parser_serve.add_argument(
        "--cors", action="store_true",
        help="Enable CORS (default: false)"
    )

    args = parser.parse_args(argv)

    rt = build_runtime(root=args.root, config_path=args.config)
    configure_logging(verbose=args.verbose, level=rt.config.log.level)

    handlers = {
        "show": cmd_show,
        "index": cmd_index,
        "edit": cmd_edit,
        "watch": cmd_watch,
        "serve": cmd_serve,
    }

    handler = handlers.get(args.cmd)
    if handler:
        try:
            exit_code = handler(args, rt)
            sys.exit(exit_code)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
