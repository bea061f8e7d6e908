"""CLI entrypoint for the llm-webchat config mirror server."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path

import uvicorn

from .config import ensure_config_dir, load_config
from .logging_utils import configure_logging
from .server import create_app


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-webchat",
        description="llm-webchat - config mirror server for the browser chat client",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.toml (default: ~/.config/llm-webchat/config.toml)",
    )
    parser.add_argument("--host", default=None, help="Override [server].host")
    parser.add_argument("--port", type=int, default=None, help="Override [server].port")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Load configuration, wire logging, and serve the mirror endpoints."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("llm-webchat")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"llm-webchat {version}")
        return

    ensure_config_dir()
    config = load_config(args.config)
    configure_logging(config["logging"])

    server = config["server"]
    app = create_app(
        server["config_file"],
        static_dir=server["static_dir"] or None,
        cors_origins=server["cors_origins"],
    )
    uvicorn.run(
        app,
        host=args.host or server["host"],
        port=args.port or server["port"],
        log_config=None,
    )


if __name__ == "__main__":
    main()
