"""Command-line entry point for the scenario editing API server."""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Mapping, MutableMapping, Sequence

import uvicorn

APP_FACTORY = "scriptroom.api.app:create_app"


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scriptroom scenario API server")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface the API server listens on.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port the API server listens on (default: 8080).",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help=(
            "Directory where scenarios, the delta journal and locks are stored "
            "as JSON. Defaults to SCRIPTROOM_DATA_DIR; in-memory when unset."
        ),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level name. Defaults to SCRIPTROOM_LOG_LEVEL or INFO.",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change.",
    )
    return parser.parse_args(argv)


def _environment_overrides(args: argparse.Namespace) -> Mapping[str, str]:
    overrides: dict[str, str] = {}
    if args.data_dir is not None:
        overrides["SCRIPTROOM_DATA_DIR"] = str(args.data_dir.expanduser())
    if args.log_level:
        overrides["SCRIPTROOM_LOG_LEVEL"] = args.log_level
    return overrides


def main(
    argv: Sequence[str] | None = None,
    *,
    environ: MutableMapping[str, str] | None = None,
) -> None:
    """Start the API server with settings taken from ``argv``."""

    args = _parse_args(argv)
    if not 0 < args.port < 65536:
        print(f"--port must be between 1 and 65535, got {args.port}.")
        raise SystemExit(2)

    target = environ if environ is not None else os.environ
    # The app factory reads its settings from the environment, including in
    # reloader subprocesses.
    target.update(_environment_overrides(args))

    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
