"""CLI entry-point to launch the STL catalog HTTP API."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence

import uvicorn

from api import __version__ as API_VERSION
from api.server import APIServerConfig, create_app
from core.logging_utils import configure_json_logging, redact_secret
from core.paths import ensure_working_dir_structure, resolve_working_dir
from core.settings import load_settings
from scan.types import ScanSettings
from storage.errors import MigrationError, StorageError
from storage.manager import open_storage

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_CORS = ["http://localhost", "http://127.0.0.1"]


def _resolve_bind_host(candidate: Optional[str]) -> str:
    host = (candidate or DEFAULT_HOST).strip()
    if not host:
        host = DEFAULT_HOST
    norm = host.lower()
    if norm in {"localhost", "::1"}:
        return "127.0.0.1"
    if norm.startswith("127."):
        return host
    raise ValueError(f"Refusing to bind API server to non-loopback host '{candidate}'.")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start the local STL catalog API service.")
    parser.add_argument("--host", default=None, help="Bind host (default from settings.json)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default from settings.json)")
    parser.add_argument("--api-key", dest="api_key", default=None, help="Override the API key for this session")
    parser.add_argument(
        "--cors",
        action="append",
        dest="cors",
        default=None,
        help="Additional allowed CORS origin (repeatable).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    args = parse_args(argv)
    working_dir = resolve_working_dir()
    ensure_working_dir_structure(working_dir)
    configure_json_logging(working_dir)
    settings = load_settings(working_dir)
    api_settings = settings.get("api") if isinstance(settings.get("api"), dict) else {}

    try:
        host = _resolve_bind_host(args.host or api_settings.get("host"))
    except ValueError as exc:
        logging.error("%s", exc)
        return 2
    try:
        port = int(args.port or api_settings.get("port") or DEFAULT_PORT)
    except (TypeError, ValueError):
        port = DEFAULT_PORT
    api_key = args.api_key if args.api_key else api_settings.get("api_key")
    cors: List[str] = list(args.cors) if args.cors else list(api_settings.get("cors_origins") or DEFAULT_CORS)

    if api_key:
        logging.info("API key required (%s)", redact_secret(api_key))
    else:
        logging.warning("API key is not configured; requests are not authenticated.")

    try:
        storage = open_storage(settings, working_dir)
        app = create_app(
            APIServerConfig(
                storage=storage,
                scan_settings=ScanSettings.from_settings(settings),
                working_dir=working_dir,
                api_key=api_key,
                cors_origins=cors,
                app_version=API_VERSION,
                default_limit=int(api_settings.get("default_limit") or 100),
                max_page_size=int(api_settings.get("max_page_size") or 500),
            )
        )
    except MigrationError as exc:
        logging.error("Catalog schema migration failed, refusing to start: %s", exc)
        return 2
    except StorageError as exc:
        logging.error("%s", exc)
        return 2

    print(f"API listening on http://{host}:{port}", flush=True)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info", access_log=False))
    try:
        server.run()
    finally:
        storage.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
