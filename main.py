"""Command-line interface for the visitor kiosk backend."""

from __future__ import annotations
import argparse
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

import httpx

from kiosk.config import (
    ConfigurationError,
    ServiceSettings,
    load_configured_directory,
    load_settings,
)

logger = logging.getLogger("kiosk.main")

_DEFAULT_SERVICE_URL = "http://localhost:8080"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Visitor kiosk backend utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: $PORT or 8080)",
    )
    serve_parser.add_argument(
        "--directory",
        default=None,
        help="Path to the staff directory YAML file (default: $KIOSK_DIRECTORY_PATH)",
    )

    search_parser = subparsers.add_parser(
        "search", help="Query the directory of a running kiosk service"
    )
    search_parser.add_argument("query", help="Name, email, department or job title fragment")
    search_parser.add_argument(
        "--service-url",
        default=None,
        help=f"Base URL of a running kiosk service (default: {_DEFAULT_SERVICE_URL})",
    )

    check_parser = subparsers.add_parser(
        "check-config", help="Validate the staff directory file and exit"
    )
    check_parser.add_argument("--directory", default=None, help="Path to the directory YAML file")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "search", "check-config"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _serve(*, settings: ServiceSettings, host: str) -> None:
    from kiosk.service import create_app
    import uvicorn

    app = create_app(settings=settings)

    logger.info("Visitor Kiosk Backend running on port %s", settings.port)
    logger.info("Health check: /health")
    logger.info("Environment: %s", settings.environment)

    uvicorn.run(app, host=host, port=settings.port, log_level="info")


def _search(query: str, *, service_url: str | None = None) -> int:
    base_url = service_url or os.getenv("KIOSK_SERVICE_URL") or _DEFAULT_SERVICE_URL
    endpoint = base_url.rstrip("/") + "/api/directory/search"

    try:
        response = httpx.post(endpoint, json={"query": query}, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact kiosk service: {exc}")
        return 1

    try:
        payload = response.json()
    except ValueError:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {payload.get('error', 'unknown error')}")
        return 1

    users = payload.get("users", [])
    if not users:
        print(f"No directory entries match {query!r}.")
        return 0

    print(f"Found {payload.get('count', len(users))} match(es) for {query!r}:")
    for user in users:
        print(
            f"- {user.get('displayName', '?')} <{user.get('mail', '?')}>"
            f" ({user.get('jobTitle', '?')}, {user.get('department', '?')})"
        )
    return 0


def _check_config(directory_path: str | None) -> int:
    try:
        directory = load_configured_directory(directory_path)
    except (ConfigurationError, ValueError, OSError) as exc:
        print(f"Directory configuration is invalid: {exc}")
        return 1

    print(f"Directory configuration is valid ({len(directory)} user(s)).")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        try:
            settings = load_settings()
        except ConfigurationError as exc:
            raise SystemExit(str(exc)) from exc
        overrides = {}
        if args.port is not None:
            overrides["port"] = args.port
        if args.directory:
            overrides["directory_path"] = Path(args.directory).expanduser().resolve(strict=False)
        if overrides:
            settings = dataclasses.replace(settings, **overrides)
        try:
            _serve(settings=settings, host=args.host)
        except ConfigurationError as exc:
            raise SystemExit(str(exc)) from exc
    elif args.command == "search":
        raise SystemExit(_search(args.query, service_url=args.service_url))
    elif args.command == "check-config":
        raise SystemExit(_check_config(args.directory))


if __name__ == "__main__":
    main()
