"""Command line entry point for the remote allocation server."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

import uvicorn

from remote_ipam.config import ServerSettings
from remote_ipam.errors import RemoteIpamError
from remote_ipam.server import create_app

logger = logging.getLogger(__name__)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = ServerSettings.from_file(args.config)
        app = create_app(settings)
    except RemoteIpamError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    host = args.host or settings.listen_host
    port = args.port or settings.listen_port
    logger.info(
        "serving %d scope(s) on %s:%d%s",
        len(settings.ranges),
        host,
        port,
        settings.http_path,
    )
    uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="remote-ipam-server")
    parser.add_argument("--config", required=True, help="path to the server configuration file")
    parser.add_argument("--host", help="override the listen host from the configuration")
    parser.add_argument("--port", type=int, help="override the listen port from the configuration")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
    )
    return parser


if __name__ == "__main__":
    raise SystemExit(main())
