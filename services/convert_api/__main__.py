"""Run the Convert API under uvicorn.

Usage:
    python -m services.convert_api [--host HOST] [--port PORT] [--log-level LEVEL]

Defaults come from SILKCONV_HOST, SILKCONV_PORT and SILKCONV_LOG_LEVEL.
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence

import uvicorn

from app.config import HOST, LOG_LEVEL, PORT


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m services.convert_api",
        description="Serve the SILK voice conversion API.",
    )
    parser.add_argument("--host", default=HOST, help=f"Bind address (default: {HOST})")
    parser.add_argument("--port", type=int, default=PORT, help=f"Listen port (default: {PORT})")
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=f"Log level (default: {LOG_LEVEL})",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info("Service starting: http://%s:%d", args.host, args.port)

    uvicorn.run(
        "services.convert_api.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
