"""bucketstore CLI.

Usage:
    python -m bucketstore serve [--host HOST] [--port PORT] [--root DIR]
    python -m bucketstore digest FILE [--root DIR]

Exit codes:
    0: Success
    1: Internal error
    2: Invalid configuration or unreadable input
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from bucketstore.config import ConfigError, StoreConfig
from bucketstore.storage.errors import StorageIOError
from bucketstore.storage.hashing import ContentHasher

logger = logging.getLogger(__name__)


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str) -> dict[str, Any]:
    """Create an error result dict."""
    return {"error": {"code": code, "message": message}}


def cmd_serve(args: argparse.Namespace, config: StoreConfig) -> int:
    """Run the HTTP server with uvicorn."""
    import uvicorn

    from bucketstore.api.main import create_app

    host = args.host or config.host
    port = args.port or config.port

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(config=config)
    logger.info("File server listening on http://%s:%d (root=%s)", host, port, config.root)
    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())
    return 0


def cmd_digest(args: argparse.Namespace, config: StoreConfig) -> int:
    """Print the content fingerprint of a local file.

    Exit codes:
        0: Fingerprint printed
        2: File could not be read
    """
    hasher = ContentHasher(config.digest, config.chunk_size)
    path = Path(args.file)
    try:
        fingerprint = hasher.digest(path)
    except StorageIOError as e:
        _output_json(_make_error_result("UNREADABLE_INPUT", e.message))
        return 2

    _output_json({"algorithm": hasher.algorithm, "digest": fingerprint, "file": path.name})
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bucketstore",
        description="bucketstore - content-addressed object store",
    )
    parser.add_argument(
        "--root",
        default=None,
        metavar="DIR",
        help="Storage root (overrides BUCKETSTORE_ROOT)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", default=None, help="Bind host (default: BUCKETSTORE_HOST)")
    serve_parser.add_argument(
        "--port", type=int, default=None, help="Bind port (default: PORT or 33000)"
    )

    digest_parser = subparsers.add_parser("digest", help="Print the fingerprint of a file")
    digest_parser.add_argument("file", metavar="FILE", help="File to hash")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Internal error (unexpected)
        2: Invalid configuration or unreadable input
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return 0

        try:
            config = StoreConfig.from_env(root=args.root)
        except ConfigError as e:
            _output_json(_make_error_result("INVALID_CONFIG", str(e)))
            return 2

        if args.command == "serve":
            return cmd_serve(args, config)

        if args.command == "digest":
            return cmd_digest(args, config)

        return 0

    except Exception as e:
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
