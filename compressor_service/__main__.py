"""
Command line entry point.

    python -m compressor_service serve [--host HOST] [--port PORT]
    python -m compressor_service run [--variant local|remote]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

import uvicorn

from . import config
from .errors import PipelineError
from .pipeline import run_pipeline

logger = logging.getLogger("compressor_service")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="compressor_service", description="Batch image compression")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP trigger service")
    serve.add_argument("--host", default=None, help="Listen address (default: HOST setting)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT setting)")

    run = sub.add_parser("run", help="Run one batch and print its summary as JSON")
    run.add_argument("--variant", choices=list(config.VARIANTS), default=None, help="Pipeline variant")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = config.get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    if args.command == "serve":
        host = args.host or settings.host
        port = args.port or settings.port
        logger.info("Server running on http://%s:%d", host, port)
        logger.info("Place images in %s and visit /compress to process them.", settings.input_dir)
        uvicorn.run("compressor_service.api:create_app", factory=True, host=host, port=port)
        return 0

    try:
        summary = run_pipeline(variant=args.variant, settings=settings)
    except PipelineError as exc:
        logger.error("%s: %s", exc.kind, exc)
        return 1
    print(json.dumps(summary.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
