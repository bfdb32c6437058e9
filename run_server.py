"""API server entry point.

Usage:
    python run_server.py
    python run_server.py --host 0.0.0.0 --port 9000 --log-level debug

    # Force inline processing, as on a serverless host:
    python run_server.py --execution-mode sync
"""
from __future__ import annotations

import argparse
import logging

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Fusion Engine API Server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    parser.add_argument(
        "--execution-mode",
        default=None,
        choices=["auto", "sync", "async"],
        help="Override job execution mode (default: FE_API_EXECUTION_MODE or auto-detect)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    import uvicorn

    from fusion_engine.api.config import ApiSettings
    from fusion_engine.api.main import create_app

    overrides = {"host": args.host, "port": args.port, "log_level": args.log_level}
    if args.execution_mode:
        overrides["execution_mode"] = args.execution_mode
    settings = ApiSettings(**overrides)

    logger.info("Starting Fusion Engine API on %s:%s", args.host, args.port)
    if args.reload:
        # Reload re-imports the app from an import string; settings come from the environment.
        uvicorn.run("fusion_engine.api.main:create_app", factory=True, host=args.host, port=args.port, reload=True)
    else:
        uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
