#!/usr/bin/env python3
"""
Ride Auth API server.

Runs the FastAPI application with uvicorn.
"""

import argparse
import logging
import os

import uvicorn

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Ride Auth API server"
    )
    parser.add_argument(
        "--host",
        default=os.getenv("API_HOST", "0.0.0.0"),
        help="Bind address (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("API_PORT", "8000")),
        help="Bind port (default: 8000)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Reload on code changes (development)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    )

    logger.info(f"Starting Ride Auth API on {args.host}:{args.port}...")
    logger.info("Auth endpoints: POST /api/v1/auth/otp/request, /api/v1/auth/otp/verify, /api/v1/auth/token/refresh")
    logger.info("Session endpoint: GET /api/v1/auth/session")

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if args.verbose else "info"
    )


if __name__ == "__main__":
    main()
