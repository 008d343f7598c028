"""
Run script for starting the Marta intake agent server.

This script validates the configuration and starts the FastAPI server with
WebSocket settings suited to Twilio Media Streams.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys

import uvicorn

from marta.config.logging_config import configure_logging
from marta.config.settings import get_settings, load_dotenv_file, validate_settings
from marta.errors import ConfigError

load_dotenv_file()

logger = configure_logging()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Start the Marta intake agent server")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "10000")),
        help="Port to run the server on (default: 10000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point: fail fast on bad configuration, then serve."""
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        settings = validate_settings(get_settings())
    except ConfigError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        print("Set them in .env or in the process environment.", file=sys.stderr)
        sys.exit(1)

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Realtime model: {settings.realtime_model}, turn mode: {settings.turn_mode}")

    uvicorn.run(
        "marta.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        # We have our own logging
        access_log=False,
        ws_ping_interval=5,
        ws_ping_timeout=20,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
