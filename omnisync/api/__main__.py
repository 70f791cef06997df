"""CLI entry point for the Omnisync health API.

Usage:
    python -m omnisync.api --host 0.0.0.0 --port 8000 --env-file .env.staging
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

import uvicorn
from dotenv import load_dotenv

from omnisync.api.server import create_app
from omnisync.config import load_config
from omnisync.utils.errors import ConfigError


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging for the API server."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Omnisync Core health API",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument(
        "--env-file",
        default=None,
        help="Dotenv file loaded over the process environment before configuration",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (DEBUG when OMNISYNC_VERBOSE is set, else INFO)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for API server."""
    args = build_parser().parse_args(argv)

    if args.env_file:
        load_dotenv(args.env_file, override=True)

    setup_logging(args.log_level or "INFO")
    logger = logging.getLogger(__name__)

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Refusing to start: {e}")
        return 1

    log_level = args.log_level or ("DEBUG" if config.verbose else "INFO")
    logging.getLogger().setLevel(log_level)

    logger.info(
        f"Starting Omnisync health API on {args.host}:{args.port} "
        f"(environment={config.environment})"
    )

    uvicorn.run(
        create_app(config=config),
        host=args.host,
        port=args.port,
        log_level=log_level.lower(),
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
