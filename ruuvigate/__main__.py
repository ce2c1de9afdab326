"""Entry point for RuuviGate: python -m ruuvigate."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .app import RuuviGateApp
from .ble.capture import CaptureError
from .config import load_config
from .models import AppConfig, ListenerMode


def setup_logging(verbose: bool, quiet: bool = False) -> None:
    """Configure logging."""
    if quiet:
        level = logging.WARNING
    else:
        level = logging.DEBUG if verbose else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from libraries
    logging.getLogger("bleak").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="ruuvigate",
        description="Relay RuuviTag broadcasts captured by hcidump to an HTTP collector",
    )

    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log decoded measurements, payloads and collector status codes",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )

    parser.add_argument(
        "-i", "--input",
        type=Path,
        default=None,
        metavar="FILE",
        help="Replay a saved hcidump --raw capture instead of running hcidump ('-' for stdin)",
    )

    parser.add_argument(
        "--collector-url",
        default=None,
        metavar="URL",
        help="Collector endpoint (overrides the configuration file)",
    )

    parser.add_argument(
        "--no-listener",
        action="store_true",
        help="Do not start the background BLE scan",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AppConfig:
    """Load the configuration file and apply command line overrides."""
    logger = logging.getLogger(__name__)

    config_path = args.config.resolve()
    if config_path.exists():
        config = load_config(config_path)
    else:
        logger.warning("Configuration file not found: %s", config_path)
        logger.warning("Running without tag names; delivery needs --collector-url")
        config = AppConfig()

    if args.collector_url:
        config.collector_url = args.collector_url
    if args.no_listener:
        config.listener = ListenerMode.NONE
    return config


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose, quiet=args.quiet)

    logger = logging.getLogger(__name__)

    try:
        config = build_config(args)
    except Exception as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        app = RuuviGateApp(config, input_path=args.input)
        asyncio.run(app.run())
        return 0
    except CaptureError as e:
        logger.error("Capture unavailable: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
