"""
Command-line interface for the themedev development server.

Parses arguments, loads the configuration, derives the hot-reload feature
flag and runs the dev server until it is interrupted.
"""

import argparse
import asyncio
import logging
import sys
import tomllib
from pathlib import Path
from typing import List, Optional

from ..config import get_config, get_config_info, set_config_path
from ..features import load_package_dependencies, resolve_hmr_enabled
from ..orchestration import DevServer
from ..validation import ValidationError, handle_cli_error

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s\t %(message)s"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="themedev",
        description="Build theme assets on change and live-reload the proxied site.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Path to devserver.toml. Defaults to conf/devserver.toml.",
    )
    hmr = parser.add_mutually_exclusive_group()
    hmr.add_argument(
        "--hmr",
        action="store_true",
        help="Enable hot module replacement for the script pipeline.",
    )
    hmr.add_argument(
        "--disable-hmr",
        action="store_true",
        help="Disable hot module replacement even if React is a dependency.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO).",
    )
    return parser


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface.

    Raises:
        SystemExit: Always; 0 after a clean shutdown, 1 on errors
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )

    if args.config is not None:
        set_config_path(args.config)

    try:
        app_config = get_config()
    except (FileNotFoundError, KeyError, ValidationError, tomllib.TOMLDecodeError) as e:
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=1,
            logger=logger,
        )
    logger.debug(f"Configuration state: {get_config_info()}")

    hmr_enabled = resolve_hmr_enabled(
        disable_flag=args.disable_hmr,
        enable_flag=args.hmr,
        dependencies=load_package_dependencies(app_config.server.package_json),
    )

    exit_code = asyncio.run(DevServer(app_config, hmr_enabled=hmr_enabled).run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main_cli()
