#!/usr/bin/env python3
"""
Command-Line Interface for the Image Flash Pipeline

Usage:
    imageflash flash-kernel                      # Flash the kernel alone
    imageflash flash-kernel-and-app blink        # Flash kernel + blink app
    imageflash compose blink                     # Build the combined image only
    imageflash transcode [blink]                 # Build the hex file only
    imageflash show-config                       # Print effective configuration
"""

import argparse
import logging
import sys
from typing import List, Optional

import yaml

from .errors import ConfigError, FlashFailed, ImageFlashError
from .models import ApplicationDescriptor, FlasherConfig
from .pipeline import FlashPipeline

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def setup_logging(level: str, log_file: Optional[str] = None):
    """Configure logging. Log lines go to stderr, results to stdout."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imageflash",
        description="Compose kernel and application images and flash them over J-Link",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  imageflash flash-kernel                          # Kernel only, static script
  imageflash flash-kernel-and-app blink            # Kernel with the blink app
  imageflash -c board.yaml flash-kernel-and-app blink
  imageflash --timeout 60 flash-kernel             # Give up after 60 seconds
        """,
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to YAML config file (default: board preset)",
    )
    parser.add_argument(
        "-b", "--board",
        default="nrf51dk",
        help="Board preset when no config file is given (default: nrf51dk)",
    )
    parser.add_argument("--board-dir", default=None, help="Board build directory")
    parser.add_argument("--apps-dir", default=None, help="Application source directory")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the programmer (default: wait indefinitely)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("flash-kernel", help="Flash the kernel alone")
    p = sub.add_parser("flash-kernel-and-app", help="Flash the kernel with an application")
    p.add_argument("app", help="Application name")
    p = sub.add_parser("compose", help="Build the combined kernel+application image")
    p.add_argument("app", help="Application name")
    p = sub.add_parser("transcode", help="Build the hex file for the kernel or a combined image")
    p.add_argument("app", nargs="?", default=None, help="Application name (kernel if omitted)")
    sub.add_parser("show-config", help="Print the effective configuration")
    return parser


def load_config(args: argparse.Namespace) -> FlasherConfig:
    """Config file or board preset, with command-line overrides."""
    if args.config:
        config = FlasherConfig.from_yaml(args.config)
    else:
        config = FlasherConfig.for_board(args.board)

    if args.board_dir:
        config.paths.board_dir = args.board_dir
    if args.apps_dir:
        config.paths.apps_dir = args.apps_dir
    if args.timeout is not None:
        config.flash.timeout = args.timeout
    if args.verbose:
        config.log_level = "DEBUG"
    return config


def run(args: argparse.Namespace, config: FlasherConfig) -> int:
    if args.command == "show-config":
        print(yaml.safe_dump(config.to_dict(), sort_keys=False), end="")
        return EXIT_OK

    pipeline = FlashPipeline(config)
    app = ApplicationDescriptor(args.app) if getattr(args, "app", None) else None

    if args.command == "flash-kernel":
        pipeline.flash_kernel()
        print("\nKernel flashed successfully!")
    elif args.command == "flash-kernel-and-app":
        pipeline.flash_kernel_and_app(app)
        print(f"\nKernel and {app.name} flashed successfully!")
    elif args.command == "compose":
        print(pipeline.build_combined_image(app))
    elif args.command == "transcode":
        if app is None:
            print(pipeline.build_kernel_hex())
        else:
            print(pipeline.build_combined_hex(app))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
        app = getattr(args, "app", None)
        if app is not None:
            ApplicationDescriptor(app)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(config.log_level, config.log_file)

    try:
        return run(args, config)
    except ImageFlashError as e:
        where = e.stage.value if e.stage else "setup"
        print(f"Error [{where}]: {e}", file=sys.stderr)
        if isinstance(e, FlashFailed) and e.output:
            print("-" * 50, file=sys.stderr)
            print(e.output.rstrip(), file=sys.stderr)
            print("-" * 50, file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
