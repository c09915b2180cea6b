#!/usr/bin/env python3
"""
Command-line interface.

Usage:
    raptorq-suppa encode INPUT OUTPUT [--config FILE] [--engine raptorq|loopback]
    raptorq-suppa decode INPUT OUTPUT [--config FILE] [--engine raptorq|loopback]

encode writes the external OTI and packets as a length-prefixed stream (see
framing.py); decode reads such a stream back and writes the recovered data.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import build_options, build_strategy, load_config
from .decoder import SuppaDecoder
from .encoder import SuppaEncoder
from .engine import RawEngine
from .errors import SuppaError
from .framing import read_stream, write_stream

logger = logging.getLogger(__name__)

ENGINES = ("raptorq", "loopback")


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(verbose: bool = False):
    """Configure logging for the command-line tool."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def _build_engine(name: str) -> RawEngine:
    if name == "loopback":
        from .testing_utils import LoopbackEngine
        return LoopbackEngine()

    from .raptorq_engine import RaptorQEngine
    return RaptorQEngine()


# =============================================================================
# COMMANDS
# =============================================================================

def run_encode(args) -> int:
    config = load_config(args.config)
    encoder = SuppaEncoder(_build_engine(args.engine), build_strategy(config))

    with open(args.input, "rb") as f:
        data = f.read()

    result = encoder.encode(data, build_options(config))

    with open(args.output, "wb") as f:
        count = write_stream(f, result.oti, result.packets)

    logger.info("Wrote %d packets to %s", count, args.output)
    return 0


def run_decode(args) -> int:
    config = load_config(args.config)
    decoder = SuppaDecoder(_build_engine(args.engine), build_strategy(config))

    with open(args.input, "rb") as f:
        oti, packets = read_stream(f)
        data = decoder.decode(oti, packets)

    with open(args.output, "wb") as f:
        f.write(data)

    logger.info("Wrote %d bytes to %s", len(data), args.output)
    return 0


# =============================================================================
# COMMAND-LINE INTERFACE
# =============================================================================

def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="raptorq-suppa",
        description="Encode/decode data with RaptorQ using compact, configurable headers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Encode with the packaged defaults
  raptorq-suppa encode message.bin message.rq

  # Decode with a custom strategy
  raptorq-suppa decode message.rq message.out --config compact.yaml
        """
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, handler, help_text in (
        ("encode", run_encode, "Encode a file into a framed packet stream"),
        ("decode", run_decode, "Decode a framed packet stream into a file"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument('input', help='Input file')
        sub.add_argument('output', help='Output file')
        sub.add_argument(
            '--config',
            type=str,
            default=None,
            help='Path to configuration YAML file (default: packaged default_config.yaml)'
        )
        sub.add_argument(
            '--engine',
            choices=ENGINES,
            default="raptorq",
            help='Raw engine implementation (default: raptorq)'
        )
        sub.set_defaults(handler=handler)

    return parser.parse_args(argv)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command-line tool."""
    args = parse_arguments(argv)
    setup_logging(verbose=args.verbose)

    try:
        return args.handler(args)
    except (SuppaError, OSError) as e:
        logger.error("%s failed: %s", args.command, e, exc_info=args.verbose)
        return 1


if __name__ == '__main__':
    sys.exit(main())
