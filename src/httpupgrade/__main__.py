"""
=============================================================================
HTTPUPGRADE CLI ENTRY POINT
=============================================================================

Connects to a server, performs one protocol upgrade, and writes a greeting
over the raw connection.

=============================================================================
USAGE
=============================================================================

    # Upgrade http://localhost:8080/ to hornetq-remoting
    python -m httpupgrade

    # Another server, shorter wait
    python -m httpupgrade http://broker:8080/ --timeout 10

    # Another protocol (headers become Sec-Acme-Key / Sec-Acme-Accept)
    python -m httpupgrade --protocol acme-binary --label Acme

    # Verbose
    python -m httpupgrade --log-level DEBUG

    # Target from the environment
    UPGRADE_HOST=broker UPGRADE_PORT=5445 python -m httpupgrade

Exit status is 0 when the connection was upgraded, 1 when the upgrade was
rejected or the server could not be reached, 2 when the configuration is
invalid or SHA-1 is unavailable.

=============================================================================
"""

import argparse
import logging
import sys
from dataclasses import replace

from . import __version__
from .config import UpgradeConfig
from .core import ClientConnection
from .handshake import DigestUnavailable, HandshakeOrchestrator, ensure_digest_available


logger = logging.getLogger("httpupgrade")

DEFAULT_URL = "http://localhost:8080/"
DEFAULT_GREETING = "Hello, HornetQ!"


def setup_logging(level_name: str) -> None:
    """Configure logging the same way for every entry point."""
    level = getattr(logging, level_name.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("httpupgrade").setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpupgrade",
        description="Upgrade an HTTP connection to a raw binary protocol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpupgrade                                # http://localhost:8080/
  python -m httpupgrade http://broker:8080/ -t 10      # Custom server, 10s wait
  python -m httpupgrade --protocol acme --label Acme   # Other protocol
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # TARGET
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "url",
        nargs="?",
        default=None,
        help=f"Server URL (default: UPGRADE_HOST/PORT/PATH, else {DEFAULT_URL})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--protocol", "-P",
        default=None,
        help="Upgrade token (default: hornetq-remoting)"
    )

    parser.add_argument(
        "--label", "-L",
        default=None,
        help="Header label for Sec-<label>-Key/Accept (default: HornetQRemoting)"
    )

    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=None,
        help="Seconds to wait for the upgrade response (default: UPGRADE_HANDSHAKE_TIMEOUT, else 600)"
    )

    parser.add_argument(
        "--greeting", "-g",
        default=DEFAULT_GREETING,
        help=f"Text written after the upgrade (default: {DEFAULT_GREETING!r}, '' for none)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: UPGRADE_LOG_LEVEL, else INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpupgrade {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> UpgradeConfig:
    """
    Merge the sources: command line over UPGRADE_* variables over defaults.
    """
    config = UpgradeConfig.from_env()

    overrides = {}
    if args.url:
        target = UpgradeConfig.from_url(args.url)
        overrides.update(host=target.host, port=target.port, path=target.path)
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.protocol:
        overrides["protocol"] = args.protocol
    if args.label:
        overrides["header_label"] = args.label
    if args.timeout is not None:
        overrides["handshake_timeout"] = args.timeout

    config = replace(config, **overrides)
    config.validate()
    return config


def run(config: UpgradeConfig, greeting: str = DEFAULT_GREETING) -> int:
    """
    Perform one upgrade and write the greeting.

    Returns:
        Process exit status.
    """
    try:
        connection = ClientConnection.from_config(config)
    except OSError as e:
        logger.error(f"Cannot connect to {config.authority}: {e}")
        return 1

    with connection:
        result = HandshakeOrchestrator(connection, config).upgrade()

        if not result.upgraded:
            logger.error(f"Upgrade failed: {result}")
            return 1

        with result.stream as stream:
            if greeting:
                stream.send(greeting.encode("utf-8"))
                logger.info(f"Sent {len(greeting)} character greeting over {config.protocol}")

    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_level)

    try:
        ensure_digest_available()
    except DigestUnavailable as e:
        logger.critical(str(e))
        return 2

    try:
        return run(config, args.greeting)
    except OSError as e:
        logger.error(f"Connection error after upgrade: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
