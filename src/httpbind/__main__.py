"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:8888)
    python -m httpbind

    # Custom port, all interfaces
    python -m httpbind --host 0.0.0.0 --port 8080

    # Tee the log to files, errors to their own file
    python -m httpbind --log-file httpbind.log --error-log-file httpbind.err.log

Precedence: command-line arguments, then HTTPBIND_* environment
variables, then AppConfig defaults.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .app import configure_logging, create_app
from .binding import default_registry
from .config import AppConfig, LOG_FORMATS, LOG_LEVELS
from .wsgi import serve


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpbind",
        description="Request binding example server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpbind                          # Run with defaults
  python -m httpbind --port 8080              # Custom port
  python -m httpbind --upload-dir /tmp/up     # Where uploads are saved
  python -m httpbind --log-format json        # JSON access log
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8888)")

    # ─────────────────────────────────────────────────────────────────────
    # UPLOADS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--upload-dir", "-u", help="Directory uploads are saved to")

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        help="Logging level (default: INFO)"
    )
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Access log format")
    parser.add_argument("--log-file", help="Also write the log to this file")
    parser.add_argument("--error-log-file", help="Write ERROR and above to this file")

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpbind {__version__}"
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = AppConfig.from_env().with_overrides(
            host=args.host,
            port=args.port,
            upload_dir=args.upload_dir,
            log_level=args.log_level,
            log_format=args.log_format,
            log_file=args.log_file,
            error_log_file=args.error_log_file,
        )
        config.validate()
    except ValueError as e:
        print(f"httpbind: invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(config)
    app = create_app(config, registry=default_registry)
    serve(app)
    return 0


if __name__ == "__main__":
    sys.exit(main())
