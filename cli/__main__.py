"""Entry point for running the CLI as a module."""

import argparse
import asyncio
import sys

from .relay_cli import main


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Interactive terminal chat for the relaychat server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default="localhost",
        help="Server host (default: localhost)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Server port (default: 8000)",
    )
    parser.add_argument(
        "--api-path",
        type=str,
        default="/api",
        help="API path (default: /api)",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model to select and remember (default: stored choice)",
    )
    parser.add_argument(
        "--prefs-file",
        type=str,
        default=None,
        help="Preferences file (default: ~/.config/relaychat/preferences.json)",
    )
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Keep the API key and model only for this session",
    )
    parser.add_argument(
        "--live-stats",
        action="store_true",
        help="Show live throughput while the answer streams",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (shows response headers)",
    )

    return parser.parse_args()


def cli_entry() -> None:
    """CLI entry point."""
    args = parse_args()

    try:
        asyncio.run(
            main(
                host=args.host,
                port=args.port,
                api_path=args.api_path,
                model=args.model,
                prefs_file=args.prefs_file,
                persist=not args.no_persist,
                debug=args.debug,
                live_stats=args.live_stats,
            )
        )
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    cli_entry()
