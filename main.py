#!/usr/bin/env python3
"""
recommendli - Spotify recommendations API.

Runs the HTTP server that handles the Spotify login flow and the protected API.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="recommendli API server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the API (reads SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET from the environment)
  python main.py --serve

  # Serve on a different port
  python main.py --serve --port 8080
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API server")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=9999, help="Server listen port (default: 9999)")

    args = parser.parse_args()

    try:
        if args.serve:
            from recommendli.api.server import run

            run(host=args.host, port=args.port)
            return

        # No arguments provided
        parser.print_help()

    except Exception as e:
        print(f"Error starting recommendli: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
