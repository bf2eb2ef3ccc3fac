#!/usr/bin/env python3
"""
Gatehouse -- forward-authentication gateway for reverse proxies.

Usage:
  python main.py
  python main.py --host 127.0.0.1 --port 9091
  python main.py --check

Environment variables (or a .env file in the working directory):
  JWT_KEY       Shared signing secret, at least 32 characters.
  PORT          Listen port.
  COOKIE_NAME   Name of the session cookie.
  USERNAME      Static login username.
  PASSWORD      Static login password.
  EXPIRE_IN     Session lifetime in days.
  SESSION_MODE  shared_secret (default) or credential_hash.
"""

import argparse
import sys

import uvicorn
from pydantic import ValidationError

from core.config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="gatehouse",
        description="Forward-authentication gateway: login form plus a /verify endpoint for reverse proxies.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --port 9091
  JWT_KEY=... USERNAME=admin PASSWORD=... python main.py --check
        """,
    )
    parser.add_argument("--host", default=None, help="Listen address (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: PORT)")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate the configuration and exit without starting the server",
    )
    args = parser.parse_args()

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"  [!] Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(1)

    if args.check:
        print(f"Configuration OK (session_mode={settings.session_mode}, cookie={settings.cookie_name}).")
        return

    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
