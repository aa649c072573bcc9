#!/usr/bin/env python3
"""Issue an admin access token.

Usage:
    python scripts/create_admin_token.py
    python scripts/create_admin_token.py --email ops@zeropay.com --minutes 30
"""

import argparse
from datetime import timedelta
from pathlib import Path

from app.config import settings
from app.core.security import create_admin_token

TOKEN_FILE = Path(__file__).parent.parent / ".admin_token"


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Issue an admin JWT")
    parser.add_argument("--email", default=settings.admin_email, help="Admin email")
    parser.add_argument(
        "--minutes",
        type=int,
        default=settings.access_token_expire_minutes,
        help="Token lifetime in minutes",
    )
    parser.add_argument("--save", action="store_true", help=f"Also write to {TOKEN_FILE.name}")

    args = parser.parse_args()

    token = create_admin_token(args.email, expires_delta=timedelta(minutes=args.minutes))
    if args.save:
        TOKEN_FILE.write_text(token)
    print(token)
