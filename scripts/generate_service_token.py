#!/usr/bin/env python3
"""
Print a signed service credential, e.g. for calling a collaborator by hand.

Usage:
    python scripts/generate_service_token.py
    python scripts/generate_service_token.py --minutes 5 --header

Environment Variables:
    JWT_SECRET_KEY: Signing secret shared with the collaborators
    SERVICE_KEY: Service key embedded in the token
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.config import settings  # noqa: E402
from app.core.security import ServiceTokenProvider  # noqa: E402


def main() -> None:
    """Mint and print a service token."""
    parser = argparse.ArgumentParser(description="Generate a service-to-service JWT")
    parser.add_argument(
        "--minutes",
        type=int,
        default=settings.service_token_expire_minutes,
        help="Token lifetime in minutes",
    )
    parser.add_argument(
        "--header",
        action="store_true",
        help="Print a complete Authorization header instead of the bare token",
    )
    args = parser.parse_args()

    if args.minutes < 1:
        print("Error: --minutes must be at least 1", file=sys.stderr)
        sys.exit(1)

    provider = ServiceTokenProvider(
        secret_key=settings.jwt_secret_key,
        service_key=settings.service_key,
        issuer=settings.service_token_issuer,
        expires_in=timedelta(minutes=args.minutes),
        algorithm=settings.jwt_algorithm,
    )

    if args.header:
        print(f"Authorization: {provider.auth_headers()['Authorization']}")
    else:
        print(provider.get_token())


if __name__ == "__main__":
    main()
