"""CLI script to mint a bearer token for local testing of the tasks API."""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Issue a signed JWT for a user id using the configured JWT_SECRET.",
    )
    parser.add_argument("--user-id", type=str, required=True, help="Subject (sub) claim")
    parser.add_argument(
        "--expires-in",
        type=int,
        default=None,
        help="Lifetime in seconds (default: JWT_EXPIRES_SECONDS)",
    )
    parser.add_argument(
        "--email",
        type=str,
        default=None,
        help="Optional email claim",
    )
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    """Print a token for the requested subject and return the exit code."""
    from app.core.config import settings
    from app.core.tokens import TokenVerifier

    args = _parse_args(argv)
    user_id = args.user_id.strip()
    if not user_id:
        message = "--user-id must not be blank"
        raise SystemExit(message)

    verifier = TokenVerifier.from_settings(settings)
    expires_in = timedelta(seconds=args.expires_in) if args.expires_in else None
    extra_claims = {"email": args.email} if args.email else None
    token = verifier.issue(user_id, expires_in=expires_in, extra_claims=extra_claims)
    sys.stdout.write(f"{token}\n")
    return 0


def main() -> None:
    """Run the CLI and exit with its return code."""
    raise SystemExit(run())


if __name__ == "__main__":
    main()
