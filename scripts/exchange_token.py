#!/usr/bin/env python3
"""Run a single IAM token exchange against a live endpoint.

Client ID/secret, retry and TLS settings come from IAM_* environment
variables (or .env). Token values are never printed. Run from an installed
checkout (`pip install -e .`).

Usage:
    python scripts/exchange_token.py --grant api-key-access --credential "$IBMCLOUD_API_KEY"
    python scripts/exchange_token.py --grant api-key-ims --credential "$KEY" --iam-url https://iam.test.cloud.ibm.com
    python scripts/exchange_token.py --grant refresh-token --credential "$REFRESH" --attempts 1
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from iam.models import AccessToken
from iam.token_exchange import IAMTokenExchangeService
from shared.config import Settings
from shared.exceptions import TokenExchangeError
from shared.logging import configure_logging

GRANTS = ("refresh-token", "api-key-access", "api-key-ims", "access-ims")


async def exchange(service: IAMTokenExchangeService, grant: str, credential: str):
    if grant == "refresh-token":
        return await service.exchange_refresh_token_for_access_token(credential)
    if grant == "api-key-access":
        return await service.exchange_iam_api_key_for_access_token(credential)
    if grant == "api-key-ims":
        return await service.exchange_iam_api_key_for_ims_token(credential)
    return await service.exchange_access_token_for_ims_token(AccessToken(token=credential))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Exchange a credential at an IAM token endpoint")
    parser.add_argument("--grant", choices=GRANTS, required=True, help="Exchange to perform")
    parser.add_argument("--credential", required=True, help="Refresh token, access token or API key")
    parser.add_argument("--iam-url", default=None, help="Override IAM_IAM_URL")
    parser.add_argument(
        "--attempts",
        type=int,
        default=None,
        help="Override IAM_RETRY_MAX_ATTEMPTS (default: from settings)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    overrides: dict = {}
    if args.iam_url:
        overrides["iam_url"] = args.iam_url
    if args.attempts is not None:
        overrides["retry_max_attempts"] = args.attempts
    settings = Settings(**overrides)
    configure_logging(json_output=args.json_logs or settings.log_json, level=settings.log_level)

    async with IAMTokenExchangeService.from_settings(settings) as service:
        try:
            token = await exchange(service, args.grant, args.credential)
        except TokenExchangeError as exc:
            print(f"FAILED [{exc.code}] {exc}")
            for layer in exc.wrapped:
                print(f"  caused by: {layer}")
            return 1

    print(f"OK: received {type(token).__name__}")
    return 0


def main() -> None:
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
