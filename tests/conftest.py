"""Shared test fixtures."""

import sys
from pathlib import Path

import httpx
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from iam.models import AuthConfiguration, RetryPolicy  # noqa: E402
from iam.token_exchange import IAMTokenExchangeService  # noqa: E402
from tests.helpers import CLIENT_ID, CLIENT_SECRET, IAM_URL  # noqa: E402


@pytest.fixture
def auth_config():
    return AuthConfiguration(
        iam_url=IAM_URL,
        iam_client_id=CLIENT_ID,
        iam_client_secret=CLIENT_SECRET,
    )


@pytest.fixture
def fast_retry_policy():
    """Three attempts with no wait, so retry tests finish instantly."""
    return RetryPolicy(max_attempts=3, interval_seconds=0)


@pytest.fixture
async def service(auth_config, fast_retry_policy):
    async with httpx.AsyncClient() as client:
        yield IAMTokenExchangeService(auth_config, client, retry_policy=fast_retry_policy)
