"""Token exchange service protocol.

Callers depend on this interface rather than the concrete IAM client, so
an alternative credential provider can stand in (including in tests).
"""

from typing import Protocol, runtime_checkable

from iam.models import AccessToken, IMSToken


@runtime_checkable
class TokenExchangeService(Protocol):
    async def exchange_refresh_token_for_access_token(
        self, refresh_token: str, logger=None
    ) -> AccessToken: ...

    async def exchange_access_token_for_ims_token(
        self, access_token: AccessToken, logger=None
    ) -> IMSToken: ...

    async def exchange_iam_api_key_for_ims_token(self, api_key: str, logger=None) -> IMSToken: ...

    async def exchange_iam_api_key_for_access_token(
        self, api_key: str, logger=None
    ) -> AccessToken: ...

    def update_api_key(self, api_key: str, logger=None) -> None:
        """Credential-rotation hook."""
        ...
