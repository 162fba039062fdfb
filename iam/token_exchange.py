"""IAM token exchange client.

Exchanges refresh tokens, access tokens and IAM API keys for access
tokens or IMS tokens via `POST {iam_url}/oidc/token`.

All four exchanges share one send-and-classify routine and differ only
in the grant fields they post and the token they project from the
response. Connection errors are retried under the RetryPolicy; every
other failure surfaces on the first attempt.
"""

import asyncio
import base64
import time

import httpx
import structlog
from pydantic import ValidationError

from iam.error_chain import ConnectionErrorClassifier, is_connection_error
from iam.http_client import build_http_client, call_with_retry
from iam.models import (
    IMS_PORTAL_RESPONSE_TYPE,
    AccessToken,
    AuthConfiguration,
    GrantType,
    IMSToken,
    RetryPolicy,
    TokenExchangeErrorResponse,
    TokenExchangeResponse,
    parse_success_body,
)
from shared.config import Settings, get_settings
from shared.exceptions import (
    FailedTokenExchangeError,
    ProviderAccountTemporarilyLockedError,
    TokenExchangeError,
    UnclassifiedError,
)
from shared.metrics import (
    token_exchange_duration_seconds,
    token_exchange_requests_total,
    token_exchange_retries_total,
)

logger = structlog.get_logger()

_OUTCOMES = {
    ProviderAccountTemporarilyLockedError: "locked",
    FailedTokenExchangeError: "failed",
}


def _outcome(exc: BaseException) -> str:
    for exc_type, outcome in _OUTCOMES.items():
        if isinstance(exc, exc_type):
            return outcome
    return "unclassified"


class IAMTokenExchangeService:
    """Token exchange against an IAM `/oidc/token` endpoint.

    The HTTP client is shared by every call and never mutated, so one
    instance can serve concurrent callers.
    """

    def __init__(
        self,
        auth_config: AuthConfiguration,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
        classifier: ConnectionErrorClassifier | None = None,
    ) -> None:
        self.auth_config = auth_config
        self.retry_policy = retry_policy or RetryPolicy()
        self._http_client = http_client
        self._classifier = classifier or is_connection_error
        self._owns_client = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "IAMTokenExchangeService":
        """Build a service with the default TLS-aware transport."""
        settings = settings or get_settings()
        service = cls(
            AuthConfiguration.from_settings(settings),
            build_http_client(settings),
            retry_policy=RetryPolicy.from_settings(settings),
        )
        service._owns_client = True
        return service

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "IAMTokenExchangeService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Exchanges ────────────────────────────────────────────────

    async def exchange_refresh_token_for_access_token(
        self, refresh_token: str, logger=None, timeout: float | None = None
    ) -> AccessToken:
        fields = {
            "grant_type": GrantType.REFRESH_TOKEN.value,
            "refresh_token": refresh_token,
        }
        resp = await self._exchange(fields, logger, timeout)
        return AccessToken(token=resp.access_token or "")

    async def exchange_access_token_for_ims_token(
        self, access_token: AccessToken, logger=None, timeout: float | None = None
    ) -> IMSToken:
        fields = {
            "grant_type": GrantType.DERIVE.value,
            "response_type": IMS_PORTAL_RESPONSE_TYPE,
            "access_token": access_token.token,
        }
        resp = await self._exchange(fields, logger, timeout)
        return IMSToken(user_id=resp.ims_user_id or 0, token=resp.ims_token or "")

    async def exchange_iam_api_key_for_ims_token(
        self, api_key: str, logger=None, timeout: float | None = None
    ) -> IMSToken:
        fields = {
            "grant_type": GrantType.APIKEY.value,
            "response_type": IMS_PORTAL_RESPONSE_TYPE,
            "apikey": api_key,
        }
        resp = await self._exchange(fields, logger, timeout)
        return IMSToken(user_id=resp.ims_user_id or 0, token=resp.ims_token or "")

    async def exchange_iam_api_key_for_access_token(
        self, api_key: str, logger=None, timeout: float | None = None
    ) -> AccessToken:
        fields = {
            "grant_type": GrantType.APIKEY.value,
            "apikey": api_key,
        }
        resp = await self._exchange(fields, logger, timeout)
        return AccessToken(token=resp.access_token or "")

    def update_api_key(self, api_key: str, logger=None) -> None:
        """No-op: this service holds no API key of its own to rotate."""
        return None

    # ── Send and classify ────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        basic = f"{self.auth_config.iam_client_id}:{self.auth_config.iam_client_secret}"
        encoded = base64.b64encode(basic.encode()).decode()
        return {
            "Authorization": f"Basic {encoded}",
            "Accept": "application/json",
        }

    async def _exchange(
        self, fields: dict[str, str], log, timeout: float | None
    ) -> TokenExchangeResponse:
        grant_type = fields["grant_type"]
        log = (log or logger).bind(grant_type=grant_type, url=self.auth_config.token_url)

        def count_retry() -> None:
            token_exchange_retries_total.labels(grant_type=grant_type).inc()

        async def attempt() -> TokenExchangeResponse:
            return await self._send(fields, log)

        start = time.perf_counter()
        try:
            async with asyncio.timeout(timeout):
                resp = await call_with_retry(
                    attempt,
                    self.retry_policy,
                    classifier=self._classifier,
                    log=log,
                    on_retry=count_retry,
                )
        except TokenExchangeError as exc:
            token_exchange_requests_total.labels(
                grant_type=grant_type, outcome=_outcome(exc)
            ).inc()
            raise
        except TimeoutError:
            log.error("iam_token_exchange_timed_out", timeout_seconds=timeout)
            token_exchange_requests_total.labels(grant_type=grant_type, outcome="timeout").inc()
            raise
        except asyncio.CancelledError:
            token_exchange_requests_total.labels(grant_type=grant_type, outcome="cancelled").inc()
            raise
        finally:
            token_exchange_duration_seconds.labels(grant_type=grant_type).observe(
                time.perf_counter() - start
            )

        token_exchange_requests_total.labels(grant_type=grant_type, outcome="success").inc()
        return resp

    async def _send(self, fields: dict[str, str], log) -> TokenExchangeResponse:
        log.info("iam_token_exchange_request_sending")
        try:
            resp = await self._http_client.post(
                self.auth_config.token_url, data=fields, headers=self._headers()
            )
        except httpx.TransportError as exc:
            log.error("iam_token_exchange_request_failed", error=str(exc))
            # TODO: surface httpx.TimeoutException as its own error kind once callers need to tell it apart
            raise UnclassifiedError("IAM token exchange request failed", exc) from exc

        if resp.status_code == 200:
            try:
                body = parse_success_body(resp.content)
            except ValidationError as exc:
                log.error("iam_token_exchange_response_unparseable", status_code=200)
                raise UnclassifiedError(
                    "IAM token exchange request failed",
                    exc,
                    status_code=200,
                    response_body=resp.text,
                ) from exc
            log.debug("iam_token_exchange_request_successful")
            return body

        # Only 200 counts as success; other 2xx codes are handled as errors.
        error = _parse_error_body(resp)
        if error.has_error_message:
            log.error(
                "iam_token_exchange_request_rejected",
                status_code=resp.status_code,
                error_message=error.error_message,
                error_type=error.error_type,
                requirement_code=error.requirement_code,
            )
            failure = FailedTokenExchangeError(
                error.error_message or "",
                error_type=error.error_type or "",
                error_details=error.error_details or "",
                requirement_code=error.requirement_code,
                requirement_error=error.requirement_error,
                status_code=resp.status_code,
            )
            if error.is_account_locked:
                raise ProviderAccountTemporarilyLockedError(failure) from failure
            raise failure

        log.error(
            "iam_token_exchange_unexpected_response",
            status_code=resp.status_code,
            body=resp.text[:200],
        )
        raise UnclassifiedError(
            "Unexpected IAM token exchange response",
            f"HTTP {resp.status_code}",
            status_code=resp.status_code,
            response_body=resp.text,
        )


def _parse_error_body(resp: httpx.Response) -> TokenExchangeErrorResponse:
    """Decode an error body; anything unparseable reads as an empty error."""
    try:
        return TokenExchangeErrorResponse.model_validate_json(resp.content)
    except ValidationError:
        return TokenExchangeErrorResponse()
