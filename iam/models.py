"""Value types for IAM token exchange.

Configuration and token types are immutable. The wire shapes tolerate
missing fields: IAM omits whatever does not apply to a given grant, and
error bodies are often partial or empty.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from shared.config import Settings

ACCOUNT_LOCKED_REQUIREMENT_CODE = "SoftLayer_Exception_User_Customer_AccountLocked"


class GrantType(StrEnum):
    REFRESH_TOKEN = "refresh_token"
    DERIVE = "urn:ibm:params:oauth:grant-type:derive"
    APIKEY = "urn:ibm:params:oauth:grant-type:apikey"


IMS_PORTAL_RESPONSE_TYPE = "ims_portal"


class AuthConfiguration(BaseModel):
    """IAM endpoint and the client credentials used for Basic auth."""

    model_config = ConfigDict(frozen=True)

    iam_url: str
    iam_client_id: str
    iam_client_secret: str

    @property
    def token_url(self) -> str:
        return f"{self.iam_url}/oidc/token"

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfiguration":
        return cls(
            iam_url=settings.iam_url,
            iam_client_id=settings.client_id,
            iam_client_secret=settings.client_secret,
        )


class RetryPolicy(BaseModel):
    """Bounded fixed-interval retry for connection errors."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(40, ge=1)
    interval_seconds: float = Field(3.0, ge=0.0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            interval_seconds=settings.retry_interval_seconds,
        )


class AccessToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str


class IMSToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    token: str


class TokenExchangeResponse(BaseModel):
    """Success body; which fields are filled depends on the grant.

    Explicit nulls are accepted and read as the zero value when a token
    is projected, as is a literal `null` body (see `parse_success_body`).
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str | None = None
    ims_token: str | None = None
    ims_user_id: int | None = None


_success_body = TypeAdapter(TokenExchangeResponse | None)


def parse_success_body(content: bytes) -> TokenExchangeResponse:
    """Decode a 200 body; raises pydantic.ValidationError when it is not a JSON object or null."""
    body = _success_body.validate_json(content)
    if body is None:
        return TokenExchangeResponse()
    return body


class ErrorRequirements(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: str | None = None
    code: str | None = None


class TokenExchangeErrorResponse(BaseModel):
    """Error body. Every field is optional; use the `has_*` checks."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    error_message: str | None = Field(None, alias="errorMessage")
    error_type: str | None = Field(None, alias="errorCode")
    error_details: str | None = Field(None, alias="errorDetails")
    requirements: ErrorRequirements | None = None

    @property
    def has_error_message(self) -> bool:
        return bool(self.error_message)

    @property
    def requirement_code(self) -> str:
        if self.requirements is None:
            return ""
        return self.requirements.code or ""

    @property
    def requirement_error(self) -> str:
        if self.requirements is None:
            return ""
        return self.requirements.error or ""

    @property
    def is_account_locked(self) -> bool:
        return self.requirement_code == ACCOUNT_LOCKED_REQUIREMENT_CODE
