"""Token exchange exception hierarchy.

Every failure surfaced by the IAM client extends TokenExchangeError and
carries a stable symbolic code. `wrapped` holds the text of the
underlying errors, outermost first, and is what the connection-error
classifier inspects alongside the normal `__cause__` chain.
"""

UNCLASSIFIED = "ErrorUnclassified"
FAILED_TOKEN_EXCHANGE = "ErrorFailedTokenExchange"
PROVIDER_ACCOUNT_TEMPORARILY_LOCKED = "ErrorProviderAccountTemporarilyLocked"


class TokenExchangeError(Exception):
    code: str = UNCLASSIFIED

    def __init__(
        self,
        description: str,
        *wrapped: BaseException | str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        self.description = description
        self.wrapped = [str(w) for w in wrapped]
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(description)

    def __str__(self) -> str:
        return self.description


class UnclassifiedError(TokenExchangeError):
    """Transport failure, or a non-200 response without an interpretable body."""

    code = UNCLASSIFIED


class FailedTokenExchangeError(TokenExchangeError):
    """IAM rejected the exchange with a structured error message."""

    code = FAILED_TOKEN_EXCHANGE

    def __init__(
        self,
        error_message: str,
        error_type: str = "",
        error_details: str = "",
        requirement_code: str = "",
        requirement_error: str = "",
        status_code: int | None = None,
    ):
        self.error_message = error_message
        self.error_type = error_type
        self.error_details = error_details
        self.requirement_code = requirement_code
        self.requirement_error = requirement_error
        super().__init__(
            f"IAM token exchange request failed: {error_message}",
            f"{error_details} {requirement_code}: {requirement_error}",
            status_code=status_code,
        )


class ProviderAccountTemporarilyLockedError(FailedTokenExchangeError):
    """The infrastructure account behind the credential is locked.

    Raised `from` the generic FailedTokenExchangeError it specializes, so
    the service's original message stays reachable via `__cause__`.
    """

    code = PROVIDER_ACCOUNT_TEMPORARILY_LOCKED

    def __init__(self, failure: FailedTokenExchangeError):
        super().__init__(
            failure.error_message,
            error_type=failure.error_type,
            error_details=failure.error_details,
            requirement_code=failure.requirement_code,
            requirement_error=failure.requirement_error,
            status_code=failure.status_code,
        )
        self.description = "Infrastructure account is temporarily locked"
        self.wrapped = [str(failure), *failure.wrapped]
        self.args = (self.description,)
