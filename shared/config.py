"""Client configuration with startup validation.

All config is validated at load time via pydantic-settings.
Retry parameters live here instead of as hardcoded constants so tests
and short-lived jobs can shrink them.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "IAM_", "env_file": ".env", "extra": "ignore"}

    # Endpoint + client credentials
    iam_url: str = "https://iam.cloud.ibm.com"
    client_id: str = ""
    client_secret: str = ""

    # Retry: 40 attempts x 3s is roughly two minutes of waiting for the network
    retry_max_attempts: int = Field(40, ge=1)
    retry_interval_seconds: float = Field(3.0, ge=0.0)

    # Transport
    http_timeout_seconds: float = Field(30.0, gt=0.0)
    ca_bundle: str | None = None

    # Logging
    log_json: bool = False
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Load settings from the environment (and `.env` when present)."""
    return Settings()
