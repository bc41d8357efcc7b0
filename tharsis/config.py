"""Configuration for the SDK, loaded from explicit values and THARSIS_ environment variables."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .auth import NoopTokenProvider, ServiceAccountTokenProvider, StaticTokenProvider, TokenProvider
from .constants import DEFAULT_LOG_LIMIT, DEFAULT_LOG_POLL_INTERVAL

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings read from environment variables with the THARSIS_ prefix."""

    model_config = SettingsConfigDict(env_prefix="THARSIS_", extra="ignore")

    endpoint: AnyHttpUrl = Field(description="Base URL of the Tharsis API")
    static_token: str | None = Field(default=None, description="Static bearer token")
    service_account_path: str | None = Field(
        default=None, description="Resource path of the service account to log in as"
    )
    service_account_token: str | None = Field(
        default=None, description="Identity token exchanged for a service account token"
    )
    http_retries: int = Field(default=3, ge=0, description="Retries on connection failures")
    log_limit: int = Field(
        default=DEFAULT_LOG_LIMIT, ge=1, description="Maximum log characters fetched at once"
    )
    log_poll_interval: float = Field(
        default=DEFAULT_LOG_POLL_INTERVAL,
        gt=0,
        description="Seconds a log tail waits for an event before fetching anyway",
    )


@dataclass
class Config:
    """
    The resolved configuration a Client is built from.

    :param settings: the validated settings
    :param token_provider: the provider for bearer tokens
    :param http_client: an optional httpx AsyncClient to send requests with instead of the one
        the Client creates
    """

    settings: Settings
    token_provider: TokenProvider
    http_client: httpx.AsyncClient | None = None

    @property
    def endpoint(self) -> str:
        """Return the API base URL without a trailing slash."""
        return str(self.settings.endpoint).rstrip("/")


def load_config(
    token_provider: TokenProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
    **overrides: Any,
) -> Config:
    """
    Load a configuration. Keyword overrides take priority over environment variables.

    The token provider is chosen in this order: the one passed in, a service account provider
    when both service account settings are present, a static token provider, and finally a
    provider which fails as soon as a token is requested.

    :param token_provider: explicit provider for bearer tokens
    :param http_client: explicit httpx AsyncClient to use
    :param overrides: values for any Settings field
    :raises pydantic.ValidationError: if the settings are invalid, e.g. the endpoint is missing
    """
    settings = Settings(**overrides)

    if token_provider is None:
        if settings.service_account_path and settings.service_account_token:
            token_provider = ServiceAccountTokenProvider(
                str(settings.endpoint),
                settings.service_account_path,
                settings.service_account_token,
                http_client=http_client,
            )
        elif settings.static_token:
            token_provider = StaticTokenProvider(settings.static_token)
        else:
            logger.debug("no credentials configured, requests requiring auth will fail")
            token_provider = NoopTokenProvider()

    return Config(settings=settings, token_provider=token_provider, http_client=http_client)
