"""Token providers used to authenticate requests against the Tharsis API."""

import asyncio
import logging
import time
from typing import Protocol

import httpx

from .constants import GRAPHQL_SUFFIX
from .errors import (
    ErrorCode,
    TharsisError,
    error_from_graphql_errors,
    error_from_graphql_problems,
    error_from_http_response,
)

logger = logging.getLogger(__name__)

# pylint: disable=R0903

EXPIRATION_GUARDBAND = 30.0
"""Seconds before its expiry at which a service account token is renewed."""

_CREATE_TOKEN_MUTATION = """
mutation ($input: ServiceAccountCreateTokenInput!) {
  serviceAccountCreateToken(input: $input) {
    token
    expiresIn
    problems { message type field }
  }
}
"""


class TokenProvider(Protocol):
    """TokenProvider is an interface describing anything able to supply a bearer token."""

    async def get_token(self) -> str:
        """Return a token valid for the next request."""
        ...


class StaticTokenProvider:
    """Provides a token supplied by the user at initialization time."""

    def __init__(self, token: str) -> None:
        if not token:
            raise ValueError("static token was empty")
        self._token = token

    async def get_token(self) -> str:
        """Return the static token."""
        return self._token


class NoopTokenProvider:
    """Stands in when no credentials are configured, failing as soon as a token is needed."""

    async def get_token(self) -> str:
        """
        :raises ValueError: always
        """
        msg = (
            "no token provider is configured: to use a service account token, set "
            "THARSIS_SERVICE_ACCOUNT_PATH and THARSIS_SERVICE_ACCOUNT_TOKEN; to use a static "
            "token, set THARSIS_STATIC_TOKEN"
        )
        raise ValueError(msg)


class ServiceAccountTokenProvider:
    """Provides tokens for a service account, renewing them before they expire."""

    def __init__(
        self,
        endpoint: str,
        service_account_path: str,
        token: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the provider.

        :param endpoint: base URL of the Tharsis API
        :param service_account_path: resource path of the service account
        :param token: the identity token exchanged for a Tharsis token
        :param http_client: optional client to send the token request with
        """
        if not service_account_path:
            raise ValueError("service account path was empty")
        if not token:
            raise ValueError("service account first token was empty")
        self._url = f"{endpoint.rstrip('/')}/{GRAPHQL_SUFFIX}"
        self._service_account_path = service_account_path
        self._first_token = token
        self._http_client = http_client
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _is_expired(self) -> bool:
        return time.monotonic() + EXPIRATION_GUARDBAND >= self._expires_at

    async def get_token(self) -> str:
        """Return the cached token, creating a new one first if it is missing or about to expire."""
        async with self._lock:
            if self._token is None or self._is_expired():
                return await self._renew()
            return self._token

    async def _renew(self) -> str:
        payload = {
            "query": _CREATE_TOKEN_MUTATION,
            "variables": {
                "input": {
                    "serviceAccountPath": self._service_account_path,
                    "token": self._first_token,
                }
            },
        }
        logger.debug("renewing token for service account %s", self._service_account_path)
        if self._http_client is None:
            async with httpx.AsyncClient() as http_client:
                res = await http_client.post(self._url, json=payload)
        else:
            res = await self._http_client.post(self._url, json=payload)
        if res.is_error:
            raise error_from_http_response(res)

        body = res.json()
        if err := error_from_graphql_errors(body.get("errors") or ()):
            raise err
        result = (body.get("data") or {}).get("serviceAccountCreateToken") or {}
        if err := error_from_graphql_problems(result.get("problems")):
            raise err
        if not result.get("token"):
            raise TharsisError(ErrorCode.INTERNAL, "service account token was not returned")
        if not result.get("expiresIn"):
            msg = "service account token expiration was not returned"
            raise TharsisError(ErrorCode.INTERNAL, msg)

        token: str = result["token"]
        self._token = token
        self._expires_at = time.monotonic() + float(result["expiresIn"])
        return token
