"""Module containing the GraphQL over HTTP transport used by all SDK services."""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .auth import TokenProvider
from .errors import ErrorCode, TharsisError, error_from_graphql_errors, error_from_http_response

logger = logging.getLogger(__name__)


class GraphQLClient:
    """Executes GraphQL queries and mutations against the Tharsis API."""

    def __init__(
        self,
        url: str,
        http_client: httpx.AsyncClient,
        token_provider: TokenProvider | None = None,
    ) -> None:
        """
        Initializes a new instance of the GraphQLClient class.

        :param url: The URL of the GraphQL endpoint.
        :param http_client: A httpx AsyncClient under which to make the HTTP requests.
            It is safe to share between any number of concurrent paginators and log tails,
            and pooling its connections pays off when fetching frequently.
        :param token_provider: Supplies the bearer token for authenticated requests.
        """
        self.url = url
        self._http_client = http_client
        self._token_provider = token_provider

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Return the http_client being used by this client."""
        return self._http_client

    async def execute(
        self,
        query: str,
        variables: Mapping[str, Any] | None = None,
        with_auth: bool = True,
    ) -> dict[str, Any]:
        """
        Execute a query or mutation and return the `data` member of the response.

        :param query: the GraphQL document
        :param variables: the variables referenced by the document
        :param with_auth: whether to send a bearer token
        :raises TharsisError: if the server responds with an error status or GraphQL errors.
        :raises httpx.RequestError: if unable to call the endpoint.
        """
        headers = await self._build_headers(with_auth)
        payload = {"query": query, "variables": dict(variables or {})}

        res = await self._http_client.post(self.url, json=payload, headers=headers)
        return self._process_response(res)

    async def _build_headers(self, with_auth: bool) -> dict[str, str]:
        """
        Build the request headers.

        :param with_auth: whether to add the Authorization header
        :raises TharsisError: if auth is required but no token provider was given.
        """
        if not with_auth:
            return {}
        if self._token_provider is None:
            raise TharsisError(ErrorCode.UNAUTHORIZED, "no token provider is available")
        token = await self._token_provider.get_token()
        return {"Authorization": f"Bearer {token}"}

    def _process_response(self, res: httpx.Response) -> dict[str, Any]:
        """
        Check the response from the server for errors and extract its data.

        :param res: the server response
        :raises TharsisError: if the response indicates a failure.
        """
        if res.is_error:
            raise error_from_http_response(res)

        try:
            body: dict[str, Any] = res.json()
        except ValueError as error:
            msg = "error while parsing graphql response"
            raise TharsisError(ErrorCode.INTERNAL, msg) from error

        if err := error_from_graphql_errors(body.get("errors") or ()):
            logger.debug("graphql request failed: %s", err)
            raise err

        return body.get("data") or {}
