"""Module containing the Client giving access to all SDK services."""

import logging
from types import TracebackType

import httpx

from .config import Config, load_config
from .constants import GRAPHQL_SUFFIX
from .graphql_client import GraphQLClient
from .group import Groups
from .job import Jobs
from .run import Runs
from .subscription import SubscriptionClient
from .terraform_module_version import TerraformModuleVersions
from .terraform_provider_version_mirror import TerraformProviderVersionMirrors
from .user import Users
from .workspace import Workspaces

logger = logging.getLogger(__name__)


class Client:
    """Client-side code to call the Tharsis API."""

    def __init__(self, config: Config | None = None) -> None:
        """
        Initializes a new instance of the Client class.

        :param config: The configuration to use. If omitted, it is loaded from the environment.
            When it carries an http_client, that client is used and not closed by this Client.
        """
        self.config = config or load_config()
        url = f"{self.config.endpoint}/{GRAPHQL_SUFFIX}"

        self._owns_http_client = self.config.http_client is None
        self._http_client = self.config.http_client or httpx.AsyncClient(
            transport=httpx.AsyncHTTPTransport(retries=self.config.settings.http_retries)
        )
        self._graphql_client = GraphQLClient(url, self._http_client, self.config.token_provider)
        self._subscription_client = SubscriptionClient(url, self.config.token_provider)

        self.groups = Groups(self._graphql_client)
        self.users = Users(self._graphql_client)
        self.workspaces = Workspaces(self._graphql_client)
        self.runs = Runs(self._graphql_client, self._subscription_client)
        self.jobs = Jobs(
            self._graphql_client,
            self._subscription_client,
            self.runs,
            log_limit=self.config.settings.log_limit,
            log_poll_interval=self.config.settings.log_poll_interval,
        )
        self.terraform_module_versions = TerraformModuleVersions(self._graphql_client)
        self.terraform_provider_version_mirrors = TerraformProviderVersionMirrors(
            self._graphql_client
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Return the http_client being used by this client."""
        return self._http_client

    async def aclose(self) -> None:
        """Close the subscription connection and, if owned, the HTTP client."""
        await self._subscription_client.close()
        if self._owns_http_client:
            await self._http_client.aclose()
        logger.debug("client closed")

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()
