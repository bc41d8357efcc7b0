"""Module containing the run queries and the run event subscription."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .errors import ErrorCode, TharsisError
from .graphql_client import GraphQLClient
from .pagination import (
    PAGE_INFO_FIELDS,
    PageInfo,
    PaginationOptions,
    Paginator,
    nodes_from_graphql,
    page_info_from_graphql,
    pagination_variables,
)
from .subscription import EventStream, SubscriptionClient
from .types import METADATA_FIELDS, Run, metadata_from_graphql, run_status_from_graphql

RUN_FIELDS = (
    f"{METADATA_FIELDS} status createdBy terraformVersion isDestroy speculative "
    "moduleSource moduleVersion forceCanceled configurationVersion { id } "
    "workspace { id fullPath } plan { currentJob { id } } apply { currentJob { id } }"
)

_GET_RUN_QUERY = f"""
query ($id: String!) {{
  run(id: $id) {{ {RUN_FIELDS} }}
}}
"""

_GET_RUNS_QUERY = f"""
query ($first: Int, $after: String, $workspacePath: String, $sort: RunSort) {{
  runs(first: $first, after: $after, workspacePath: $workspacePath, sort: $sort) {{
    {PAGE_INFO_FIELDS}
    edges {{ node {{ {RUN_FIELDS} }} }}
  }}
}}
"""

_RUN_EVENTS_SUBSCRIPTION = f"""
subscription ($input: RunSubscriptionInput!) {{
  workspaceRunEvents(input: $input) {{ run {{ {RUN_FIELDS} }} }}
}}
"""


class RunSortableField(str, Enum):
    """The fields runs can be sorted by."""

    CREATED_AT_ASC = "CREATED_AT_ASC"
    CREATED_AT_DESC = "CREATED_AT_DESC"
    UPDATED_AT_ASC = "UPDATED_AT_ASC"
    UPDATED_AT_DESC = "UPDATED_AT_DESC"


@dataclass
class RunFilter:
    """Filter for listing runs."""

    workspace_path: str | None = None


@dataclass
class GetRunsInput:
    """The input for listing runs."""

    sort: RunSortableField | None = None
    pagination_options: PaginationOptions = field(default_factory=PaginationOptions)
    filter: RunFilter | None = None


@dataclass
class GetRunsOutput:
    """One page of runs."""

    page_info: PageInfo
    runs: list[Run]

    def get_page_info(self) -> PageInfo:
        """Return the page info of this page."""
        return self.page_info


def _current_job_id(stage: dict[str, Any] | None) -> str | None:
    if not stage or not stage.get("currentJob"):
        return None
    return stage["currentJob"]["id"]


def run_from_graphql(node: dict[str, Any]) -> Run:
    """Convert a GraphQL run node into a Run."""
    workspace = node.get("workspace") or {}
    configuration_version = node.get("configurationVersion")
    return Run(
        metadata=metadata_from_graphql(node),
        workspace_id=workspace.get("id", ""),
        workspace_path=workspace.get("fullPath", ""),
        status=run_status_from_graphql(node["status"]),
        created_by=node.get("createdBy") or "",
        terraform_version=node.get("terraformVersion") or "",
        is_destroy=bool(node.get("isDestroy")),
        speculative=bool(node.get("speculative")),
        module_source=node.get("moduleSource"),
        module_version=node.get("moduleVersion"),
        configuration_version_id=configuration_version["id"] if configuration_version else None,
        plan_job_id=_current_job_id(node.get("plan")),
        apply_job_id=_current_job_id(node.get("apply")),
        force_canceled=bool(node.get("forceCanceled")),
    )


class Runs:
    """Queries related to Tharsis runs."""

    def __init__(
        self, graphql_client: GraphQLClient, subscription_client: SubscriptionClient
    ) -> None:
        self._graphql_client = graphql_client
        self._subscription_client = subscription_client

    async def get_run(self, run_id: str) -> Run:
        """
        Return the run with the given ID.

        :raises TharsisError: with code NOT_FOUND if there is no such run.
        """
        data = await self._graphql_client.execute(_GET_RUN_QUERY, {"id": run_id})
        if data.get("run") is None:
            raise TharsisError(ErrorCode.NOT_FOUND, f"run with id {run_id} not found")
        return run_from_graphql(data["run"])

    async def get_runs(
        self, get_runs_input: GetRunsInput, after: str | None = None
    ) -> GetRunsOutput:
        """
        Return one page of runs.

        :param get_runs_input: sorting, filtering and pagination options
        :param after: cursor taking precedence over the one in the pagination options
        """
        variables = pagination_variables(get_runs_input.pagination_options, after)
        variables["workspacePath"] = (
            get_runs_input.filter.workspace_path if get_runs_input.filter else None
        )
        variables["sort"] = get_runs_input.sort.value if get_runs_input.sort else None

        data = await self._graphql_client.execute(_GET_RUNS_QUERY, variables)
        connection = data["runs"]
        return GetRunsOutput(
            page_info=page_info_from_graphql(connection),
            runs=[run_from_graphql(node) for node in nodes_from_graphql(connection)],
        )

    def get_run_paginator(self, get_runs_input: GetRunsInput) -> Paginator[GetRunsOutput]:
        """Return a paginator walking through all runs matching the input."""
        input_copy = replace(get_runs_input)

        async def query(after: str | None) -> GetRunsOutput:
            return await self.get_runs(input_copy, after)

        return Paginator(query, is_empty=lambda page: not page.runs)

    async def subscribe_to_workspace_run_events(
        self, workspace_path: str, run_id: str | None = None
    ) -> EventStream[Run]:
        """
        Subscribe to changes of the runs in a workspace.

        The subscription is started before this coroutine returns, so no event that happens after
        it returned is missed.

        :param workspace_path: full path of the workspace
        :param run_id: restrict the events to a single run
        :return: the stream of changed runs, ending when the server ends the subscription
        """
        return await self._subscription_client.subscribe(
            _RUN_EVENTS_SUBSCRIPTION,
            {"input": {"workspacePath": workspace_path, "runId": run_id}},
            lambda event: run_from_graphql(event["workspaceRunEvents"]["run"]),
        )
