"""Module containing the workspace queries."""

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
from .types import METADATA_FIELDS, Workspace, metadata_from_graphql

WORKSPACE_FIELDS = (
    f"{METADATA_FIELDS} name description fullPath terraformVersion maxJobDuration "
    "preventDestroyPlan currentStateVersion { id }"
)

_GET_WORKSPACE_QUERY = f"""
query ($path: String!) {{
  workspace(fullPath: $path) {{ {WORKSPACE_FIELDS} }}
}}
"""

_GET_WORKSPACES_QUERY = f"""
query ($first: Int, $after: String, $groupPath: String, $sort: WorkspaceSort) {{
  workspaces(first: $first, after: $after, groupPath: $groupPath, sort: $sort) {{
    {PAGE_INFO_FIELDS}
    edges {{ node {{ {WORKSPACE_FIELDS} }} }}
  }}
}}
"""


class WorkspaceSortableField(str, Enum):
    """The fields workspaces can be sorted by."""

    FULL_PATH_ASC = "FULL_PATH_ASC"
    FULL_PATH_DESC = "FULL_PATH_DESC"
    UPDATED_AT_ASC = "UPDATED_AT_ASC"
    UPDATED_AT_DESC = "UPDATED_AT_DESC"


@dataclass
class WorkspaceFilter:
    """Filter for listing workspaces."""

    group_path: str | None = None


@dataclass
class GetWorkspacesInput:
    """The input for listing workspaces."""

    sort: WorkspaceSortableField | None = None
    pagination_options: PaginationOptions = field(default_factory=PaginationOptions)
    filter: WorkspaceFilter | None = None


@dataclass
class GetWorkspacesOutput:
    """One page of workspaces."""

    page_info: PageInfo
    workspaces: list[Workspace]

    def get_page_info(self) -> PageInfo:
        """Return the page info of this page."""
        return self.page_info


def workspace_from_graphql(node: dict[str, Any]) -> Workspace:
    """Convert a GraphQL workspace node into a Workspace."""
    state_version = node.get("currentStateVersion")
    return Workspace(
        metadata=metadata_from_graphql(node),
        name=node["name"],
        description=node.get("description") or "",
        full_path=node["fullPath"],
        terraform_version=node.get("terraformVersion") or "",
        max_job_duration=node.get("maxJobDuration") or 0,
        prevent_destroy_plan=bool(node.get("preventDestroyPlan")),
        current_state_version_id=state_version["id"] if state_version else None,
    )


class Workspaces:
    """Queries related to Tharsis workspaces."""

    def __init__(self, graphql_client: GraphQLClient) -> None:
        self._graphql_client = graphql_client

    async def get_workspace(self, path: str) -> Workspace:
        """
        Return the workspace with the given full path.

        :raises TharsisError: with code NOT_FOUND if there is no such workspace.
        """
        data = await self._graphql_client.execute(_GET_WORKSPACE_QUERY, {"path": path})
        if data.get("workspace") is None:
            raise TharsisError(ErrorCode.NOT_FOUND, f"workspace with path {path} not found")
        return workspace_from_graphql(data["workspace"])

    async def get_workspaces(
        self, get_workspaces_input: GetWorkspacesInput, after: str | None = None
    ) -> GetWorkspacesOutput:
        """
        Return one page of workspaces.

        :param get_workspaces_input: sorting, filtering and pagination options
        :param after: cursor taking precedence over the one in the pagination options
        """
        variables = pagination_variables(get_workspaces_input.pagination_options, after)
        variables["groupPath"] = (
            get_workspaces_input.filter.group_path if get_workspaces_input.filter else None
        )
        variables["sort"] = get_workspaces_input.sort.value if get_workspaces_input.sort else None

        data = await self._graphql_client.execute(_GET_WORKSPACES_QUERY, variables)
        connection = data["workspaces"]
        return GetWorkspacesOutput(
            page_info=page_info_from_graphql(connection),
            workspaces=[workspace_from_graphql(node) for node in nodes_from_graphql(connection)],
        )

    def get_workspace_paginator(
        self, get_workspaces_input: GetWorkspacesInput
    ) -> Paginator[GetWorkspacesOutput]:
        """Return a paginator walking through all workspaces matching the input."""
        input_copy = replace(get_workspaces_input)

        async def query(after: str | None) -> GetWorkspacesOutput:
            return await self.get_workspaces(input_copy, after)

        return Paginator(query, is_empty=lambda page: not page.workspaces)
