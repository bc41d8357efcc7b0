"""Module containing the group queries."""

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
from .types import METADATA_FIELDS, Group, metadata_from_graphql

GROUP_FIELDS = f"{METADATA_FIELDS} name description fullPath"

_GET_GROUP_QUERY = f"""
query ($path: String!) {{
  group(fullPath: $path) {{ {GROUP_FIELDS} }}
}}
"""

_GET_GROUPS_QUERY = f"""
query ($first: Int, $after: String, $parentPath: String, $sort: GroupSort) {{
  groups(first: $first, after: $after, parentPath: $parentPath, sort: $sort) {{
    {PAGE_INFO_FIELDS}
    edges {{ node {{ {GROUP_FIELDS} }} }}
  }}
}}
"""


class GroupSortableField(str, Enum):
    """The fields groups can be sorted by."""

    FULL_PATH_ASC = "FULL_PATH_ASC"
    FULL_PATH_DESC = "FULL_PATH_DESC"


@dataclass
class GroupFilter:
    """Filter for listing groups. A parent path restricts the list to its direct children."""

    parent_path: str | None = None


@dataclass
class GetGroupsInput:
    """The input for listing groups."""

    sort: GroupSortableField | None = None
    pagination_options: PaginationOptions = field(default_factory=PaginationOptions)
    filter: GroupFilter | None = None


@dataclass
class GetGroupsOutput:
    """One page of groups."""

    page_info: PageInfo
    groups: list[Group]

    def get_page_info(self) -> PageInfo:
        """Return the page info of this page."""
        return self.page_info


def group_from_graphql(node: dict[str, Any]) -> Group:
    """Convert a GraphQL group node into a Group."""
    return Group(
        metadata=metadata_from_graphql(node),
        name=node["name"],
        description=node.get("description") or "",
        full_path=node["fullPath"],
    )


class Groups:
    """Queries related to Tharsis groups."""

    def __init__(self, graphql_client: GraphQLClient) -> None:
        self._graphql_client = graphql_client

    async def get_group(self, path: str) -> Group:
        """
        Return the group with the given full path.

        :raises TharsisError: with code NOT_FOUND if there is no such group.
        """
        data = await self._graphql_client.execute(_GET_GROUP_QUERY, {"path": path})
        if data.get("group") is None:
            raise TharsisError(ErrorCode.NOT_FOUND, f"group with path {path} not found")
        return group_from_graphql(data["group"])

    async def get_groups(
        self, get_groups_input: GetGroupsInput, after: str | None = None
    ) -> GetGroupsOutput:
        """
        Return one page of groups.

        :param get_groups_input: sorting, filtering and pagination options
        :param after: cursor taking precedence over the one in the pagination options
        """
        variables = pagination_variables(get_groups_input.pagination_options, after)
        variables["parentPath"] = (
            get_groups_input.filter.parent_path if get_groups_input.filter else None
        )
        variables["sort"] = get_groups_input.sort.value if get_groups_input.sort else None

        data = await self._graphql_client.execute(_GET_GROUPS_QUERY, variables)
        connection = data["groups"]
        return GetGroupsOutput(
            page_info=page_info_from_graphql(connection),
            groups=[group_from_graphql(node) for node in nodes_from_graphql(connection)],
        )

    def get_group_paginator(self, get_groups_input: GetGroupsInput) -> Paginator[GetGroupsOutput]:
        """Return a paginator walking through all groups matching the input."""
        input_copy = replace(get_groups_input)

        async def query(after: str | None) -> GetGroupsOutput:
            return await self.get_groups(input_copy, after)

        return Paginator(query, is_empty=lambda page: not page.groups)
