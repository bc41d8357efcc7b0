"""Module containing the user queries."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

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
from .types import METADATA_FIELDS, User, metadata_from_graphql

USER_FIELDS = f"{METADATA_FIELDS} username email scimExternalId admin active"

_GET_USERS_QUERY = f"""
query ($first: Int, $after: String, $search: String, $sort: UserSort) {{
  users(first: $first, after: $after, search: $search, sort: $sort) {{
    {PAGE_INFO_FIELDS}
    edges {{ node {{ {USER_FIELDS} }} }}
  }}
}}
"""


class UserSortableField(str, Enum):
    """The fields users can be sorted by."""

    UPDATED_AT_ASC = "UPDATED_AT_ASC"
    UPDATED_AT_DESC = "UPDATED_AT_DESC"


@dataclass
class UserFilter:
    """Filter for listing users by a search text."""

    search: str | None = None


@dataclass
class GetUsersInput:
    """The input for listing users."""

    sort: UserSortableField | None = None
    pagination_options: PaginationOptions = field(default_factory=PaginationOptions)
    filter: UserFilter | None = None


@dataclass
class GetUsersOutput:
    """One page of users."""

    page_info: PageInfo
    users: list[User]

    def get_page_info(self) -> PageInfo:
        """Return the page info of this page."""
        return self.page_info


def user_from_graphql(node: dict[str, Any]) -> User:
    """Convert a GraphQL user node into a User."""
    return User(
        metadata=metadata_from_graphql(node),
        username=node["username"],
        email=node.get("email") or "",
        scim_external_id=node.get("scimExternalId") or "",
        admin=bool(node.get("admin")),
        active=bool(node.get("active")),
    )


class Users:
    """Queries related to Tharsis users."""

    def __init__(self, graphql_client: GraphQLClient) -> None:
        self._graphql_client = graphql_client

    async def get_users(
        self, get_users_input: GetUsersInput, after: str | None = None
    ) -> GetUsersOutput:
        """
        Return one page of users.

        :param get_users_input: sorting, filtering and pagination options
        :param after: cursor taking precedence over the one in the pagination options
        """
        variables = pagination_variables(get_users_input.pagination_options, after)
        variables["search"] = get_users_input.filter.search if get_users_input.filter else None
        variables["sort"] = get_users_input.sort.value if get_users_input.sort else None

        data = await self._graphql_client.execute(_GET_USERS_QUERY, variables)
        connection = data["users"]
        return GetUsersOutput(
            page_info=page_info_from_graphql(connection),
            users=[user_from_graphql(node) for node in nodes_from_graphql(connection)],
        )

    def get_user_paginator(self, get_users_input: GetUsersInput) -> Paginator[GetUsersOutput]:
        """Return a paginator walking through all users matching the input."""
        input_copy = replace(get_users_input)

        async def query(after: str | None) -> GetUsersOutput:
            return await self.get_users(input_copy, after)

        return Paginator(query, is_empty=lambda page: not page.users)
