"""Module containing the Terraform provider version mirror queries."""

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
from .types import METADATA_FIELDS, TerraformProviderVersionMirror, metadata_from_graphql

VERSION_MIRROR_FIELDS = f"{METADATA_FIELDS} version registryNamespace registryHostname type"

_GET_VERSION_MIRRORS_QUERY = f"""
query (
  $fullPath: String!
  $first: Int
  $after: String
  $sort: TerraformProviderVersionMirrorSort
  $includeInherited: Boolean
) {{
  group(fullPath: $fullPath) {{
    terraformProviderMirrors(
      first: $first, after: $after, sort: $sort, includeInherited: $includeInherited
    ) {{
      {PAGE_INFO_FIELDS}
      edges {{ node {{ {VERSION_MIRROR_FIELDS} }} }}
    }}
  }}
}}
"""


class TerraformProviderVersionMirrorSortableField(str, Enum):
    """The fields provider version mirrors can be sorted by."""

    CREATED_AT_ASC = "CREATED_AT_ASC"
    CREATED_AT_DESC = "CREATED_AT_DESC"
    TYPE_ASC = "TYPE_ASC"
    TYPE_DESC = "TYPE_DESC"


@dataclass
class GetTerraformProviderVersionMirrorsInput:
    """
    The input for listing the provider version mirrors of a group.

    :param group_path: full path of the group
    :param include_inherited: whether to include the mirrors of the ancestor groups
    """

    group_path: str
    include_inherited: bool = False
    sort: TerraformProviderVersionMirrorSortableField | None = None
    pagination_options: PaginationOptions = field(default_factory=PaginationOptions)


@dataclass
class GetTerraformProviderVersionMirrorsOutput:
    """One page of provider version mirrors."""

    page_info: PageInfo
    version_mirrors: list[TerraformProviderVersionMirror]

    def get_page_info(self) -> PageInfo:
        """Return the page info of this page."""
        return self.page_info


def version_mirror_from_graphql(node: dict[str, Any]) -> TerraformProviderVersionMirror:
    """Convert a GraphQL provider version mirror node."""
    return TerraformProviderVersionMirror(
        metadata=metadata_from_graphql(node),
        version=node["version"],
        registry_namespace=node["registryNamespace"],
        registry_hostname=node["registryHostname"],
        type=node["type"],
    )


class TerraformProviderVersionMirrors:
    """Queries related to the provider versions mirrored in groups."""

    def __init__(self, graphql_client: GraphQLClient) -> None:
        self._graphql_client = graphql_client

    async def get_provider_version_mirrors(
        self, get_mirrors_input: GetTerraformProviderVersionMirrorsInput, after: str | None = None
    ) -> GetTerraformProviderVersionMirrorsOutput:
        """
        Return one page of the provider version mirrors of a group.

        :raises TharsisError: with code NOT_FOUND if there is no such group.
        """
        variables = pagination_variables(get_mirrors_input.pagination_options, after)
        variables["fullPath"] = get_mirrors_input.group_path
        variables["includeInherited"] = get_mirrors_input.include_inherited
        variables["sort"] = get_mirrors_input.sort.value if get_mirrors_input.sort else None

        data = await self._graphql_client.execute(_GET_VERSION_MIRRORS_QUERY, variables)
        if data.get("group") is None:
            msg = f"group with path {get_mirrors_input.group_path} not found"
            raise TharsisError(ErrorCode.NOT_FOUND, msg)

        connection = data["group"]["terraformProviderMirrors"]
        return GetTerraformProviderVersionMirrorsOutput(
            page_info=page_info_from_graphql(connection),
            version_mirrors=[
                version_mirror_from_graphql(node) for node in nodes_from_graphql(connection)
            ],
        )

    def get_provider_version_mirror_paginator(
        self, get_mirrors_input: GetTerraformProviderVersionMirrorsInput
    ) -> Paginator[GetTerraformProviderVersionMirrorsOutput]:
        """Return a paginator walking through all provider version mirrors of a group."""
        input_copy = replace(get_mirrors_input)

        async def query(after: str | None) -> GetTerraformProviderVersionMirrorsOutput:
            return await self.get_provider_version_mirrors(input_copy, after)

        return Paginator(query, is_empty=lambda page: not page.version_mirrors)
