"""Module containing the Terraform module version queries."""

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
from .types import METADATA_FIELDS, TerraformModuleVersion, metadata_from_graphql

MODULE_VERSION_FIELDS = (
    f"{METADATA_FIELDS} version shaSum status error diagnostics latest submodules examples "
    "module { id }"
)

_GET_MODULE_VERSIONS_QUERY = f"""
query ($id: String!, $first: Int, $after: String, $sort: TerraformModuleVersionSort) {{
  node(id: $id) {{
    ... on TerraformModule {{
      versions(first: $first, after: $after, sort: $sort) {{
        {PAGE_INFO_FIELDS}
        edges {{ node {{ {MODULE_VERSION_FIELDS} }} }}
      }}
    }}
  }}
}}
"""


class TerraformModuleVersionSortableField(str, Enum):
    """The fields module versions can be sorted by."""

    CREATED_AT_ASC = "CREATED_AT_ASC"
    CREATED_AT_DESC = "CREATED_AT_DESC"
    UPDATED_AT_ASC = "UPDATED_AT_ASC"
    UPDATED_AT_DESC = "UPDATED_AT_DESC"


@dataclass
class GetTerraformModuleVersionsInput:
    """The input for listing the versions of a module."""

    module_id: str
    sort: TerraformModuleVersionSortableField | None = None
    pagination_options: PaginationOptions = field(default_factory=PaginationOptions)


@dataclass
class GetTerraformModuleVersionsOutput:
    """One page of module versions."""

    page_info: PageInfo
    module_versions: list[TerraformModuleVersion]

    def get_page_info(self) -> PageInfo:
        """Return the page info of this page."""
        return self.page_info


def module_version_from_graphql(node: dict[str, Any]) -> TerraformModuleVersion:
    """Convert a GraphQL module version node into a TerraformModuleVersion."""
    return TerraformModuleVersion(
        metadata=metadata_from_graphql(node),
        module_id=(node.get("module") or {}).get("id", ""),
        version=node["version"],
        sha_sum=node.get("shaSum") or "",
        status=node.get("status") or "",
        error=node.get("error") or "",
        diagnostics=node.get("diagnostics") or "",
        latest=bool(node.get("latest")),
        submodules=list(node.get("submodules") or ()),
        examples=list(node.get("examples") or ()),
    )


class TerraformModuleVersions:
    """Queries related to the versions of modules in the Tharsis module registry."""

    def __init__(self, graphql_client: GraphQLClient) -> None:
        self._graphql_client = graphql_client

    async def get_module_versions(
        self, get_versions_input: GetTerraformModuleVersionsInput, after: str | None = None
    ) -> GetTerraformModuleVersionsOutput:
        """
        Return one page of versions of a module.

        :raises TharsisError: with code NOT_FOUND if there is no such module.
        """
        variables = pagination_variables(get_versions_input.pagination_options, after)
        variables["id"] = get_versions_input.module_id
        variables["sort"] = get_versions_input.sort.value if get_versions_input.sort else None

        data = await self._graphql_client.execute(_GET_MODULE_VERSIONS_QUERY, variables)
        node = data.get("node")
        if node is None or "versions" not in node:
            msg = f"terraform module with id {get_versions_input.module_id} not found"
            raise TharsisError(ErrorCode.NOT_FOUND, msg)

        connection = node["versions"]
        return GetTerraformModuleVersionsOutput(
            page_info=page_info_from_graphql(connection),
            module_versions=[
                module_version_from_graphql(version) for version in nodes_from_graphql(connection)
            ],
        )

    def get_module_version_paginator(
        self, get_versions_input: GetTerraformModuleVersionsInput
    ) -> Paginator[GetTerraformModuleVersionsOutput]:
        """Return a paginator walking through all versions of a module."""
        input_copy = replace(get_versions_input)

        async def query(after: str | None) -> GetTerraformModuleVersionsOutput:
            return await self.get_module_versions(input_copy, after)

        return Paginator(query, is_empty=lambda page: not page.module_versions)
