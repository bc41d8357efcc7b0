import json
from typing import Any

import httpx
import pytest
import pytest_asyncio
from tharsis import (
    Client,
    ErrorCode,
    GetGroupsInput,
    GetRunsInput,
    GetTerraformModuleVersionsInput,
    GetTerraformProviderVersionMirrorsInput,
    GetUsersInput,
    PaginationError,
    PaginationOptions,
    RunFilter,
    RunSortableField,
    RunStatus,
    StaticTokenProvider,
    TharsisError,
    UserFilter,
    UserSortableField,
    load_config,
    paginate_items,
)

ENDPOINT = "https://api.tharsis.example.com"
URL = f"{ENDPOINT}/graphql"


def run_node(run_id: str, status: str = "applied") -> dict[str, Any]:
    return {
        "id": run_id,
        "metadata": {"createdAt": "2024-01-01T00:00:00Z", "version": "1", "trn": "trn"},
        "status": status,
        "createdBy": "someone",
        "terraformVersion": "1.5.0",
        "isDestroy": False,
        "speculative": False,
        "moduleSource": None,
        "moduleVersion": None,
        "forceCanceled": False,
        "configurationVersion": {"id": "CV1"},
        "workspace": {"id": "W1", "fullPath": "g/ws"},
        "plan": {"currentJob": {"id": "PJ1"}},
        "apply": {"currentJob": None},
    }


def connection(nodes: list[dict[str, Any]], cursor: str, has_next_page: bool) -> dict[str, Any]:
    return {
        "totalCount": 3,
        "pageInfo": {"endCursor": cursor, "hasNextPage": has_next_page},
        "edges": [{"node": node} for node in nodes],
    }


@pytest_asyncio.fixture
async def client():
    async with httpx.AsyncClient() as httpx_client:
        config = load_config(
            token_provider=StaticTokenProvider("secret"),
            http_client=httpx_client,
            endpoint=ENDPOINT,
        )
        async with Client(config) as tharsis_client:
            yield tharsis_client


async def test_client_uses_the_configured_http_client(client) -> None:
    """Test that a given http client is used by the services and is not closed by the client."""

    # act
    await client.aclose()

    # assert
    assert client.http_client is client.config.http_client
    assert not client.http_client.is_closed


async def test_get_run(client, respx_mock) -> None:
    """Test that a run is converted, including the jobs of its stages."""

    # arrange
    respx_mock.post(URL).mock(
        return_value=httpx.Response(200, json={"data": {"run": run_node("R1", "planning")}})
    )

    # act
    run = await client.runs.get_run("R1")

    # assert
    assert run.metadata.id == "R1"
    assert run.status is RunStatus.PLANNING
    assert run.workspace_path == "g/ws"
    assert run.plan_job_id == "PJ1"
    assert run.apply_job_id is None
    assert run.configuration_version_id == "CV1"


async def test_unknown_run_status_is_kept_as_string(client, respx_mock) -> None:
    """Test that a status introduced by a newer server does not break decoding."""

    # arrange
    respx_mock.post(URL).mock(
        return_value=httpx.Response(200, json={"data": {"run": run_node("R1", "frozen")}})
    )

    # act
    run = await client.runs.get_run("R1")

    # assert
    assert run.status == "frozen"


async def test_get_run_raises_not_found(client, respx_mock) -> None:
    """Test that a missing run is reported as NOT_FOUND."""

    # arrange
    respx_mock.post(URL).mock(return_value=httpx.Response(200, json={"data": {"run": None}}))

    # act
    with pytest.raises(TharsisError) as excinfo:
        await client.runs.get_run("R404")

    # assert
    assert excinfo.value.code is ErrorCode.NOT_FOUND


async def test_run_paginator_passes_cursor_filter_and_sort(client, respx_mock) -> None:
    """Test that the run paginator sends the cursor of the previous page with the input."""

    # arrange
    route = respx_mock.post(URL).mock(
        side_effect=[
            httpx.Response(
                200,
                json={"data": {"runs": connection([run_node("R1"), run_node("R2")], "c2", True)}},
            ),
            httpx.Response(
                200, json={"data": {"runs": connection([run_node("R3")], "c3", False)}}
            ),
        ]
    )
    paginator = client.runs.get_run_paginator(
        GetRunsInput(
            sort=RunSortableField.CREATED_AT_DESC,
            pagination_options=PaginationOptions(limit=2),
            filter=RunFilter(workspace_path="g/ws"),
        )
    )

    # act
    runs = [run async for page in paginator for run in page.runs]

    # assert
    assert [run.metadata.id for run in runs] == ["R1", "R2", "R3"]
    sent = [json.loads(call.request.content)["variables"] for call in route.calls]
    assert [variables["after"] for variables in sent] == [None, "c2"]
    assert sent[0]["first"] == 2
    assert sent[0]["workspacePath"] == "g/ws"
    assert sent[0]["sort"] == "CREATED_AT_DESC"


async def test_module_versions(client, respx_mock) -> None:
    """Test that the versions of a module are listed."""

    # arrange
    version = {
        "id": "MV1",
        "metadata": {"createdAt": "2024-01-01T00:00:00Z", "version": "1", "trn": "trn"},
        "version": "1.0.0",
        "shaSum": "abc",
        "status": "uploaded",
        "error": "",
        "diagnostics": "",
        "latest": True,
        "submodules": ["sub"],
        "examples": [],
        "module": {"id": "M1"},
    }
    respx_mock.post(URL).mock(
        return_value=httpx.Response(
            200, json={"data": {"node": {"versions": connection([version], "c1", False)}}}
        )
    )

    # act
    page = await client.terraform_module_versions.get_module_versions(
        GetTerraformModuleVersionsInput(module_id="M1")
    )

    # assert
    assert [v.version for v in page.module_versions] == ["1.0.0"]
    assert page.module_versions[0].latest
    assert page.module_versions[0].submodules == ["sub"]
    assert not page.page_info.has_next_page


async def test_module_versions_of_unknown_module(client, respx_mock) -> None:
    """Test that listing the versions of a missing module raises NOT_FOUND."""

    # arrange
    respx_mock.post(URL).mock(return_value=httpx.Response(200, json={"data": {"node": None}}))
    paginator = client.terraform_module_versions.get_module_version_paginator(
        GetTerraformModuleVersionsInput(module_id="M404")
    )

    # act
    with pytest.raises(TharsisError) as excinfo:
        await paginator.next()

    # assert
    assert excinfo.value.code is ErrorCode.NOT_FOUND
    assert paginator.has_more()


async def test_provider_version_mirrors(client, respx_mock) -> None:
    """Test that the provider version mirrors of a group are listed with inherited ones."""

    # arrange
    mirror = {
        "id": "PM1",
        "metadata": {"createdAt": "2024-01-01T00:00:00Z", "version": "1", "trn": "trn"},
        "version": "5.0.0",
        "registryNamespace": "hashicorp",
        "registryHostname": "registry.terraform.io",
        "type": "aws",
    }
    route = respx_mock.post(URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "data": {"group": {"terraformProviderMirrors": connection([mirror], "c", False)}}
            },
        )
    )

    # act
    page = await client.terraform_provider_version_mirrors.get_provider_version_mirrors(
        GetTerraformProviderVersionMirrorsInput(group_path="g", include_inherited=True)
    )

    # assert
    assert page.version_mirrors[0].type == "aws"
    assert page.version_mirrors[0].registry_namespace == "hashicorp"
    variables = json.loads(route.calls.last.request.content)["variables"]
    assert variables["fullPath"] == "g"
    assert variables["includeInherited"] is True


def user_node(user_id: str, username: str) -> dict[str, Any]:
    return {
        "id": user_id,
        "metadata": {"createdAt": "2024-01-01T00:00:00Z", "version": "1", "trn": "trn"},
        "username": username,
        "email": f"{username}@example.com",
        "scimExternalId": None,
        "admin": username == "root",
        "active": True,
    }


async def test_get_users_sends_search_and_sort(client, respx_mock) -> None:
    """Test that one page of users is listed with the search text and sort order."""

    # arrange
    route = respx_mock.post(URL).mock(
        return_value=httpx.Response(
            200,
            json={"data": {"users": connection([user_node("U1", "root")], "c1", False)}},
        )
    )

    # act
    page = await client.users.get_users(
        GetUsersInput(
            sort=UserSortableField.UPDATED_AT_DESC,
            pagination_options=PaginationOptions(limit=10),
            filter=UserFilter(search="ro"),
        )
    )

    # assert
    assert page.users[0].username == "root"
    assert page.users[0].email == "root@example.com"
    assert page.users[0].admin and page.users[0].active
    assert page.users[0].scim_external_id == ""
    assert page.get_page_info().total_count == 3
    variables = json.loads(route.calls.last.request.content)["variables"]
    assert variables == {"first": 10, "after": None, "search": "ro", "sort": "UPDATED_AT_DESC"}


async def test_user_paginator_walks_all_pages(client, respx_mock) -> None:
    """Test that the user paginator follows the cursor until the last page."""

    # arrange
    route = respx_mock.post(URL).mock(
        side_effect=[
            httpx.Response(
                200,
                json={"data": {"users": connection([user_node("U1", "ann")], "c1", True)}},
            ),
            httpx.Response(
                200,
                json={"data": {"users": connection([user_node("U2", "bob")], "c2", False)}},
            ),
        ]
    )
    paginator = client.users.get_user_paginator(GetUsersInput())

    # act
    users = [user async for user in paginate_items(paginator, lambda page: page.users)]

    # assert
    assert [user.username for user in users] == ["ann", "bob"]
    sent = [json.loads(call.request.content)["variables"] for call in route.calls]
    assert [variables["after"] for variables in sent] == [None, "c1"]
    assert not paginator.has_more()


async def test_group_paginator_raises_when_server_does_not_make_progress(
    client, respx_mock
) -> None:
    """
    Test that a resource paginator raises a PaginationError when the server claims another page
    but returns an empty one without moving the cursor.
    """

    # arrange
    group = {
        "id": "G1",
        "metadata": {"createdAt": "2024-01-01T00:00:00Z", "version": "1", "trn": "trn"},
        "name": "g",
        "description": None,
        "fullPath": "g",
    }
    respx_mock.post(URL).mock(
        side_effect=[
            httpx.Response(200, json={"data": {"groups": connection([group], "c1", True)}}),
            httpx.Response(200, json={"data": {"groups": connection([], "c1", True)}}),
        ]
    )
    paginator = client.groups.get_group_paginator(GetGroupsInput())
    first_page = await paginator.next()

    # act
    with pytest.raises(PaginationError):
        await paginator.next()

    # assert
    assert first_page.groups[0].full_path == "g"
    assert paginator.next_cursor == "c1"
    assert paginator.has_more()
