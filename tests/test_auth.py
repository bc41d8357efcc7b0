import json

import httpx
import pytest
import pytest_asyncio
from tharsis import ErrorCode, ServiceAccountTokenProvider, StaticTokenProvider, TharsisError

ENDPOINT = "https://api.tharsis.example.com"
URL = f"{ENDPOINT}/graphql"


@pytest_asyncio.fixture
async def provider():
    async with httpx.AsyncClient() as httpx_client:
        yield ServiceAccountTokenProvider(ENDPOINT, "group/sa", "oidc-token", httpx_client)


def token_response(token: str, expires_in: int) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "data": {
                "serviceAccountCreateToken": {
                    "token": token,
                    "expiresIn": expires_in,
                    "problems": [],
                }
            }
        },
    )


async def test_static_token_provider() -> None:
    """Test that the static provider returns its token and rejects an empty one."""

    # act & assert
    assert await StaticTokenProvider("abc").get_token() == "abc"
    with pytest.raises(ValueError):
        StaticTokenProvider("")


async def test_service_account_token_is_cached(provider, respx_mock) -> None:
    """Test that a token is created once and reused while it is valid."""

    # arrange
    route = respx_mock.post(URL).mock(return_value=token_response("t1", 3600))

    # act
    first = await provider.get_token()
    second = await provider.get_token()

    # assert
    assert first == second == "t1"
    assert route.call_count == 1
    variables = json.loads(route.calls.last.request.content)["variables"]
    assert variables == {"input": {"serviceAccountPath": "group/sa", "token": "oidc-token"}}


async def test_service_account_token_is_renewed_before_expiry(provider, respx_mock) -> None:
    """Test that a token expiring within the guardband is replaced by a new one."""

    # arrange
    route = respx_mock.post(URL).mock(
        side_effect=[token_response("t1", 10), token_response("t2", 3600)]
    )
    await provider.get_token()

    # act
    token = await provider.get_token()

    # assert
    assert token == "t2"
    assert route.call_count == 2


async def test_service_account_problems_are_raised(provider, respx_mock) -> None:
    """Test that problems returned by the token mutation are raised as a TharsisError."""

    # arrange
    respx_mock.post(URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "data": {
                    "serviceAccountCreateToken": {
                        "token": None,
                        "expiresIn": None,
                        "problems": [{"message": "no such account", "type": "NOT_FOUND"}],
                    }
                }
            },
        )
    )

    # act
    with pytest.raises(TharsisError) as excinfo:
        await provider.get_token()

    # assert
    assert excinfo.value.code is ErrorCode.NOT_FOUND


async def test_service_account_http_error_is_raised(provider, respx_mock) -> None:
    """Test that an unsuccessful status from the token mutation is mapped."""

    # arrange
    respx_mock.post(URL).mock(return_value=httpx.Response(403, text="forbidden"))

    # act
    with pytest.raises(TharsisError) as excinfo:
        await provider.get_token()

    # assert
    assert excinfo.value.code is ErrorCode.FORBIDDEN


async def test_service_account_token_without_expiration_is_rejected(provider, respx_mock) -> None:
    """Test that a token returned without its lifetime is an internal error and is not cached."""

    # arrange
    route = respx_mock.post(URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "data": {
                    "serviceAccountCreateToken": {
                        "token": "t1",
                        "expiresIn": None,
                        "problems": [],
                    }
                }
            },
        )
    )

    # act
    with pytest.raises(TharsisError) as excinfo:
        await provider.get_token()

    # assert
    assert excinfo.value.code is ErrorCode.INTERNAL
    assert route.call_count == 1
