"""
This module defines the error class raised by the SDK, TharsisError, together with the closed set
of error codes it carries and the functions that map transport level failures onto it.

Failures come from three places: a non-2xx HTTP status, the `errors` array of a GraphQL response
(classified by the `code` extension) and the `problems` list returned by mutations. All three are
mapped to an `ErrorCode` so that callers can tell e.g. a vanished job from a rate limit.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

import httpx


class ErrorCode(str, Enum):
    """The kinds of errors that can be returned by the SDK."""

    INTERNAL = "internal error"
    NOT_IMPLEMENTED = "not implemented"
    NOT_FOUND = "not found"
    CONFLICT = "conflict"
    OPTIMISTIC_LOCK = "optimistic lock"
    FORBIDDEN = "forbidden"
    TOO_MANY_REQUESTS = "too many requests"
    UNAUTHORIZED = "unauthorized"
    TOO_LARGE = "request too large"
    BAD_REQUEST = "bad request"
    SERVICE_UNAVAILABLE = "service unavailable"


class TharsisError(Exception):
    """
    TharsisError has two attributes, `message` and `code`, which are set during initialization.
    The `message` attribute is a human-readable error message and `code` is the `ErrorCode`
    describing the type of error that occurred.
    """

    def __init__(self, code: ErrorCode, message: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message or f"<{self.code.value}>"

    def __repr__(self) -> str:
        return f"TharsisError(code={self.code.name}, message={self.message!r})"


_GRAPHQL_ERROR_CODES = {
    "INTERNAL_SERVER_ERROR": ErrorCode.INTERNAL,
    "BAD_REQUEST": ErrorCode.BAD_REQUEST,
    "NOT_IMPLEMENTED": ErrorCode.NOT_IMPLEMENTED,
    "CONFLICT": ErrorCode.CONFLICT,
    "OPTIMISTIC_LOCK": ErrorCode.OPTIMISTIC_LOCK,
    "NOT_FOUND": ErrorCode.NOT_FOUND,
    "FORBIDDEN": ErrorCode.FORBIDDEN,
    "RATE_LIMIT_EXCEEDED": ErrorCode.TOO_MANY_REQUESTS,
    "UNAUTHENTICATED": ErrorCode.UNAUTHORIZED,
    "UNAUTHORIZED": ErrorCode.UNAUTHORIZED,
    "SERVICE_UNAVAILABLE": ErrorCode.SERVICE_UNAVAILABLE,
}

_GRAPHQL_PROBLEM_TYPES = {
    "CONFLICT": ErrorCode.CONFLICT,
    "BAD_REQUEST": ErrorCode.BAD_REQUEST,
    "NOT_FOUND": ErrorCode.NOT_FOUND,
    "FORBIDDEN": ErrorCode.FORBIDDEN,
    "SERVICE_UNAVAILABLE": ErrorCode.SERVICE_UNAVAILABLE,
}

_HTTP_STATUS_CODES = {
    httpx.codes.INTERNAL_SERVER_ERROR: ErrorCode.INTERNAL,
    httpx.codes.NOT_IMPLEMENTED: ErrorCode.NOT_IMPLEMENTED,
    httpx.codes.BAD_REQUEST: ErrorCode.BAD_REQUEST,
    httpx.codes.CONFLICT: ErrorCode.CONFLICT,
    httpx.codes.NOT_FOUND: ErrorCode.NOT_FOUND,
    httpx.codes.FORBIDDEN: ErrorCode.FORBIDDEN,
    httpx.codes.TOO_MANY_REQUESTS: ErrorCode.TOO_MANY_REQUESTS,
    httpx.codes.UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    httpx.codes.REQUEST_ENTITY_TOO_LARGE: ErrorCode.TOO_LARGE,
    httpx.codes.SERVICE_UNAVAILABLE: ErrorCode.SERVICE_UNAVAILABLE,
}


def _combine(errors: list[TharsisError]) -> TharsisError | None:
    """A single response can carry several errors; the first one decides the code."""
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return TharsisError(errors[0].code, "; ".join(err.message for err in errors))


def error_from_graphql_errors(errors: Iterable[Mapping[str, Any]]) -> TharsisError | None:
    """
    Build a TharsisError from the `errors` array of a GraphQL response.

    :param errors: the raw error objects
    :return: the mapped error, or None when the array is empty
    """
    mapped = []
    for error in errors:
        extensions = error.get("extensions") or {}
        code = _GRAPHQL_ERROR_CODES.get(extensions.get("code", ""), ErrorCode.INTERNAL)
        mapped.append(TharsisError(code, error.get("message", "")))
    return _combine(mapped)


def error_from_graphql_problems(
    problems: Iterable[Mapping[str, Any]] | None,
) -> TharsisError | None:
    """
    Build a TharsisError from the `problems` list returned by a mutation.

    :param problems: the raw problem objects, each with a `message` and a `type`
    :return: the mapped error, or None when there are no problems
    """
    mapped = [
        TharsisError(
            _GRAPHQL_PROBLEM_TYPES.get(problem.get("type", ""), ErrorCode.INTERNAL),
            problem.get("message", ""),
        )
        for problem in problems or ()
    ]
    return _combine(mapped)


def error_from_http_response(response: httpx.Response) -> TharsisError:
    """
    Build a TharsisError from an unsuccessful HTTP response.

    :param response: a response which has already been read
    """
    code = _HTTP_STATUS_CODES.get(response.status_code, ErrorCode.INTERNAL)
    return TharsisError(
        code,
        f"http request received http status code {response.status_code}: {response.text}",
    )


def is_not_found_error(err: BaseException | None) -> bool:
    """Return True if the error is a TharsisError with the NOT_FOUND code."""
    return isinstance(err, TharsisError) and err.code is ErrorCode.NOT_FOUND


def is_conflict_error(err: BaseException | None) -> bool:
    """Return True if the error is a TharsisError with the CONFLICT code."""
    return isinstance(err, TharsisError) and err.code is ErrorCode.CONFLICT
