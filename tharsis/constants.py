"""Module containing constants which are shared between the SDK modules."""

GRAPHQL_SUFFIX = "graphql"
"""Path appended to the API endpoint for both queries and subscriptions."""

DEFAULT_LOG_LIMIT = 1024 * 1024
"""Maximum number of log characters requested per fetch when no limit is given."""

DEFAULT_LOG_POLL_INTERVAL = 30.0
"""
Seconds the log tail waits for an event before fetching anyway. This is a failsafe in case the
subscription connection is lost.
"""

GRAPHQL_WS_SUBPROTOCOL = "graphql-ws"
