"""Module containing the job queries, the job log subscriptions and job log following."""

import contextlib
import inspect
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

from .constants import DEFAULT_LOG_LIMIT, DEFAULT_LOG_POLL_INTERVAL
from .errors import ErrorCode, TharsisError
from .graphql_client import GraphQLClient
from .log_tail import LogChunk, LogTailer
from .run import Runs
from .subscription import EventStream, SubscriptionClient
from .types import METADATA_FIELDS, Job, JobType, RunStatus, is_terminal_run_status
from .types import metadata_from_graphql

logger = logging.getLogger(__name__)

# pylint: disable=R0903

JOB_FIELDS = (
    f"{METADATA_FIELDS} status type logSize maxJobDuration cancelRequested "
    "run { id } workspace { fullPath }"
)

_GET_JOB_QUERY = f"""
query ($id: String!) {{
  job(id: $id) {{ {JOB_FIELDS} }}
}}
"""

_GET_JOB_LOGS_QUERY = """
query ($id: String!, $startOffset: Int!, $limit: Int!) {
  job(id: $id) {
    logs(startOffset: $startOffset, limit: $limit)
    logSize
  }
}
"""

_JOB_LOG_STREAM_SUBSCRIPTION = """
subscription ($input: JobLogStreamSubscriptionInput!) {
  jobLogStreamEvents(input: $input) { completed size }
}
"""


@dataclass
class JobLogsSubscriptionInput:
    """
    The input for following the logs of a job.

    :param job_id: the job whose logs to follow
    :param run_id: the run owning the job, watched to know when the logs stop growing
    :param workspace_path: full path of the workspace of the run
    :param start_offset: number of log characters already seen, to resume a previous follow
    :param limit: maximum number of characters fetched at once
    """

    job_id: str
    run_id: str
    workspace_path: str
    start_offset: int = 0
    limit: int | None = None


@dataclass(frozen=True)
class JobLogStreamEvent:
    """Notification that the log of a job changed."""

    size: int
    completed: bool


class LogSink(Protocol):
    """Anything log chunks can be written to, e.g. a text file or sys.stdout."""

    def write(self, logs: str, /) -> Any:
        """Write a chunk of logs. An awaitable result is awaited."""
        ...


def job_log_stream_event_from_graphql(event: dict[str, Any]) -> JobLogStreamEvent:
    """Convert the payload of a job log stream event."""
    payload = event["jobLogStreamEvents"]
    return JobLogStreamEvent(
        size=payload.get("size") or 0, completed=bool(payload.get("completed"))
    )


def job_from_graphql(node: dict[str, Any]) -> Job:
    """Convert a GraphQL job node into a Job."""
    job_type: JobType | str = node.get("type") or ""
    try:
        job_type = JobType(job_type)
    except ValueError:
        pass
    return Job(
        metadata=metadata_from_graphql(node),
        status=node.get("status") or "",
        type=job_type,
        run_id=(node.get("run") or {}).get("id", ""),
        workspace_path=(node.get("workspace") or {}).get("fullPath", ""),
        log_size=node.get("logSize") or 0,
        max_job_duration=node.get("maxJobDuration") or 0,
        cancel_requested=bool(node.get("cancelRequested")),
    )


class Jobs:
    """Queries and subscriptions related to Tharsis jobs."""

    def __init__(
        self,
        graphql_client: GraphQLClient,
        subscription_client: SubscriptionClient,
        runs: Runs,
        log_limit: int = DEFAULT_LOG_LIMIT,
        log_poll_interval: float = DEFAULT_LOG_POLL_INTERVAL,
    ) -> None:
        self._graphql_client = graphql_client
        self._subscription_client = subscription_client
        self._runs = runs
        self._log_limit = log_limit
        self._log_poll_interval = log_poll_interval

    async def get_job(self, job_id: str) -> Job:
        """
        Return the job with the given ID.

        :raises TharsisError: with code NOT_FOUND if there is no such job.
        """
        data = await self._graphql_client.execute(_GET_JOB_QUERY, {"id": job_id})
        if data.get("job") is None:
            raise TharsisError(ErrorCode.NOT_FOUND, f"job with id {job_id} not found")
        return job_from_graphql(data["job"])

    async def get_job_logs(
        self, job_id: str, start_offset: int, limit: int | None = None
    ) -> LogChunk:
        """
        Return the logs of a job from the given offset, together with the current log size.
        Fetching the same offset again returns the same logs, plus whatever was appended since.

        :raises TharsisError: with code NOT_FOUND if there is no such job.
        """
        variables = {
            "id": job_id,
            "startOffset": start_offset,
            "limit": limit if limit is not None else self._log_limit,
        }
        data = await self._graphql_client.execute(_GET_JOB_LOGS_QUERY, variables)
        if data.get("job") is None:
            raise TharsisError(ErrorCode.NOT_FOUND, f"job with id {job_id} not found")
        return LogChunk(logs=data["job"]["logs"] or "", size=data["job"]["logSize"] or 0)

    async def subscribe_to_job_log_stream_events(
        self, job_id: str, last_seen_log_size: int | None = None
    ) -> EventStream[JobLogStreamEvent]:
        """
        Subscribe to notifications that the log of a job has grown.

        :param job_id: the job to watch
        :param last_seen_log_size: log size the caller has already seen
        """
        return await self._subscription_client.subscribe(
            _JOB_LOG_STREAM_SUBSCRIPTION,
            {"input": {"jobId": job_id, "lastSeenLogSize": last_seen_log_size}},
            job_log_stream_event_from_graphql,
        )

    async def subscribe_to_job_logs(
        self, subscription_input: JobLogsSubscriptionInput
    ) -> AsyncIterator[str]:
        """
        Yield the logs of a job in order as they are written, until the run owning the job has
        finished and all of its logs were yielded.

        Both subscriptions are started before the current status of the run is checked, so a run
        finishing in between is not missed.

        :raises TharsisError: if a fetch or a subscription fails.
        :raises asyncio.CancelledError: if cancelled while waiting for new logs.
        """

        async def fetch_logs(offset: int) -> LogChunk:
            return await self.get_job_logs(
                subscription_input.job_id, offset, subscription_input.limit
            )

        async with contextlib.AsyncExitStack() as stack:
            run_events = await self._runs.subscribe_to_workspace_run_events(
                subscription_input.workspace_path, subscription_input.run_id
            )
            stack.push_async_callback(run_events.aclose)
            log_events = await self.subscribe_to_job_log_stream_events(
                subscription_input.job_id, subscription_input.start_offset
            )
            stack.push_async_callback(log_events.aclose)

            async def statuses() -> AsyncIterator[RunStatus | str]:
                async for run_event in run_events:
                    yield run_event.status

            async def run_status() -> RunStatus | str:
                return (await self._runs.get_run(subscription_input.run_id)).status

            status = await run_status()
            tailer = LogTailer(
                fetch_logs,
                log_events,
                statuses(),
                start_offset=subscription_input.start_offset,
                poll_interval=self._log_poll_interval,
                run_completed=is_terminal_run_status(status),
                get_run_status=run_status,
            )
            logger.debug(
                "following logs of job %s from offset %d",
                subscription_input.job_id,
                subscription_input.start_offset,
            )
            async with contextlib.aclosing(tailer.chunks()) as chunks:
                async for chunk in chunks:
                    yield chunk

    async def follow_job_logs(
        self, subscription_input: JobLogsSubscriptionInput, sink: LogSink
    ) -> int:
        """
        Write the logs of a job to the sink as they are written, returning once the run owning
        the job has finished and all of its logs were written.

        To resume after a failure, call again with `start_offset` advanced by the length of
        everything the sink received.

        :return: the log offset reached, i.e. the size of the complete log
        :raises TharsisError: if a fetch or a subscription fails.
        :raises asyncio.CancelledError: if cancelled while waiting for new logs.
        """
        offset = subscription_input.start_offset
        async with contextlib.aclosing(self.subscribe_to_job_logs(subscription_input)) as chunks:
            async for chunk in chunks:
                result = sink.write(chunk)
                if inspect.isawaitable(result):
                    await result
                offset += len(chunk)
        return offset
