"""
Follow the log of a job while it grows.

The LogTailer combines three inputs: a pull-based fetch of the log from an offset, a stream of
"new logs available" events and a stream of run status changes. Each wake-up, whether caused by
an event or by the poll timer, is followed by exactly one fetch from the current offset, so
chunks come out in offset order without gaps and the request rate is bounded by the event rate.
Once the run has reached a terminal status the tailer keeps fetching until the reported log size
has been delivered, then stops.
"""

import asyncio
import enum
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .constants import DEFAULT_LOG_POLL_INTERVAL
from .errors import ErrorCode, TharsisError
from .types import RunStatus, is_terminal_run_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogChunk:
    """
    The result of one log fetch.

    :param logs: the log text starting at the requested offset
    :param size: the total size of the log on the server at the time of the fetch
    """

    logs: str
    size: int


FetchLogs = Callable[[int], Awaitable[LogChunk]]
GetRunStatus = Callable[[], Awaitable[RunStatus | str]]


class _Source(enum.Enum):
    LOG = "log"
    RUN = "run"
    ERROR = "error"
    END = "end"


class LogTailer:
    """
    Produces the log of a job as an ordered, terminating sequence of chunks.

    A tailer is used for a single pass over the log. Its `offset` stays readable after the pass
    ended, including when it failed or was cancelled, so a new tailer can resume from there.
    """

    def __init__(
        self,
        fetch_logs: FetchLogs,
        log_events: AsyncIterable[Any],
        run_events: AsyncIterable[RunStatus | str],
        start_offset: int = 0,
        poll_interval: float = DEFAULT_LOG_POLL_INTERVAL,
        run_completed: bool = False,
        get_run_status: GetRunStatus | None = None,
    ) -> None:
        """
        Initialize the LogTailer.

        :param fetch_logs: coroutine function returning the log from the given offset
        :param log_events: events signalling that new log content may be available
        :param run_events: the statuses of the run owning the job, as they change
        :param start_offset: the number of characters already delivered to the consumer
        :param poll_interval: seconds to wait for an event before fetching anyway
        :param run_completed: whether the run is already known to be in a terminal status
        :param get_run_status: coroutine function returning the current status of the run, used
            once the run event stream has ended and on every poll tick after that
        """
        self._fetch_logs = fetch_logs
        self._log_events = log_events
        self._run_events = run_events
        self._poll_interval = poll_interval
        self.offset = start_offset
        self.run_completed = run_completed
        self._get_run_status = get_run_status
        self._run_events_ended = False

    async def chunks(self) -> AsyncIterator[str]:
        """
        Yield the log chunks in order until the run finished and the whole log was delivered.

        :raises TharsisError: if a fetch fails, or if the server reports more log content than
            it returns once the run has finished.
        :raises Exception: any error raised by one of the event streams, unchanged.
        :raises asyncio.CancelledError: if cancelled while waiting for an event.
        """
        queue: asyncio.Queue[tuple[_Source, Any]] = asyncio.Queue()
        pumps = [
            asyncio.create_task(self._pump(_Source.LOG, self._log_events, queue)),
            asyncio.create_task(self._pump(_Source.RUN, self._run_events, queue)),
        ]
        try:
            while True:
                chunk = await self._fetch_logs(self.offset)
                self.offset += len(chunk.logs)
                if chunk.logs:
                    yield chunk.logs

                if self.run_completed:
                    if self.offset >= chunk.size:
                        logger.debug("run finished and %d log characters delivered", self.offset)
                        return
                    if not chunk.logs:
                        msg = (
                            f"log size is {chunk.size} but no log content was returned "
                            f"from offset {self.offset}"
                        )
                        raise TharsisError(ErrorCode.INTERNAL, msg)
                    # Logs are still pending, fetch again without waiting.
                    continue

                await self._wait(queue)
        finally:
            for pump in pumps:
                pump.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)

    async def _wait(self, queue: asyncio.Queue[tuple[_Source, Any]]) -> None:
        """Wait for the next event, or for the poll interval to pass."""
        try:
            source, item = await asyncio.wait_for(queue.get(), self._poll_interval)
        except asyncio.TimeoutError:
            logger.debug("no event in %s seconds, polling logs", self._poll_interval)
            if self._run_events_ended:
                await self._check_run_status()
            return

        if source is _Source.ERROR:
            raise item
        if source is _Source.END and item is _Source.RUN:
            self._run_events_ended = True
            await self._check_run_status()
        elif source is _Source.RUN and is_terminal_run_status(item):
            logger.debug("run reached terminal status %s", item)
            self.run_completed = True

    async def _check_run_status(self) -> None:
        """Query the run status, as no more status change events will arrive."""
        if self._get_run_status is None:
            return
        status = await self._get_run_status()
        if is_terminal_run_status(status):
            logger.debug("run has terminal status %s", status)
            self.run_completed = True

    @staticmethod
    async def _pump(
        source: _Source,
        events: AsyncIterable[Any],
        queue: asyncio.Queue[tuple[_Source, Any]],
    ) -> None:
        """Forward the events of one stream to the queue, including the error ending it."""
        try:
            async for event in events:
                queue.put_nowait((source, event))
        except Exception as err:  # pylint: disable=broad-except
            queue.put_nowait((_Source.ERROR, err))
        else:
            # The poll timer keeps the tail going without this stream.
            logger.debug("%s event stream ended", source.value)
            queue.put_nowait((_Source.END, source))
