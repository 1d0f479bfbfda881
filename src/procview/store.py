"""Process state container for procview."""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from procview.models import FetchResult, ProcessRecord, ResourceSummary

logger = logging.getLogger(__name__)

REFRESH_ERROR_MESSAGE = "Failed to fetch system data"


class DataSource(Protocol):
    """Anything that can produce process and resource snapshots."""

    async def fetch_processes(self) -> FetchResult[list[ProcessRecord]]: ...

    async def fetch_resources(self) -> FetchResult[ResourceSummary]: ...


class StoreChange(Enum):
    """Kinds of state change published to listeners."""

    PROCESSES = "processes"
    RESOURCES = "resources"
    LOADING = "loading"
    ERROR = "error"
    CHAT = "chat"


Listener = Callable[[StoreChange], None]


class ProcessStore:
    """
    Owns the process list, resource summary and chat history.

    State is only mutated through refresh() and add_chat_entry(); readers get
    tuples and frozen records. A background task refreshes immediately on
    start() and then every refresh_interval seconds until stop().
    """

    def __init__(self, source: DataSource, refresh_interval: float = 10.0) -> None:
        """
        Initialize the ProcessStore.

        Args:
            source: Data source queried on every refresh.
            refresh_interval: Seconds between background refreshes. Default 10.0s.
        """
        self._source = source
        self._refresh_interval = max(0.1, refresh_interval)
        self._processes: tuple[ProcessRecord, ...] = ()
        self._resources = ResourceSummary.empty()
        self._synthetic = False
        self._loading = True  # Nothing fetched yet
        self._error: str | None = None
        self._chat_history: tuple[str, ...] = ()
        self._listeners: list[Listener] = []
        self._refresh_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def processes(self) -> tuple[ProcessRecord, ...]:
        """Current process snapshot."""
        return self._processes

    @property
    def resources(self) -> ResourceSummary:
        """Current resource summary."""
        return self._resources

    @property
    def synthetic(self) -> bool:
        """True when the held process list is locally generated fallback data."""
        return self._synthetic

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def chat_history(self) -> tuple[str, ...]:
        """Replies from the inference server, oldest first."""
        return self._chat_history

    @property
    def refresh_interval(self) -> float:
        """Get the current refresh interval."""
        return self._refresh_interval

    @refresh_interval.setter
    def refresh_interval(self, value: float) -> None:
        """Set the refresh interval; takes effect after the next tick."""
        self._refresh_interval = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the refresh schedule is active."""
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self) -> None:
        """
        Fetch processes and resources concurrently and replace both together.

        Refreshes are serialized: a call made while another is in flight waits
        for it to finish and then runs. Failures set error and are published,
        never raised.
        """
        async with self._refresh_lock:
            # Only show the loading state on first load to avoid flicker
            if not self._processes:
                self._set_loading(True)
            try:
                process_result, resource_result = await asyncio.gather(
                    self._source.fetch_processes(),
                    self._source.fetch_resources(),
                )
                self._apply(process_result, resource_result)
            except Exception:
                logger.exception("Refresh failed")
                self._error = REFRESH_ERROR_MESSAGE
                self._publish(StoreChange.ERROR)
            finally:
                self._set_loading(False)

    def add_chat_entry(self, reply: str) -> None:
        """Append one reply to the chat history."""
        self._chat_history = (*self._chat_history, reply)
        self._publish(StoreChange.CHAT)

    def start(self) -> None:
        """Start the refresh schedule. Must be called from a running event loop."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._poll_loop(), name="ProcessStore")

    async def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the refresh schedule.

        Args:
            timeout: How long to wait for an in-flight refresh before cancelling it.
        """
        self._stop_event.set()
        if self._task is not None:
            task, self._task = self._task, None
            try:
                await asyncio.wait_for(task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Refresh task did not stop within %ss, cancelled", timeout)

    async def __aenter__(self) -> "ProcessStore":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _poll_loop(self) -> None:
        """Refresh now, then once per interval until stop is requested."""
        while not self._stop_event.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._refresh_interval)
            except asyncio.TimeoutError:
                pass

    def _apply(
        self,
        process_result: FetchResult[list[ProcessRecord]],
        resource_result: FetchResult[ResourceSummary],
    ) -> None:
        """Swap in a new snapshot, then notify. Listeners never see half an update."""
        processes = tuple(process_result.data)
        processes_changed = (
            processes != self._processes or process_result.synthetic != self._synthetic
        )
        if processes_changed:
            self._processes = processes
            self._synthetic = process_result.synthetic
        self._resources = resource_result.data
        had_error = self._error is not None
        self._error = None

        if processes_changed:
            self._publish(StoreChange.PROCESSES)
        self._publish(StoreChange.RESOURCES)
        if had_error:
            self._publish(StoreChange.ERROR)

    def _set_loading(self, value: bool) -> None:
        if self._loading != value:
            self._loading = value
            self._publish(StoreChange.LOADING)

    def _publish(self, change: StoreChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Listener failed on %s", change.value)
