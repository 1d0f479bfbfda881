"""Shared fixtures for procview tests."""

import pytest

from procview.models import DataOrigin, FetchResult, ProcessRecord, ResourceSummary


def make_process(pid: int = 1000, **overrides) -> ProcessRecord:
    """Build a ProcessRecord with sensible defaults."""
    fields = {
        "pid": pid,
        "name": f"proc{pid}",
        "status": "running",
        "cpu_kb": 1.0,
        "memory_kb": 10.0,
        "user": "root",
        "start_time": "2026-10-01 12:00:00",
        "threads": 1,
        "priority": 0,
    }
    fields.update(overrides)
    return ProcessRecord(**fields)


def make_resources(**overrides) -> ResourceSummary:
    """Build a ResourceSummary with sensible defaults."""
    fields = {
        "total_cpu_usage": 12.5,
        "total_memory_usage": 8000.0,
        "total_memory": 32000.0,
        "disk_usage": 250000.0,
        "total_disk": 1000000.0,
        "network_usage": 3.0,
    }
    fields.update(overrides)
    return ResourceSummary(**fields)


class FakeSource:
    """In-memory data source that serves queued snapshots."""

    def __init__(self, processes=None, resources=None, origin=DataOrigin.REMOTE) -> None:
        self.processes = list(processes or [])
        self.resources = resources or make_resources()
        self.origin = origin
        self.fail_with: Exception | None = None
        self.process_calls = 0
        self.resource_calls = 0

    async def fetch_processes(self) -> FetchResult[list[ProcessRecord]]:
        self.process_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return FetchResult(list(self.processes), self.origin)

    async def fetch_resources(self) -> FetchResult[ResourceSummary]:
        self.resource_calls += 1
        return FetchResult(self.resources, self.origin)


@pytest.fixture
def fake_source():
    """A FakeSource preloaded with 25 processes."""
    return FakeSource(processes=[make_process(1000 + i, memory_kb=float(i)) for i in range(25)])


class FakeClient:
    """Inference client double with scripted replies."""

    def __init__(self, replies=None, available: bool = True) -> None:
        self.replies = list(replies or [])
        self.available = available
        self.prompts: list[str] = []

    async def is_available(self) -> bool:
        return self.available

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingNotifier:
    """Stands in for App.notify."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def __call__(self, message: str, *, severity: str = "information") -> None:
        self.messages.append((message, severity))
