"""Data models for procview."""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from procview.errors import PayloadError

T = TypeVar("T")

PROCESS_STATUSES = ("running", "sleeping", "stopped", "zombie", "waiting", "locked")

# Capacity figures in MB, reported as-is by the synthetic summary
TOTAL_MEMORY_MB = 32000.0
TOTAL_DISK_MB = 1000000.0


def _field(data: Mapping[str, Any], key: str, kind: type) -> Any:
    """Read one JSON field and coerce it, raising PayloadError on mismatch."""
    try:
        value = data[key]
    except KeyError:
        raise PayloadError(f"missing field {key!r}") from None
    # bool is an int subclass; a JSON true is never a valid number here
    if isinstance(value, bool) or value is None:
        raise PayloadError(f"field {key!r} has invalid value {value!r}")
    if kind is str:
        if not isinstance(value, str):
            raise PayloadError(f"field {key!r} must be a string, got {value!r}")
        return value
    if not isinstance(value, (int, float)):
        raise PayloadError(f"field {key!r} must be a number, got {value!r}")
    # JSON 1e400 decodes to inf and NaN is accepted by the decoder
    if isinstance(value, float) and not math.isfinite(value):
        raise PayloadError(f"field {key!r} must be finite, got {value!r}")
    try:
        return kind(value)
    except OverflowError:
        raise PayloadError(f"field {key!r} is out of range") from None


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable row of process metadata as served by the backend."""

    pid: int
    name: str
    status: str  # One of PROCESS_STATUSES; unknown values are kept verbatim
    cpu_kb: float
    memory_kb: float
    user: str
    start_time: str  # 'YYYY-MM-DD HH:MM:SS'
    threads: int
    priority: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProcessRecord":
        """Parse one element of the backend's /processes array."""
        if not isinstance(data, Mapping):
            raise PayloadError(f"process entry must be an object, got {type(data).__name__}")
        return cls(
            pid=_field(data, "pid", int),
            name=_field(data, "name", str),
            status=_field(data, "status", str),
            cpu_kb=_field(data, "cpuKb", float),
            memory_kb=_field(data, "memoryKb", float),
            user=_field(data, "user", str),
            start_time=_field(data, "startTime", str),
            threads=_field(data, "threads", int),
            priority=_field(data, "priority", int),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the backend's camelCase shape."""
        return {
            "pid": self.pid,
            "name": self.name,
            "status": self.status,
            "cpuKb": self.cpu_kb,
            "memoryKb": self.memory_kb,
            "user": self.user,
            "startTime": self.start_time,
            "threads": self.threads,
            "priority": self.priority,
        }


@dataclass(slots=True, frozen=True)
class ResourceSummary:
    """Aggregate machine utilisation snapshot."""

    total_cpu_usage: float  # Percent
    total_memory_usage: float  # MB
    total_memory: float  # MB
    disk_usage: float  # MB
    total_disk: float  # MB
    network_usage: float

    @classmethod
    def empty(cls) -> "ResourceSummary":
        """Zero usage against the fixed capacities; shown before the first refresh."""
        return cls(
            total_cpu_usage=0.0,
            total_memory_usage=0.0,
            total_memory=TOTAL_MEMORY_MB,
            disk_usage=0.0,
            total_disk=TOTAL_DISK_MB,
            network_usage=0.0,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceSummary":
        """Parse the backend's /system-resources object."""
        if not isinstance(data, Mapping):
            raise PayloadError(f"resource summary must be an object, got {type(data).__name__}")
        return cls(
            total_cpu_usage=_field(data, "totalCpuUsage", float),
            total_memory_usage=_field(data, "totalMemoryUsage", float),
            total_memory=_field(data, "totalMemory", float),
            disk_usage=_field(data, "diskUsage", float),
            total_disk=_field(data, "totalDisk", float),
            network_usage=_field(data, "networkUsage", float),
        )

    def to_dict(self) -> dict[str, float]:
        """Serialize back to the backend's camelCase shape."""
        return {
            "totalCpuUsage": self.total_cpu_usage,
            "totalMemoryUsage": self.total_memory_usage,
            "totalMemory": self.total_memory,
            "diskUsage": self.disk_usage,
            "totalDisk": self.total_disk,
            "networkUsage": self.network_usage,
        }


class DataOrigin(Enum):
    """Where a fetched payload came from."""

    REMOTE = "remote"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Payload tagged with its origin, so callers can tell real data from fallback."""

    data: T
    origin: DataOrigin

    @property
    def synthetic(self) -> bool:
        """True when the payload was generated locally."""
        return self.origin is DataOrigin.SYNTHETIC
