"""Process and resource data source for procview."""

import logging
import random
from datetime import datetime, timedelta

import httpx

from procview.errors import PayloadError
from procview.models import (
    PROCESS_STATUSES,
    TOTAL_DISK_MB,
    TOTAL_MEMORY_MB,
    DataOrigin,
    FetchResult,
    ProcessRecord,
    ResourceSummary,
)

logger = logging.getLogger(__name__)

SYNTHETIC_PROCESS_COUNT = 100

PROCESS_NAMES = (
    # Browsers
    "chrome", "firefox", "safari", "edge", "brave",
    # Developer tools
    "node", "npm", "yarn", "python", "python3", "java", "javaw", "dotnet", "gcc", "clang",
    # Editors
    "vscode", "code", "idea", "eclipse", "atom", "sublime_text", "notepad++",
    # Terminals
    "terminal", "cmd", "powershell", "bash", "zsh", "iTerm", "hyper",
    # Media
    "spotify", "spotify.exe", "music", "itunes", "vlc", "mplayer",
    # Communication
    "slack", "discord", "teams", "zoom", "skype", "telegram", "signal",
    # File managers
    "explorer", "finder", "nautilus", "dolphin",
    # System
    "systemd", "launchd", "svchost", "services", "wininit", "lsass", "ntoskrnl",
    # Containers
    "docker", "containerd", "kubelet", "kube-proxy",
    # Databases
    "mysqld", "postgres", "mongod", "redis-server", "elasticsearch",
    # Web servers
    "nginx", "apache2", "httpd", "iis",
    # Creative
    "photoshop", "illustrator", "gimp", "inkscape", "blender",
    # Security
    "antivirus", "defender", "avast", "norton", "mcafee",
    # Cloud storage
    "dropbox", "onedrive", "gdrive",
    # Gaming
    "steam", "epic", "battle.net", "origin",
)

USERS = ("system", "root", "admin", "user", "guest", "service", "daemon", "www-data", "nobody")
PRIORITIES = (0, 1, 2, 5, 10, 15, 20)

# Start times fall between 5 minutes and 30 days in the past
_MIN_AGE_MINUTES = 5
_MAX_AGE_MINUTES = 30 * 24 * 60


def generate_synthetic_processes(
    rng: random.Random | None = None,
    now: datetime | None = None,
    count: int = SYNTHETIC_PROCESS_COUNT,
) -> list[ProcessRecord]:
    """
    Generate plausible fake processes, sorted by memory usage (descending).

    Args:
        rng: Random source; a fresh generator when omitted.
        now: Reference time for start times. Defaults to the current time.
        count: Number of records to produce.
    """
    rng = rng or random.Random()
    now = now or datetime.now()

    processes = []
    for i in range(count):
        age = timedelta(minutes=rng.randrange(_MIN_AGE_MINUTES, _MAX_AGE_MINUTES))
        processes.append(
            ProcessRecord(
                pid=1000 + i,
                name=rng.choice(PROCESS_NAMES),
                status=rng.choice(PROCESS_STATUSES),
                cpu_kb=round(rng.random() * 100, 2),
                memory_kb=round(rng.random() * 1000, 2),
                user=rng.choice(USERS),
                start_time=(now - age).strftime("%Y-%m-%d %H:%M:%S"),
                threads=rng.randint(1, 20),
                priority=rng.choice(PRIORITIES),
            )
        )

    processes.sort(key=lambda p: p.memory_kb, reverse=True)
    return processes


def generate_synthetic_resources(rng: random.Random | None = None) -> ResourceSummary:
    """Generate a fake resource summary; capacities are always the fixed constants."""
    rng = rng or random.Random()
    return ResourceSummary(
        total_cpu_usage=round(rng.random() * 100, 2),
        total_memory_usage=round(rng.random() * 16000, 2),
        total_memory=TOTAL_MEMORY_MB,
        disk_usage=round(rng.random() * 500000, 2),
        total_disk=TOTAL_DISK_MB,
        network_usage=round(rng.random() * 100, 2),
    )


class ProcessDataSource:
    """
    Fetches the process list and resource summary from the backend API.

    Every failure (transport error, non-2xx status, malformed payload) falls
    back to synthetic data. There are no retries within a call; the store's
    refresh schedule is the retry mechanism.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the ProcessDataSource.

        Args:
            base_url: Backend address, e.g. http://localhost:3002.
            timeout: Per-request timeout in seconds.
            rng: Random source for synthetic fallback data.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._rng = rng or random.Random()

    async def fetch_processes(self) -> FetchResult[list[ProcessRecord]]:
        """Fetch the process list, or synthesize one if the backend is unavailable."""
        try:
            payload = await self._get_json("/processes")
            if not isinstance(payload, list):
                raise PayloadError(f"expected a JSON array, got {type(payload).__name__}")
            processes = [ProcessRecord.from_dict(item) for item in payload]
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.info("Process fetch failed (%s), falling back to synthetic data", exc)
            return FetchResult(generate_synthetic_processes(self._rng), DataOrigin.SYNTHETIC)

        return FetchResult(processes, DataOrigin.REMOTE)

    async def fetch_resources(self) -> FetchResult[ResourceSummary]:
        """Fetch the resource summary, or synthesize one if the backend is unavailable."""
        try:
            payload = await self._get_json("/system-resources")
            summary = ResourceSummary.from_dict(payload)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.info("Resource fetch failed (%s), falling back to synthetic data", exc)
            return FetchResult(generate_synthetic_resources(self._rng), DataOrigin.SYNTHETIC)

        return FetchResult(summary, DataOrigin.REMOTE)

    async def _get_json(self, path: str) -> object:
        """GET a path and decode its JSON body; raises on non-2xx."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.base_url}{path}")
            response.raise_for_status()
            # ValueError (JSONDecodeError) on a non-JSON body
            return response.json()
