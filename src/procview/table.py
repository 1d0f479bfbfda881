"""Search, sort and pagination over the process list."""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from procview.models import ProcessRecord

PAGE_SIZE = 10
PAGE_WINDOW = 5
PLACEHOLDER_ROWS = 5

NO_MATCHES_MESSAGE = "No matching processes found"
NO_PROCESSES_MESSAGE = "No processes found"


class SortKey(Enum):
    """Sort keys for the process table; values are ProcessRecord attribute names."""

    PID = "pid"
    NAME = "name"
    USER = "user"
    STATUS = "status"
    CPU = "cpu_kb"
    MEMORY = "memory_kb"
    START_TIME = "start_time"
    THREADS = "threads"
    PRIORITY = "priority"


class SortDirection(Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


def filter_processes(records: Sequence[ProcessRecord], term: str) -> list[ProcessRecord]:
    """
    Keep records whose name, pid, status or user contains term.

    Matching is a case-insensitive substring test; the pid is matched on its
    decimal text, not numerically. An empty term keeps everything.
    """
    if not term:
        return list(records)

    needle = term.lower()
    return [
        record
        for record in records
        if needle in record.name.lower()
        or needle in str(record.pid)
        or needle in record.status.lower()
        or needle in record.user.lower()
    ]


def sort_processes(
    records: Sequence[ProcessRecord],
    key: SortKey,
    direction: SortDirection,
) -> list[ProcessRecord]:
    """Stable sort on one field; ties keep their incoming order in both directions."""
    attribute = key.value
    return sorted(
        records,
        key=lambda record: getattr(record, attribute),
        reverse=direction is SortDirection.DESCENDING,
    )


def page_count(length: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages needed for length rows."""
    return math.ceil(length / page_size)


def clamp_page(page: int, total_pages: int) -> int:
    """Clamp a 1-indexed page into [1, total_pages]; page 1 when there are no pages."""
    return max(1, min(page, max(total_pages, 1)))


def paginate(
    records: Sequence[ProcessRecord],
    page: int,
    page_size: int = PAGE_SIZE,
) -> list[ProcessRecord]:
    """Rows shown on a 1-indexed page."""
    start = (page - 1) * page_size
    return list(records[start : start + page_size])


def page_window(current: int, total_pages: int, width: int = PAGE_WINDOW) -> list[int]:
    """
    Page numbers to offer as links.

    Up to width pages, centred on current where possible and shifted to stay
    inside [1, total_pages] near either end.
    """
    if total_pages <= 0:
        return []
    if total_pages <= width:
        return list(range(1, total_pages + 1))

    start = current - width // 2
    start = max(1, min(start, total_pages - width + 1))
    return list(range(start, start + width))


@dataclass(slots=True, frozen=True)
class TablePage:
    """One rendered page of the process table."""

    rows: list[ProcessRecord]
    match_count: int
    total_count: int
    page: int
    total_pages: int
    window: list[int] = field(default_factory=list)
    placeholder_rows: int = 0
    empty_message: str | None = None


class TableView:
    """Search term, sort order and current page for the process table."""

    def __init__(self, page_size: int = PAGE_SIZE) -> None:
        self.page_size = page_size
        self.search_term = ""
        self.sort_key = SortKey.MEMORY
        self.direction = SortDirection.DESCENDING
        self.page = 1

    def toggle_sort(self, key: SortKey) -> None:
        """Sort ascending by key, or flip to descending if already ascending by key."""
        if self.sort_key is key and self.direction is SortDirection.ASCENDING:
            self.direction = SortDirection.DESCENDING
        else:
            self.sort_key = key
            self.direction = SortDirection.ASCENDING

    def cycle_sort(self) -> SortKey:
        """Move to the next sort key (ascending) and return it."""
        keys = list(SortKey)
        next_index = (keys.index(self.sort_key) + 1) % len(keys)
        self.sort_key = keys[next_index]
        self.direction = SortDirection.ASCENDING
        return self.sort_key

    def set_search(self, term: str) -> None:
        """Change the search term; the view goes back to the first page."""
        if term != self.search_term:
            self.search_term = term
            self.page = 1

    def select_page(self, page: int, total_pages: int) -> int:
        self.page = clamp_page(page, total_pages)
        return self.page

    def next_page(self, total_pages: int) -> int:
        return self.select_page(self.page + 1, total_pages)

    def previous_page(self) -> int:
        self.page = max(1, self.page - 1)
        return self.page

    def render(self, records: Sequence[ProcessRecord], loading: bool = False) -> TablePage:
        """Filter, sort and slice records for display."""
        if loading and not records:
            return TablePage(
                rows=[],
                match_count=0,
                total_count=0,
                page=1,
                total_pages=0,
                placeholder_rows=PLACEHOLDER_ROWS,
            )

        matches = filter_processes(records, self.search_term)
        ordered = sort_processes(matches, self.sort_key, self.direction)
        total_pages = page_count(len(ordered), self.page_size)
        # Data may have shrunk since the page was chosen
        self.page = clamp_page(self.page, total_pages)
        rows = paginate(ordered, self.page, self.page_size)

        empty_message = None
        if not rows:
            empty_message = NO_MATCHES_MESSAGE if self.search_term else NO_PROCESSES_MESSAGE

        return TablePage(
            rows=rows,
            match_count=len(matches),
            total_count=len(records),
            page=self.page,
            total_pages=total_pages,
            window=page_window(self.page, total_pages),
            empty_message=empty_message,
        )
