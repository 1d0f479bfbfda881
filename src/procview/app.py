"""procview - Main Textual application."""

import argparse
import logging

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, VerticalScroll
from textual.logging import TextualHandler
from textual.widgets import Button, DataTable, Footer, Input, Static
from textual.widgets.data_table import ColumnKey

from procview.config import DashboardConfig
from procview.datasource import ProcessDataSource
from procview.errors import ConfigError
from procview.models import ProcessRecord, ResourceSummary
from procview.query import UNAVAILABLE_WARNING, InferenceClient, QuerySubmitter, SubmitOutcome
from procview.store import DataSource, ProcessStore, StoreChange
from procview.table import SortDirection, SortKey, TablePage, TableView

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    "running": "green",
    "sleeping": "blue",
    "zombie": "red",
}

COLUMNS = [
    ("PID", SortKey.PID, 8),
    ("Name", SortKey.NAME, 18),
    ("User", SortKey.USER, 10),
    ("Status", SortKey.STATUS, 10),
    ("CPU (KB)", SortKey.CPU, 10),
    ("Memory (KB)", SortKey.MEMORY, 12),
    ("Start Time", SortKey.START_TIME, 20),
    ("Threads", SortKey.THREADS, 8),
    ("Priority", SortKey.PRIORITY, 8),
]


def usage_bar(used: float, total: float, color: str, width: int = 20) -> str:
    """Render used/total as a fixed-width markup bar."""
    fraction = used / total if total > 0 else 0.0
    bar_len = min(width, max(0, int(fraction * width)))
    return f"[{color}]█[/{color}]" * bar_len + "[dim]░[/dim]" * (width - bar_len)


class ResourceStats(Static):
    """Header widget showing aggregate resource usage."""

    DEFAULT_CSS = """
    ResourceStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ResourceStats."""
        super().__init__(*args, **kwargs)
        self._resources = ResourceSummary.empty()
        self._synthetic = False
        self._loaded = False

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_usage_info(), id="usage-info"),
            Static(self._get_capacity_info(), id="capacity-info"),
        )

    def update_resources(self, resources: ResourceSummary, synthetic: bool) -> None:
        """Show a new resource summary."""
        self._resources = resources
        self._synthetic = synthetic
        self._loaded = True
        self.query_one("#usage-info", Static).update(self._get_usage_info())
        self.query_one("#capacity-info", Static).update(self._get_capacity_info())

    def _get_usage_info(self) -> str:
        if not self._loaded:
            return "Loading resource info..."
        res = self._resources
        # Escaped brackets around the bars
        return (
            f"CPU \\[{usage_bar(res.total_cpu_usage, 100.0, 'green')}] "
            f"{res.total_cpu_usage:5.1f}%\n"
            f"Net \\[{usage_bar(res.network_usage, 100.0, 'magenta')}] "
            f"{res.network_usage:5.1f}"
        )

    def _get_capacity_info(self) -> str:
        if not self._loaded:
            return "Loading capacity info..."
        res = self._resources
        lines = [
            f"Mem \\[{usage_bar(res.total_memory_usage, res.total_memory, 'cyan')}] "
            f"{res.total_memory_usage / 1000:.1f}G/{res.total_memory / 1000:.1f}G",
            f"Dsk \\[{usage_bar(res.disk_usage, res.total_disk, 'yellow')}] "
            f"{res.disk_usage / 1000:.1f}G/{res.total_disk / 1000:.1f}G",
        ]
        if self._synthetic:
            lines.append("[b yellow]Backend unreachable: showing synthetic data[/]")
        return "\n".join(lines)


class ProcessTable(Container):
    """Searchable, sortable, paginated process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }

    ProcessTable #table-bar {
        height: auto;
    }

    ProcessTable #process-title {
        width: 1fr;
        padding: 1 1 0 1;
    }

    ProcessTable #search {
        width: 40;
    }

    ProcessTable #table-message {
        padding: 1;
        color: $text-muted;
    }

    ProcessTable #pager {
        height: 1;
        content-align: center middle;
    }
    """

    def __init__(self, *args, page_size: int = 10, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self.view = TableView(page_size=page_size)
        self._records: tuple[ProcessRecord, ...] = ()
        self._loading = True
        self._page: TablePage | None = None
        self._column_keys: dict[SortKey, ColumnKey] = {}

    @property
    def current_page(self) -> TablePage | None:
        """The most recently rendered page."""
        return self._page

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield Horizontal(
            Static("System Processes", id="process-title"),
            Input(placeholder="Search processes...", id="search"),
            id="table-bar",
        )
        yield DataTable(id="process-table")
        yield Static("", id="table-message")
        yield Static("", id="pager")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        for label, key, width in COLUMNS:
            self._column_keys[key] = table.add_column(label, key=key.value, width=width)
        self._redraw()

    def update_processes(self, processes: tuple[ProcessRecord, ...], loading: bool) -> None:
        """Show a new process snapshot."""
        self._records = processes
        self._loading = loading
        self._redraw()

    def toggle_sort(self, key: SortKey) -> None:
        self.view.toggle_sort(key)
        self._redraw()

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        key = self.view.cycle_sort()
        self._redraw()
        return key

    def set_search(self, term: str) -> None:
        self.view.set_search(term)
        self._redraw()

    def goto_page(self, page: int) -> None:
        self.view.select_page(page, self._total_pages())
        self._redraw()

    def next_page(self) -> None:
        self.view.next_page(self._total_pages())
        self._redraw()

    def previous_page(self) -> None:
        self.view.previous_page()
        self._redraw()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search":
            event.stop()
            self.set_search(event.value)

    def on_data_table_header_selected(self, event: DataTable.HeaderSelected) -> None:
        self.toggle_sort(SortKey(event.column_key.value))

    def _total_pages(self) -> int:
        return self._page.total_pages if self._page is not None else 0

    def _redraw(self) -> None:
        """Render the current view state into the widgets."""
        page = self.view.render(self._records, loading=self._loading)
        self._page = page

        table = self.query_one("#process-table", DataTable)
        table.clear()
        if page.placeholder_rows:
            for index in range(page.placeholder_rows):
                cells = [Text("░░░░", style="dim")] * len(COLUMNS)
                table.add_row(*cells, key=f"placeholder-{index}")
        for proc in page.rows:
            self._add_row(table, proc)

        self._update_headers(table)

        title = self.query_one("#process-title", Static)
        title.update(f"System Processes ({page.match_count} found)")

        message = self.query_one("#table-message", Static)
        message.update(page.empty_message or "")
        message.display = page.empty_message is not None

        pager = self.query_one("#pager", Static)
        pager.update(self._pager_markup(page))
        pager.display = page.total_pages > 1

    def _add_row(self, table: DataTable, proc: ProcessRecord) -> None:
        table.add_row(
            str(proc.pid),
            Text(proc.name, style="bold"),
            Text(proc.user),
            Text(proc.status, style=STATUS_STYLES.get(proc.status, "yellow")),
            f"{proc.cpu_kb:.2f} K",
            f"{proc.memory_kb:.2f} K",
            Text(proc.start_time),
            str(proc.threads),
            str(proc.priority),
        )

    def _update_headers(self, table: DataTable) -> None:
        """Mark the sorted column with an arrow."""
        arrow = " ↑" if self.view.direction is SortDirection.ASCENDING else " ↓"
        for label, key, _width in COLUMNS:
            column_key = self._column_keys.get(key)
            if column_key is not None:
                suffix = arrow if key is self.view.sort_key else ""
                table.columns[column_key].label = Text(label + suffix)

    @staticmethod
    def _pager_markup(page: TablePage) -> str:
        parts = ["[@click=app.previous_page]«[/]"]
        for number in page.window:
            if number == page.page:
                parts.append(f"[b reverse] {number} [/]")
            else:
                parts.append(f"[@click=app.goto_page({number})] {number} [/]")
        parts.append("[@click=app.next_page]»[/]")
        return " ".join(parts)


class QueryPanel(Container):
    """Question box for the local language model."""

    DEFAULT_CSS = """
    QueryPanel {
        height: auto;
        padding: 0 1;
    }

    QueryPanel #ollama-warning {
        background: $warning 30%;
        padding: 0 1;
    }

    QueryPanel #query {
        width: 1fr;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the query panel."""
        yield Static("Ask About System Processes", id="query-title")
        warning = Static(UNAVAILABLE_WARNING, id="ollama-warning")
        warning.display = False
        yield warning
        yield Horizontal(
            Input(placeholder="What would you like to know about these processes?", id="query"),
            Button("Send", id="send", variant="primary"),
        )

    def show_unavailable(self, unavailable: bool) -> None:
        self.query_one("#ollama-warning", Static).display = unavailable


class ChatLog(VerticalScroll):
    """Replies from the model, oldest first."""

    DEFAULT_CSS = """
    ChatLog {
        height: auto;
        max-height: 40%;
    }

    ChatLog .chat-entry {
        border-left: thick $primary;
        padding: 0 1;
        margin-bottom: 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ChatLog."""
        super().__init__(*args, **kwargs)
        self._shown = 0

    @property
    def entry_count(self) -> int:
        return self._shown

    def update_entries(self, entries: tuple[str, ...]) -> None:
        """Mount any entries not shown yet; history only grows."""
        new_entries = entries[self._shown :]
        if not new_entries:
            return
        self.mount_all(Static(entry, classes="chat-entry", markup=False) for entry in new_entries)
        self._shown = len(entries)
        self.scroll_end(animate=False)


class ProcviewApp(App):
    """Main procview application."""

    TITLE = "procview"
    SUB_TITLE = "Process Dashboard"
    AUTO_FOCUS = "#process-table"

    CSS = """
    Screen {
        layout: vertical;
    }

    #resource-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #usage-info {
        width: 1fr;
        padding-right: 2;
    }

    #capacity-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f5", "refresh", "Refresh"),
        ("f6", "sort", "Sort"),
        ("slash", "search", "Search"),
        ("left_square_bracket", "previous_page", "Prev page"),
        ("right_square_bracket", "next_page", "Next page"),
    ]

    def __init__(
        self,
        config: DashboardConfig | None = None,
        source: DataSource | None = None,
        client: InferenceClient | None = None,
    ) -> None:
        """
        Initialize the ProcviewApp.

        Args:
            config: Addresses and timings. Defaults to DashboardConfig().
            source: Process data source; built from config when omitted.
            client: Inference client; built from config when omitted.
        """
        super().__init__()
        self._config = config or DashboardConfig()
        if source is None:
            source = ProcessDataSource(self._config.api_url, timeout=self._config.request_timeout)
        if client is None:
            client = InferenceClient(
                base_url=self._config.ollama_url,
                model=self._config.model,
                temperature=self._config.temperature,
                max_tokens=self._config.max_tokens,
                timeout=self._config.inference_timeout,
                probe_timeout=self._config.probe_timeout,
            )
        self.store = ProcessStore(source, refresh_interval=self._config.refresh_interval)
        self.submitter = QuerySubmitter(self.store, client, self.notify)
        self._query_pending = False
        self._unsubscribe = self.store.subscribe(self._on_store_change)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield ResourceStats(id="resource-stats")
        yield ProcessTable(page_size=self._config.page_size)
        yield QueryPanel()
        yield ChatLog(id="chat-log")
        yield Footer()

    def on_mount(self) -> None:
        """Start the refresh schedule and probe the inference server."""
        self.store.start()
        self.run_worker(self._check_inference(), group="probe")

    async def on_unmount(self) -> None:
        self._unsubscribe()
        await self.store.stop(timeout=1.0)

    def _on_store_change(self, change: StoreChange) -> None:
        """Push a store change into the widgets."""
        if change in (StoreChange.PROCESSES, StoreChange.LOADING):
            self.query_one(ProcessTable).update_processes(self.store.processes, self.store.loading)
        elif change is StoreChange.RESOURCES:
            stats = self.query_one("#resource-stats", ResourceStats)
            stats.update_resources(self.store.resources, self.store.synthetic)
        elif change is StoreChange.ERROR:
            if self.store.error:
                self.notify(self.store.error, severity="error")
        elif change is StoreChange.CHAT:
            self.query_one("#chat-log", ChatLog).update_entries(self.store.chat_history)

    async def _check_inference(self) -> None:
        available = await self.submitter.check_availability()
        self.query_one(QueryPanel).show_unavailable(not available)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "query":
            self._start_query()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send":
            self._start_query()

    def _start_query(self) -> None:
        # Set before the worker runs so a second press cannot queue another
        if self._query_pending:
            return
        self._query_pending = True
        query = self.query_one("#query", Input).value
        self._set_query_enabled(False)
        self.run_worker(self._submit_query(query), group="query")

    async def _submit_query(self, query: str) -> None:
        try:
            outcome = await self.submitter.submit(query)
        finally:
            self._query_pending = False
            self._set_query_enabled(True)
        if outcome is SubmitOutcome.ANSWERED:
            self.query_one("#query", Input).value = ""

    def _set_query_enabled(self, enabled: bool) -> None:
        """Lock or unlock the question box and Send button together."""
        self.query_one("#query", Input).disabled = not enabled
        self.query_one("#send", Button).disabled = not enabled

    def action_refresh(self) -> None:
        """Refresh now, outside the regular schedule."""
        logger.debug("Manual refresh requested")
        self.run_worker(self.store.refresh(), group="refresh")

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.name.replace('_', ' ')}")

    def action_search(self) -> None:
        self.query_one("#search", Input).focus()

    def action_goto_page(self, page: int) -> None:
        self.query_one(ProcessTable).goto_page(page)

    def action_next_page(self) -> None:
        self.query_one(ProcessTable).next_page()

    def action_previous_page(self) -> None:
        self.query_one(ProcessTable).previous_page()

    async def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        await self.store.stop(timeout=1.0)
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="procview", description="Process dashboard")
    parser.add_argument("--api-url", help="Process API base URL (env PROCVIEW_API_URL)")
    parser.add_argument("--ollama-url", help="Ollama base URL (env PROCVIEW_OLLAMA_URL)")
    parser.add_argument("--model", help="Ollama model name (env PROCVIEW_MODEL)")
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between refreshes (env PROCVIEW_REFRESH_INTERVAL)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Level for records sent to the Textual devtools console",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for procview application."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Plain stderr logging would draw over the UI
    logging.basicConfig(level=args.log_level, handlers=[TextualHandler()])

    try:
        config = DashboardConfig.from_env().with_overrides(
            api_url=args.api_url,
            ollama_url=args.ollama_url,
            model=args.model,
            refresh_interval=args.interval,
        )
    except ConfigError as exc:
        parser.error(str(exc))

    app = ProcviewApp(config)
    app.run()


if __name__ == "__main__":
    main()
