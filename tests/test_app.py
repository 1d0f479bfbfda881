"""Tests for procview application."""

import asyncio

import pytest
from textual.widgets import Button, DataTable, Input, Static

from procview.app import ChatLog, ProcessTable, ProcviewApp, ResourceStats, build_parser, usage_bar
from procview.config import DashboardConfig
from procview.errors import InferenceError
from procview.models import DataOrigin
from procview.table import SortDirection, SortKey

from conftest import FakeClient, FakeSource, make_process

SIZE = (120, 40)


def make_app(source=None, client=None) -> ProcviewApp:
    source = source or FakeSource(
        processes=[make_process(1000 + i, memory_kb=float(i)) for i in range(25)]
    )
    client = client or FakeClient(available=True)
    config = DashboardConfig(refresh_interval=60.0)
    return ProcviewApp(config, source=source, client=client)


def test_usage_bar_full_and_empty():
    """Test usage_bar fills proportionally and clamps."""
    assert usage_bar(0, 100, "green").count("█") == 0
    assert usage_bar(50, 100, "green").count("█") == 10
    assert usage_bar(500, 100, "green").count("█") == 20
    assert usage_bar(5, 0, "green").count("░") == 20


def test_parser_options():
    """Test the command line exposes both service addresses."""
    args = build_parser().parse_args(
        ["--api-url", "http://backend:1", "--ollama-url", "http://gpu:2", "--interval", "3"]
    )
    assert args.api_url == "http://backend:1"
    assert args.ollama_url == "http://gpu:2"
    assert args.interval == 3.0
    assert args.log_level == "WARNING"


@pytest.mark.asyncio
async def test_app_creation():
    """Test ProcviewApp can be instantiated."""
    app = make_app()
    assert app.title == "procview"
    assert app.sub_title == "Process Dashboard"
    assert app.store is not None
    assert not app.store.is_running


@pytest.mark.asyncio
async def test_app_compose():
    """Test ProcviewApp composes correctly."""
    app = make_app()
    async with app.run_test(size=SIZE) as pilot:
        assert pilot.app.query_one("#resource-stats") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert pilot.app.query_one("#query") is not None
        assert pilot.app.query_one("#chat-log") is not None


@pytest.mark.asyncio
async def test_app_starts_and_stops_schedule():
    """Test the refresh schedule is bound to the app's lifetime."""
    app = make_app()
    async with app.run_test(size=SIZE) as pilot:
        assert pilot.app.store.is_running
        await pilot.press("q")
        assert pilot.app._exit
    assert not app.store.is_running


@pytest.mark.asyncio
async def test_table_shows_first_page():
    """Test a refresh fills the table with one page of rows."""
    app = make_app()
    async with app.run_test(size=SIZE) as pilot:
        await pilot.app.store.refresh()
        await pilot.pause()

        table = pilot.app.query_one("#process-table", DataTable)
        process_table = pilot.app.query_one(ProcessTable)
        assert table.row_count == 10
        assert process_table.current_page.total_pages == 3
        # Default sort: memory, largest first
        assert process_table.current_page.rows[0].pid == 1024


@pytest.mark.asyncio
async def test_placeholder_rows_during_first_load():
    """Test placeholder rows are shown until the first snapshot arrives."""

    class HungSource(FakeSource):
        async def fetch_processes(self):
            await asyncio.sleep(3600)

    app = make_app(source=HungSource())
    async with app.run_test(size=SIZE) as pilot:
        await pilot.pause()
        table = pilot.app.query_one("#process-table", DataTable)
        assert table.row_count == 5
        assert pilot.app.query_one(ProcessTable).current_page.placeholder_rows == 5


@pytest.mark.asyncio
async def test_search_filters_rows():
    """Test typing a search term filters the table."""
    source = FakeSource(
        processes=[
            make_process(1042, name="node"),
            make_process(77, name="notepad++"),
            make_process(3, name="bash"),
        ]
    )
    app = make_app(source=source)
    async with app.run_test(size=SIZE) as pilot:
        await pilot.app.store.refresh()
        pilot.app.query_one("#search", Input).value = "node"
        await pilot.pause()

        process_table = pilot.app.query_one(ProcessTable)
        assert [p.name for p in process_table.current_page.rows] == ["node"]
        assert pilot.app.query_one("#process-table", DataTable).row_count == 1


@pytest.mark.asyncio
async def test_search_without_matches_shows_message():
    """Test an unmatched search shows the no-matches message."""
    app = make_app()
    async with app.run_test(size=SIZE) as pilot:
        await pilot.app.store.refresh()
        pilot.app.query_one("#search", Input).value = "no-such-process"
        await pilot.pause()

        process_table = pilot.app.query_one(ProcessTable)
        assert process_table.current_page.empty_message == "No matching processes found"
        assert pilot.app.query_one("#table-message", Static).display


@pytest.mark.asyncio
async def test_sort_binding():
    """Test that F6 binding cycles sort key."""
    app = make_app()
    async with app.run_test(size=SIZE) as pilot:
        process_table = pilot.app.query_one(ProcessTable)
        initial_sort = process_table.view.sort_key

        await pilot.press("f6")

        assert process_table.view.sort_key != initial_sort


@pytest.mark.asyncio
async def test_header_toggle_sort():
    """Test toggling a column twice sorts ascending then descending."""
    app = make_app()
    async with app.run_test(size=SIZE) as pilot:
        await pilot.app.store.refresh()
        process_table = pilot.app.query_one(ProcessTable)

        process_table.toggle_sort(SortKey.PID)
        assert process_table.view.direction is SortDirection.ASCENDING
        assert process_table.current_page.rows[0].pid == 1000

        process_table.toggle_sort(SortKey.PID)
        assert process_table.view.direction is SortDirection.DESCENDING
        assert process_table.current_page.rows[0].pid == 1024


@pytest.mark.asyncio
async def test_page_bindings_clamp():
    """Test page navigation moves between pages and stops at the ends."""
    app = make_app()
    async with app.run_test(size=SIZE) as pilot:
        await pilot.app.store.refresh()
        process_table = pilot.app.query_one(ProcessTable)

        await pilot.press("right_square_bracket")
        assert process_table.current_page.page == 2

        for _ in range(5):
            await pilot.press("right_square_bracket")
        assert process_table.current_page.page == 3
        assert len(process_table.current_page.rows) == 5

        pilot.app.action_goto_page(0)
        assert process_table.current_page.page == 1

        await pilot.press("left_square_bracket")
        assert process_table.current_page.page == 1


@pytest.mark.asyncio
async def test_resource_stats_update():
    """Test the header shows the latest resource summary."""
    app = make_app(source=FakeSource(processes=[make_process()], origin=DataOrigin.SYNTHETIC))
    async with app.run_test(size=SIZE) as pilot:
        await pilot.app.store.refresh()

        stats = pilot.app.query_one("#resource-stats", ResourceStats)
        assert stats._resources == pilot.app.store.resources
        assert stats._synthetic is True


@pytest.mark.asyncio
async def test_submit_query_appends_chat_and_clears_input():
    """Test a successful query lands in the chat log and clears the input."""
    client = FakeClient(replies=["Everything looks fine."], available=True)
    app = make_app(client=client)
    async with app.run_test(size=SIZE) as pilot:
        await pilot.app.store.refresh()
        pilot.app.query_one("#query", Input).value = "anything odd?"
        pilot.app.query_one("#send", Button).press()
        await pilot.pause()
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

        assert pilot.app.store.chat_history == ("Everything looks fine.",)
        assert pilot.app.query_one("#query", Input).value == ""
        assert pilot.app.query_one("#chat-log", ChatLog).entry_count == 1
        assert not pilot.app.query_one("#send", Button).disabled
        assert client.prompts[0].endswith("\nanything odd?")


@pytest.mark.asyncio
async def test_query_controls_locked_until_reply():
    """Test a second submit cannot unlock the controls while a reply is pending."""

    class GatedClient(FakeClient):
        def __init__(self) -> None:
            super().__init__(replies=["done"], available=True)
            self.release = asyncio.Event()

        async def generate(self, prompt):
            self.prompts.append(prompt)
            await self.release.wait()
            return self.replies.pop(0)

    client = GatedClient()
    app = make_app(client=client)
    async with app.run_test(size=SIZE) as pilot:
        query = pilot.app.query_one("#query", Input)
        send = pilot.app.query_one("#send", Button)
        query.value = "anything odd?"

        pilot.app._start_query()
        pilot.app._start_query()
        await pilot.pause(0.2)

        assert pilot.app.submitter.in_flight
        assert send.disabled
        assert query.disabled
        assert len(client.prompts) == 1

        client.release.set()
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

        assert not send.disabled
        assert not query.disabled
        assert query.value == ""
        assert pilot.app.store.chat_history == ("done",)


@pytest.mark.asyncio
async def test_failed_query_keeps_input():
    """Test a failed query leaves the text in place for a retry."""
    client = FakeClient(replies=[InferenceError("Error 500: boom", status_code=500)])
    app = make_app(client=client)
    async with app.run_test(size=SIZE) as pilot:
        pilot.app.query_one("#query", Input).value = "anything odd?"
        pilot.app.query_one("#send", Button).press()
        await pilot.pause()
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

        assert pilot.app.store.chat_history == ()
        assert pilot.app.query_one("#query", Input).value == "anything odd?"


@pytest.mark.asyncio
async def test_empty_query_makes_no_call():
    """Test submitting an empty query does nothing but warn."""
    client = FakeClient()
    app = make_app(client=client)
    async with app.run_test(size=SIZE) as pilot:
        pilot.app.query_one("#send", Button).press()
        await pilot.pause()
        await pilot.app.workers.wait_for_complete()

        assert client.prompts == []
        assert pilot.app.store.chat_history == ()


@pytest.mark.asyncio
async def test_unavailable_warning_shown():
    """Test the passive warning appears when Ollama is unreachable."""
    app = make_app(client=FakeClient(available=False))
    async with app.run_test(size=SIZE) as pilot:
        await pilot.pause()
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

        assert pilot.app.query_one("#ollama-warning", Static).display
        assert pilot.app.submitter.available is False


@pytest.mark.asyncio
async def test_refresh_failure_keeps_app_running():
    """Test a failing refresh sets the error but leaves the app usable."""
    source = FakeSource(processes=[make_process()])
    source.fail_with = RuntimeError("backend exploded")
    app = make_app(source=source)
    async with app.run_test(size=SIZE) as pilot:
        await pilot.app.store.refresh()
        await pilot.pause()

        assert pilot.app.store.error == "Failed to fetch system data"
        assert pilot.app.store.is_running
        assert pilot.app.query_one(ProcessTable).current_page.empty_message == "No processes found"
