"""Interactive history search.

Full-screen terminal interface for picking a command out of the recorded
history. Typing filters the list, arrows move the highlight, enter returns
the highlighted command and escape returns nothing. Built with textual.

Launch: `hun search` (usually through the Ctrl-R binding from `hun init`)
"""

from __future__ import annotations

import datetime
from typing import Callable

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import DataTable, Header, Static

from hun import db
from hun.session import SearchSession, log

SUCCESS_MARK = "✅"
FAILURE_MARK = "❌"


class SearchLoopError(Exception):
    """The search interface ended abnormally (terminal I/O or rendering)."""


# --- Helpers ---

def _fmt_time(ts: int) -> str:
    return datetime.datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def _exit_mark(entry: dict) -> str:
    # Entries recorded without an exit code count as successful
    exit_code = entry.get("exit_code")
    return SUCCESS_MARK if exit_code is None or exit_code == 0 else FAILURE_MARK


class ResultsTable(DataTable, can_focus=False):
    """History rows. Never takes focus so every key reaches the app.

    The highlighted row always follows the search session, so clicks
    don't move the table's own cursor.
    """

    async def _on_click(self, event: events.Click) -> None:
        event.prevent_default()
        event.stop()


# --- Main App ---

class HunSearchApp(App[str | None]):
    """History search."""

    TITLE = "hun"
    SUB_TITLE = "History Search"
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    #search-layout {
        height: 1fr;
    }
    #query-bar {
        dock: top;
        height: 3;
        border: round $accent;
        padding: 0 1;
        color: $text;
    }
    #results {
        height: 1fr;
        border: round $accent 50%;
    }
    #search-status {
        dock: bottom;
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("enter", "select", "Run", show=False, priority=True),
        Binding("escape", "cancel", "Cancel", show=False, priority=True),
        Binding("down", "cursor_next", "Next", show=False, priority=True),
        Binding("up", "cursor_previous", "Previous", show=False, priority=True),
        Binding("backspace", "delete_char", "Delete", show=False, priority=True),
    ]

    def __init__(
        self,
        initial_query: str | None = None,
        search: Callable[[str], list[dict]] | None = None,
    ) -> None:
        super().__init__()
        # First refresh happens here, before anything is drawn
        self.session = SearchSession(initial_query or "", search=search)
        self._total: int | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="search-layout"):
            yield Static("", id="query-bar")
            yield ResultsTable(id="results", cursor_type="row", zebra_stripes=True)
            yield Static("", id="search-status")

    def on_mount(self) -> None:
        table = self.query_one("#results", DataTable)
        table.add_columns("", "Time", "Command")
        try:
            self._total = db.count_entries()
        except db.StorageError as e:
            log("hun-search", f"Could not count entries: {e}")
        self._load_results()

    # --- Rendering ---

    def _load_results(self) -> None:
        """Redraw query bar, result rows and status after a query change."""
        self.query_one("#query-bar", Static).update(Text(f"> {self.session.query}"))

        table = self.query_one("#results", DataTable)
        table.clear()
        for entry in self.session.results:
            table.add_row(
                _exit_mark(entry),
                Text(_fmt_time(entry["timestamp"]), style="dim"),
                Text(entry["command"]),
                key=str(entry["id"]),
            )
        self._sync_cursor()

        shown = len(self.session.results)
        status = f"{shown} matches"
        if self._total is not None:
            status += f" (of {self._total})"
        self.query_one("#search-status", Static).update(status)

    def _sync_cursor(self) -> None:
        """Highlight and scroll to the session's cursor row."""
        if self.session.cursor is None:
            return
        table = self.query_one("#results", DataTable)
        table.move_cursor(row=self.session.cursor, animate=False)

    # --- Key dispatch ---

    def on_key(self, event: events.Key) -> None:
        if event.is_printable and event.character:
            event.stop()
            self.session.append_char(event.character)
            self._load_results()

    def on_paste(self, event: events.Paste) -> None:
        # Bracketed paste arrives as one event; newlines and tabs are dropped
        text = "".join(ch for ch in event.text if ch.isprintable())
        event.stop()
        if text:
            self.session.set_query(self.session.query + text)
            self._load_results()

    def action_delete_char(self) -> None:
        self.session.backspace()
        self._load_results()

    def action_cursor_next(self) -> None:
        self.session.move_next()
        self._sync_cursor()

    def action_cursor_previous(self) -> None:
        self.session.move_previous()
        self._sync_cursor()

    def action_select(self) -> None:
        entry = self.session.selected()
        self.exit(entry["command"] if entry else None)

    def action_cancel(self) -> None:
        self.exit(None)


def run_search(initial_query: str | None = None) -> str | None:
    """Run the search interface and return the chosen command, if any.

    Textual restores the terminal before this returns, whether the app
    finished normally or crashed.
    """
    app = HunSearchApp(initial_query)
    selection = app.run()
    if app.return_code:
        raise SearchLoopError(f"search interface exited with code {app.return_code}")
    return selection
