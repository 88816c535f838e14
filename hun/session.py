"""Search session state for the interactive history search.

Holds the query being typed, the matching entries, and the highlighted
row. No rendering or terminal I/O happens here; the TUI drives a session
and draws whatever it holds.
"""

import sys
from typing import Callable

from hun import db


def log(prefix: str, msg: str):
    print(f"[{prefix}] {msg}", file=sys.stderr)


class SearchSession:
    """Query text, results and cursor for one interactive search.

    `cursor` is None exactly when `results` is empty; otherwise it is a
    valid index into `results`.
    """

    def __init__(
        self,
        initial_query: str = "",
        search: Callable[[str], list[dict]] | None = None,
    ) -> None:
        self._search = search if search is not None else db.search_entries
        self.query: str = ""
        self.results: list[dict] = []
        self.cursor: int | None = None
        self.set_query(initial_query or "")

    def set_query(self, text: str) -> None:
        """Replace the query and re-fetch results, highlighting the first."""
        self.query = text
        try:
            self.results = self._search(text)
        except db.StorageError as e:
            # Keep the session usable; the next edit retries the search
            log("hun-search", f"Refresh failed: {e}")
            self.results = []
        self.cursor = 0 if self.results else None

    def append_char(self, char: str) -> None:
        self.set_query(self.query + char)

    def backspace(self) -> None:
        self.set_query(self.query[:-1])

    def move_next(self) -> None:
        """Highlight the next result, wrapping from the last to the first."""
        if not self.results:
            return
        self.cursor = (self.cursor + 1) % len(self.results)

    def move_previous(self) -> None:
        """Highlight the previous result, wrapping from the first to the last."""
        if not self.results:
            return
        self.cursor = (self.cursor - 1) % len(self.results)

    def selected(self) -> dict | None:
        if self.cursor is None:
            return None
        return self.results[self.cursor]
