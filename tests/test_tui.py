"""Tests for the interactive search app, driven headlessly through textual's pilot."""

import unittest
from unittest.mock import PropertyMock, patch

from textual import events
from textual.widgets import DataTable

from hun.tui import (
    FAILURE_MARK,
    SUCCESS_MARK,
    HunSearchApp,
    SearchLoopError,
    _exit_mark,
    run_search,
)

HISTORY = [
    {"id": 4, "command": "git push", "timestamp": 1_700_000_400, "exit_code": 0},
    {"id": 3, "command": "git pull", "timestamp": 1_700_000_300, "exit_code": 1},
    {"id": 2, "command": "ls -la", "timestamp": 1_700_000_200, "exit_code": None},
    {"id": 1, "command": "make test", "timestamp": 1_700_000_100, "exit_code": 2},
]


def _search(query):
    return [e for e in HISTORY if query in e["command"]]


def _make_app(initial_query=None):
    app = HunSearchApp(initial_query, search=_search)
    # Counting would hit the real store
    patcher = patch("hun.tui.db.count_entries", return_value=len(HISTORY))
    return app, patcher


class TestKeyDispatch(unittest.IsolatedAsyncioTestCase):

    async def test_typing_filters_results(self):
        app, patcher = _make_app()
        with patcher:
            async with app.run_test() as pilot:
                table = app.query_one("#results", DataTable)
                self.assertEqual(table.row_count, 4)
                await pilot.press("g", "i", "t")
                self.assertEqual(app.session.query, "git")
                self.assertEqual(table.row_count, 2)
                await pilot.press("space", "p", "u", "s")
                self.assertEqual(app.session.query, "git pus")
                self.assertEqual(table.row_count, 1)

    async def test_backspace_removes_last_char(self):
        app, patcher = _make_app("git pus")
        with patcher:
            async with app.run_test() as pilot:
                table = app.query_one("#results", DataTable)
                self.assertEqual(table.row_count, 1)
                await pilot.press("backspace")
                self.assertEqual(app.session.query, "git pu")
                self.assertEqual(table.row_count, 2)

    async def test_arrows_move_with_wraparound(self):
        app, patcher = _make_app()
        with patcher:
            async with app.run_test() as pilot:
                table = app.query_one("#results", DataTable)
                self.assertEqual(app.session.cursor, 0)
                await pilot.press("up")
                self.assertEqual(app.session.cursor, 3)
                self.assertEqual(table.cursor_row, 3)
                await pilot.press("down")
                self.assertEqual(app.session.cursor, 0)
                self.assertEqual(table.cursor_row, 0)
                await pilot.press("down", "down")
                self.assertEqual(table.cursor_row, 2)

    async def test_enter_returns_highlighted_command(self):
        app, patcher = _make_app("git")
        with patcher:
            async with app.run_test() as pilot:
                await pilot.press("down", "enter")
        self.assertEqual(app.return_value, "git pull")

    async def test_enter_with_no_results_returns_none(self):
        app, patcher = _make_app("nothing matches this")
        with patcher:
            async with app.run_test() as pilot:
                self.assertIsNone(app.session.cursor)
                await pilot.press("down", "enter")
        self.assertIsNone(app.return_value)

    async def test_escape_returns_none(self):
        app, patcher = _make_app("git")
        with patcher:
            async with app.run_test() as pilot:
                await pilot.press("escape")
        self.assertIsNone(app.return_value)

    async def test_typing_resets_highlight_to_first_match(self):
        app, patcher = _make_app()
        with patcher:
            async with app.run_test() as pilot:
                await pilot.press("down", "down")
                await pilot.press("l")
                self.assertEqual(app.session.cursor, 0)
                await pilot.press("enter")
        self.assertEqual(app.return_value, "git pull")

    async def test_other_keys_are_ignored(self):
        app, patcher = _make_app("git")
        with patcher:
            async with app.run_test() as pilot:
                await pilot.press("left", "right", "pagedown", "f5")
                self.assertEqual(app.session.query, "git")
                self.assertEqual(app.session.cursor, 0)
                await pilot.press("enter")
        self.assertEqual(app.return_value, "git push")

    async def test_click_does_not_move_highlight(self):
        app, patcher = _make_app()
        with patcher:
            async with app.run_test() as pilot:
                table = app.query_one("#results", DataTable)
                # Second data row: border, header, then rows
                await pilot.click("#results", offset=(10, 3))
                self.assertEqual(table.cursor_row, app.session.cursor)
                self.assertEqual(table.cursor_row, 0)
                await pilot.press("enter")
        self.assertEqual(app.return_value, "git push")

    async def test_click_then_arrows_stay_in_step(self):
        app, patcher = _make_app()
        with patcher:
            async with app.run_test() as pilot:
                table = app.query_one("#results", DataTable)
                await pilot.click("#results", offset=(10, 4))
                await pilot.press("down")
                self.assertEqual(app.session.cursor, 1)
                self.assertEqual(table.cursor_row, 1)
                await pilot.press("enter")
        self.assertEqual(app.return_value, "git pull")

    async def test_paste_extends_query(self):
        app, patcher = _make_app("git ")
        with patcher:
            async with app.run_test() as pilot:
                table = app.query_one("#results", DataTable)
                app.post_message(events.Paste("pul"))
                await pilot.pause()
                self.assertEqual(app.session.query, "git pul")
                self.assertEqual(table.row_count, 1)
                await pilot.press("enter")
        self.assertEqual(app.return_value, "git pull")

    async def test_paste_drops_newlines(self):
        app, patcher = _make_app()
        with patcher:
            async with app.run_test() as pilot:
                app.post_message(events.Paste("make\n"))
                await pilot.pause()
                self.assertEqual(app.session.query, "make")
                self.assertEqual(app.session.selected()["command"], "make test")
                # Still running: the newline did not submit
                await pilot.press("escape")
        self.assertIsNone(app.return_value)


class TestRendering(unittest.TestCase):

    def test_exit_marks(self):
        self.assertEqual(_exit_mark({"exit_code": 0}), SUCCESS_MARK)
        self.assertEqual(_exit_mark({"exit_code": None}), SUCCESS_MARK)
        self.assertEqual(_exit_mark({}), SUCCESS_MARK)
        self.assertEqual(_exit_mark({"exit_code": 1}), FAILURE_MARK)
        self.assertEqual(_exit_mark({"exit_code": 130}), FAILURE_MARK)


class TestRunSearch(unittest.TestCase):

    @patch("hun.tui.HunSearchApp.run", return_value="ls -la")
    @patch("hun.tui.HunSearchApp.return_code", new_callable=PropertyMock, return_value=0)
    @patch("hun.tui.SearchSession")
    def test_returns_selection(self, _session, _code, _run):
        self.assertEqual(run_search("ls"), "ls -la")

    @patch("hun.tui.HunSearchApp.run", return_value=None)
    @patch("hun.tui.HunSearchApp.return_code", new_callable=PropertyMock, return_value=1)
    @patch("hun.tui.SearchSession")
    def test_abnormal_exit_raises(self, _session, _code, _run):
        with self.assertRaises(SearchLoopError):
            run_search()

    def test_exception_inside_loop_raises_after_teardown(self):
        calls = []

        def flaky_search(query):
            calls.append(query)
            if len(calls) > 1:
                raise RuntimeError("boom")
            return _search(query)

        async def type_one_key(pilot):
            await pilot.press("g")

        class HeadlessSearchApp(HunSearchApp):
            def __init__(self, initial_query=None):
                super().__init__(initial_query, search=flaky_search)

            def run(self, **kwargs):
                return super().run(headless=True, auto_pilot=type_one_key)

        with patch("hun.tui.HunSearchApp", HeadlessSearchApp), \
                patch("hun.tui.db.count_entries", return_value=len(HISTORY)):
            with self.assertRaises(SearchLoopError):
                run_search()
        self.assertEqual(calls, ["", "g"])


if __name__ == "__main__":
    unittest.main()
