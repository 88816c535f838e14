"""CLI entry point -- shell hooks and the user talk to hun through here.

stdout carries only command output (the selected command for `search`),
so a wrapping shell can capture it. Errors go to stderr.
"""

import argparse
import sys

from hun import db

BASH_INIT = r"""# hun shell integration for bash
# Add to ~/.bashrc:  eval "$(hun init bash)"
__hun_session_id="${HUN_SESSION_ID:-$$-$RANDOM}"
__hun_last_entry="$(HISTTIMEFORMAT= builtin history 1)"

__hun_record() {
  local exit_code=$?
  local entry
  entry="$(HISTTIMEFORMAT= builtin history 1)"
  if [ -n "$entry" ] && [ "$entry" != "$__hun_last_entry" ]; then
    __hun_last_entry="$entry"
    local cmd
    cmd="$(printf '%s' "$entry" | sed -e 's/^ *[0-9]*[* ] *//')"
    (hun add --cmd="$cmd" --cwd="$PWD" --exit-code="$exit_code" \
        --session-id="$__hun_session_id" >/dev/null 2>&1 &)
  fi
  return $exit_code
}

__hun_search() {
  local selected
  selected="$(hun search --query="$READLINE_LINE")"
  if [ -n "$selected" ]; then
    READLINE_LINE="$selected"
    READLINE_POINT=${#selected}
  fi
}

PROMPT_COMMAND="__hun_record${PROMPT_COMMAND:+;$PROMPT_COMMAND}"
bind -x '"\C-r": __hun_search'
"""

ZSH_INIT = r"""# hun shell integration for zsh
# Add to ~/.zshrc:  eval "$(hun init zsh)"
typeset -g __hun_session_id="${HUN_SESSION_ID:-$$-$RANDOM}"
typeset -g __hun_cmd=""

__hun_preexec() {
  __hun_cmd="$1"
}

__hun_precmd() {
  local exit_code=$?
  if [[ -n "$__hun_cmd" ]]; then
    hun add --cmd="$__hun_cmd" --cwd="$PWD" --exit-code="$exit_code" \
        --session-id="$__hun_session_id" >/dev/null 2>&1 &!
    __hun_cmd=""
  fi
}

__hun_search_widget() {
  local selected
  selected="$(hun search --query="$BUFFER" </dev/tty)"
  if [[ -n "$selected" ]]; then
    BUFFER="$selected"
    CURSOR=${#BUFFER}
  fi
  zle reset-prompt
}

autoload -Uz add-zsh-hook
add-zsh-hook preexec __hun_preexec
add-zsh-hook precmd __hun_precmd
zle -N __hun_search_widget
bindkey '^R' __hun_search_widget
"""

SHELL_INIT = {
    "bash": BASH_INIT,
    "zsh": ZSH_INIT,
}


def _positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _fail(msg: str):
    """Report an error on stderr and exit non-zero."""
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(1)


def cmd_add(args):
    """Record one command in the history."""
    try:
        db.add_entry(
            args.cmd,
            cwd=args.cwd,
            exit_code=args.exit_code,
            session_id=args.session_id,
        )
    except (ValueError, db.StorageError) as e:
        _fail(str(e))


def cmd_search(args):
    """Launch the interactive search and print the chosen command."""
    from hun.tui import SearchLoopError, run_search

    # Fail before taking over the terminal if the store is unusable
    try:
        db.init_db()
    except db.StorageError as e:
        _fail(str(e))

    try:
        selected = run_search(args.query)
    except SearchLoopError as e:
        _fail(f"Search failed: {e}")

    # Printed after textual has restored the terminal, for the shell to pick up
    if selected:
        print(selected)


def cmd_stats(args):
    """Show the most frequently run commands."""
    try:
        stats = db.get_stats(limit=args.limit)
    except db.StorageError as e:
        _fail(str(e))

    lines = [f"🔥 Top {args.limit} Commands:"]
    if not stats:
        lines.append("No history recorded yet.")
    for rank, (command, count) in enumerate(stats, start=1):
        lines.append(f"{rank}. {command} ({count})")
    print("\n".join(lines))


def cmd_init(args):
    """Print the shell integration script."""
    print(SHELL_INIT[args.shell], end="")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="hun",
        description="The History Unification Node: record and search your shell history",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # add
    p_add = subparsers.add_parser("add", help="Add a new entry to the history")
    p_add.add_argument("-c", "--cmd", required=True, help="The command that was executed")
    p_add.add_argument("--cwd", help="The current working directory")
    p_add.add_argument("--exit-code", type=int, help="The exit code of the command")
    p_add.add_argument("--session-id", help="The shell session ID")
    p_add.set_defaults(func=cmd_add)

    # search
    p_search = subparsers.add_parser("search", help="Search the history interactively")
    p_search.add_argument("-q", "--query", help="Initial search query")
    p_search.set_defaults(func=cmd_search)

    # stats
    p_stats = subparsers.add_parser("stats", help="Show the most frequent commands")
    p_stats.add_argument("--limit", type=_positive_int, default=10, help="Number of commands to show")
    p_stats.set_defaults(func=cmd_stats)

    # init
    p_init = subparsers.add_parser("init", help="Print shell integration script")
    p_init.add_argument("shell", choices=sorted(SHELL_INIT), help="Target shell")
    p_init.set_defaults(func=cmd_init)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
