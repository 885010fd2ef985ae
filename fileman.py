#!/usr/bin/env python3
"""
Fileman - a tiny interactive file manager shell

Fileman reads one line at a time, splits it into a command word and a single
argument string, and dispatches the word against an ordered command table.
Every command has a short description and several commands are reachable
through aliases (``ls`` for ``list``, ``?`` for ``help``).

Tab completion is provided through the readline module when present. The
first word on the line completes against command names; any other word falls
back to filename completion in the current directory. Line history is kept by
readline and optionally persisted to ``~/.fileman_history``.

An optional YAML file (fileman.yaml) can change the prompt, the history file
and add extra aliases for existing commands.
"""

import os
import sys
import time
import atexit
import argparse
import subprocess
from cmd import Cmd
from dataclasses import dataclass, field, fields
from typing import List, Tuple, Optional, Dict, Callable, Iterator, NamedTuple

import yaml
from colorama import Fore, Style, init as colorama_init

# optional module
try:
    import readline
except ImportError:
    readline = None

# initialise colour support
colorama_init(autoreset=True)

DEFAULT_CONFIG_PATH = "fileman.yaml"
DEFAULT_PROMPT = "Fileman: "
DEFAULT_APP_NAME = "FileMan"
DEFAULT_HISTORY_FILE = "~/.fileman_history"
DEFAULT_HISTORY_LENGTH = 1000
DEFAULT_INTRO = "Fileman - type 'help' to list commands, 'quit' to leave."
# status recorded for a command cut short by Ctrl-C (128 + SIGINT)
INTERRUPTED_STATUS = 130

# Track the last error reported by any handler or by the shell itself. It is
# None until something fails.
LAST_ERROR: Optional[str] = None

# A handler takes the (possibly empty) argument string and returns a status:
# 0 for success, anything else for a failure the dispatcher passes through.
Handler = Callable[[str], int]


# ---------- Errors ----------
class FilemanError(Exception):
    """Base class for every error raised by fileman."""


class ConfigError(FilemanError):
    """Raised for an unusable configuration file or alias definition."""


class DuplicateCommandError(FilemanError, ValueError):
    """Raised when a command table is built with the same name twice."""

    def __init__(self, name: str):
        super().__init__(f"duplicate command name: {name!r}")
        self.name = name


class DispatchError(FilemanError):
    """Base class for errors signalled by the dispatcher."""


class EmptyCommand(DispatchError):
    """The line held no command word at all."""


class UnknownCommand(DispatchError):
    """The command word is not in the command table."""

    def __init__(self, name: str):
        super().__init__(f"{name}: No such command for Fileman.")
        self.name = name


class HandlerFailure(DispatchError):
    """A handler returned a non-zero status and the caller asked to check."""

    def __init__(self, name: str, code: int):
        super().__init__(f"{name}: command failed with status {code}")
        self.name = name
        self.code = code


# ---------- Utilities ----------
def c(text, color=Fore.CYAN) -> str:
    """Colourise text for terminal display."""
    lines = str(text).splitlines() or [""]
    return "\n".join(f"{color}{ln}{Style.RESET_ALL}" for ln in lines)


def _ok(msg: str) -> None:
    print(c(msg, Fore.CYAN))


def _warn(msg: str) -> None:
    print(c(msg, Fore.YELLOW), file=sys.stderr)


def _err(msg: str) -> int:
    global LAST_ERROR
    # record the last error message, report it and hand back a failure status
    LAST_ERROR = msg
    print(c(msg, Fore.RED), file=sys.stderr)
    return 1


def _valid_argument(caller: str, arg: str) -> bool:
    """Return True if ``arg`` is non-empty, otherwise complain on behalf of ``caller``."""
    if not arg:
        _err(f"{caller}: Argument required.")
        return False
    return True


def _too_dangerous(caller: str) -> int:
    return _err(f"{caller}: Too dangerous for me to distribute.  Write it yourself.")


def _plural(n: int) -> str:
    return "" if n == 1 else "s"


# ---------- Tokenizer ----------
class ParsedLine(NamedTuple):
    command_word: str
    argument: str


def tokenize(line: str) -> ParsedLine:
    """Split a raw input line into its command word and a single argument.

    Surrounding whitespace is ignored. The command word runs up to the first
    whitespace character; the whitespace run after it is skipped and the rest
    of the line is the argument, internal spacing included. A blank line gives
    an empty command word and an empty argument.
    """
    parts = line.strip().split(None, 1)
    if not parts:
        return ParsedLine("", "")
    if len(parts) == 1:
        return ParsedLine(parts[0], "")
    return ParsedLine(parts[0], parts[1])


# ---------- Command table ----------
class CommandEntry(NamedTuple):
    name: str
    handler: Handler
    doc: str


class CommandTable:
    """An ordered, read-only table of commands.

    Insertion order is kept: it decides the order of the help listing and of
    completion candidates. Two entries may share a handler (aliases) but not a
    name.
    """

    def __init__(self, entries):
        self._entries: Tuple[CommandEntry, ...] = tuple(CommandEntry(*e) for e in entries)
        seen = set()
        for entry in self._entries:
            if entry.name in seen:
                raise DuplicateCommandError(entry.name)
            seen.add(entry.name)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CommandEntry]:
        return iter(self._entries)

    def __contains__(self, name) -> bool:
        return self.lookup(name) is not None

    def lookup(self, name: str) -> Optional[CommandEntry]:
        """Return the entry named exactly ``name`` (case-sensitive), or None."""
        for entry in self._entries:
            if entry.name == name:
                return entry
        return None

    def entries(self) -> Tuple[CommandEntry, ...]:
        return self._entries

    def names(self) -> List[str]:
        return [entry.name for entry in self._entries]

    def prefix_matches(self, prefix: str) -> Iterator[str]:
        """Lazily yield every command name starting with ``prefix``, in table order."""
        for entry in self._entries:
            if entry.name.startswith(prefix):
                yield entry.name

    def with_aliases(self, aliases: Dict[str, str]) -> "CommandTable":
        """Return a new table with ``alias -> command`` entries appended."""
        extra: List[CommandEntry] = []
        for alias, target in aliases.items():
            entry = self.lookup(str(target))
            if entry is None:
                raise ConfigError(f"alias {alias!r} refers to unknown command {target!r}")
            extra.append(CommandEntry(str(alias), entry.handler, f"Synonym for '{entry.name}'"))
        return CommandTable(self._entries + tuple(extra))

    def bind_help(self, get_table: Callable[[], "CommandTable"]) -> "CommandTable":
        """Return a copy whose help commands list ``get_table()`` instead."""
        help_handler = make_help(get_table)
        return CommandTable(
            (e.name, help_handler if getattr(e.handler, "__fileman_help__", False) else e.handler, e.doc)
            for e in self._entries
        )


# ---------- Dispatcher ----------
class Dispatcher:
    """Resolve a line against a command table and run the matching handler."""

    def __init__(self, table: CommandTable):
        self.table = table

    def execute(self, line: str, check: bool = False) -> int:
        """Run one command line and return the handler's status unchanged.

        Raises EmptyCommand for a blank line and UnknownCommand when the
        command word is not in the table. With ``check`` set, a non-zero
        status raises HandlerFailure instead of being returned.
        """
        parsed = tokenize(line)
        if not parsed.command_word:
            raise EmptyCommand("no command given")
        entry = self.table.lookup(parsed.command_word)
        if entry is None:
            raise UnknownCommand(parsed.command_word)
        status = entry.handler(parsed.argument)
        if check and status:
            raise HandlerFailure(entry.name, status)
        return status


# ---------- Completion ----------
class CompletionSession:
    """Pull-based enumeration of command names matching one typed prefix.

    ``pull(0)`` starts a fresh sequence: the matching names are recomputed
    and the cursor goes back to the first one. Any other state continues from
    where the previous pull stopped. None marks the end of the sequence.
    """

    def __init__(self, table: CommandTable, typed_prefix: str, cursor_index: int = 0):
        self.table = table
        self.typed_prefix = typed_prefix
        self.cursor_index = cursor_index
        self.candidate_cursor = 0
        self._matches: List[str] = []

    def reset(self) -> None:
        self._matches = list(self.table.prefix_matches(self.typed_prefix))
        self.candidate_cursor = 0

    def pull(self, state: int) -> Optional[str]:
        if state == 0:
            self.reset()
        if self.candidate_cursor >= len(self._matches):
            return None
        name = self._matches[self.candidate_cursor]
        self.candidate_cursor += 1
        return name

    def __iter__(self) -> Iterator[str]:
        state = 0
        while True:
            candidate = self.pull(state)
            if candidate is None:
                return
            yield candidate
            state += 1


class CompletionEngine:
    """Decide the completion scope and produce command-name candidates."""

    def __init__(self, table: CommandTable):
        self.table = table

    def complete(self, text: str, start: int, end: int) -> Optional[CompletionSession]:
        """Return a session when ``text`` is the first word of the line.

        For any other position the engine has no opinion and returns None, so
        the line editor falls back to its own (filename) completion.
        """
        if start != 0:
            return None
        return CompletionSession(self.table, text, cursor_index=start)


def filename_completions(text: str) -> List[str]:
    """Return paths starting with ``text``; directories get a trailing '/'."""
    dirname, pattern = os.path.split(text)
    base_dir = os.path.expanduser(dirname) if dirname else os.curdir
    suggestions: List[str] = []
    try:
        entries = sorted(os.listdir(base_dir))
    except OSError:
        return suggestions
    for entry in entries:
        if not entry.startswith(pattern):
            continue
        # hide dotfiles unless the user asked for them
        if entry.startswith(".") and not pattern.startswith("."):
            continue
        candidate = os.path.join(dirname, entry) if dirname else entry
        if os.path.isdir(os.path.join(base_dir, entry)):
            candidate += "/"
        suggestions.append(candidate)
    return suggestions


# ---------- Line editor ----------
class ReadlineEditor:
    """Line editing, history and completion through the readline module.

    Without readline (for example on Windows) lines are still read with
    ``input()``; history and completion simply do nothing.
    """

    def __init__(self, app_name: str = DEFAULT_APP_NAME, history_file: Optional[str] = None,
                 history_length: int = DEFAULT_HISTORY_LENGTH):
        self.app_name = app_name
        self.history_file = os.path.expanduser(history_file) if history_file else None
        self.history_length = history_length
        self._complete_fn: Optional[Callable[[str, int, int], Optional[CompletionSession]]] = None
        self._session: Optional[CompletionSession] = None
        self._fallback: Iterator[str] = iter(())
        if readline:
            # only lines the shell records end up in history
            readline.set_auto_history(False)
            readline.set_history_length(history_length)
            if self.history_file:
                try:
                    readline.read_history_file(self.history_file)
                except FileNotFoundError:
                    pass
                except OSError as e:
                    _warn(f"could not read history file {self.history_file}: {e}")
                atexit.register(self._save_history)

    def _save_history(self) -> None:
        try:
            readline.write_history_file(self.history_file)
        except OSError as e:
            _warn(f"could not write history file {self.history_file}: {e}")

    def set_app_name(self, name: str) -> None:
        """Identify the application and load its own inputrc, if there is one."""
        self.app_name = name
        if not readline:
            return
        inputrc = os.path.expanduser(f"~/.{name.lower()}.inputrc")
        if os.path.exists(inputrc):
            try:
                readline.read_init_file(inputrc)
            except OSError as e:
                _warn(f"could not read {inputrc}: {e}")

    def read_line(self, prompt: str) -> Optional[str]:
        """Read one line; None means the input has ended."""
        try:
            return input(prompt)
        except EOFError:
            return None

    def add_history(self, line: str) -> None:
        if readline:
            readline.add_history(line)

    def set_completer(self, complete_fn: Callable[[str, int, int], Optional[CompletionSession]]) -> None:
        """Install ``complete_fn(text, start, end)`` as the completion callback."""
        self._complete_fn = complete_fn
        if not readline:
            return
        readline.set_completer(self._readline_complete)
        # words are separated by whitespace only so '?' and paths complete whole
        readline.set_completer_delims(" \t\n")
        # libedit (notably macOS) uses a different binding syntax
        doc = getattr(readline, "__doc__", "") or ""
        if "libedit" in doc:
            readline.parse_and_bind("bind ^I rl_complete")
        else:
            readline.parse_and_bind("tab: complete")

    def _readline_complete(self, text: str, state: int) -> Optional[str]:
        """Adapt readline's ``(text, state)`` protocol to the completion engine."""
        if state == 0:
            self._session = None
            self._fallback = iter(())
            if self._complete_fn is not None:
                self._session = self._complete_fn(text, readline.get_begidx(), readline.get_endidx())
            if self._session is None:
                self._fallback = iter(filename_completions(text))
        if self._session is not None:
            return self._session.pull(state)
        return next(self._fallback, None)


# ---------- Shell state ----------
class ShellState:
    """Process-wide shell flags. ``done`` is only ever set by the quit command."""

    def __init__(self):
        self.done = False


SHELL_STATE = ShellState()


# ---------- Command handlers ----------
def h_list(arg: str) -> int:
    """List the files in DIR (default: the current directory)."""
    # the argument goes to the shell unquoted so globs keep working
    return subprocess.call(f"ls -FClg {arg}".rstrip(), shell=True)


def h_view(arg: str) -> int:
    """Page through FILE."""
    if not _valid_argument("view", arg):
        return 1
    pager = "type" if os.name == "nt" else "more"
    return subprocess.call(f"{pager} {arg}", shell=True)


def h_rename(arg: str) -> int:
    return _too_dangerous("rename")


def h_delete(arg: str) -> int:
    return _too_dangerous("delete")


def h_stat(arg: str) -> int:
    """Print the link count, size and timestamps of FILE."""
    if not _valid_argument("stat", arg):
        return 1
    try:
        st = os.stat(arg)
    except OSError as e:
        return _err(f"stat: {arg}: {e.strerror}")
    print(f"Statistics for `{arg}':")
    print(f"{arg} has {st.st_nlink} link{_plural(st.st_nlink)}, "
          f"and is {st.st_size} byte{_plural(st.st_size)} in length.")
    print(f"Inode Last Change at: {time.ctime(st.st_ctime)}")
    print(f"      Last access at: {time.ctime(st.st_atime)}")
    print(f"    Last modified at: {time.ctime(st.st_mtime)}")
    return 0


def make_help(get_table: Callable[[], "CommandTable"]) -> Handler:
    """Build a help handler that lists the table returned by ``get_table``."""

    def _help(arg: str) -> int:
        """Print help for ARG, or for every command when ARG is empty."""
        table = get_table()
        printed = 0
        for entry in table:
            if not arg or arg == entry.name:
                print(f"{Fore.CYAN}{entry.name}{Style.RESET_ALL}\t\t{entry.doc}")
                printed += 1
        if not printed:
            print(c(f"No commands match `{arg}'.  Possibilities are:", Fore.YELLOW))
            names = table.names()
            per_row = 6
            for i in range(0, len(names), per_row):
                print("\t".join(names[i:i + per_row]))
        return 0

    # lets a shell rebind help to the table it actually dispatches from
    _help.__fileman_help__ = True
    return _help


h_help = make_help(lambda: COMMANDS)


def h_cd(arg: str) -> int:
    """Change the working directory to DIR."""
    if not _valid_argument("cd", arg):
        return 1
    try:
        os.chdir(os.path.expanduser(arg))
    except OSError as e:
        return _err(f"cd: {arg}: {e.strerror}")
    return h_pwd("")


def h_pwd(arg: str) -> int:
    try:
        cwd = os.getcwd()
    except OSError as e:
        return _err(f"pwd: {e.strerror}")
    _ok(f"Current directory is {cwd}")
    return 0


def h_quit(arg: str) -> int:
    SHELL_STATE.done = True
    return 0


# Built-in commands in listing order (name, handler, short description)
COMMANDS = CommandTable([
    ("cd", h_cd, "Change to directory DIR"),
    ("delete", h_delete, "Delete FILE"),
    ("help", h_help, "Display this text"),
    ("?", h_help, "Synonym for 'help'"),
    ("list", h_list, "List files in DIR"),
    ("ls", h_list, "Synonym for 'list'"),
    ("pwd", h_pwd, "Print the current working directory"),
    ("quit", h_quit, "Quit using Fileman"),
    ("rename", h_rename, "Rename FILE to NEWNAME"),
    ("stat", h_stat, "Print out statistics on FILE"),
    ("view", h_view, "View the contents of FILE"),
])


# ---------- Configuration ----------
@dataclass
class Config:
    prompt: str = DEFAULT_PROMPT
    app_name: str = DEFAULT_APP_NAME
    history_file: Optional[str] = DEFAULT_HISTORY_FILE
    history_length: int = DEFAULT_HISTORY_LENGTH
    intro: str = DEFAULT_INTRO
    aliases: Dict[str, str] = field(default_factory=dict)


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Config:
    """Load settings from a YAML file; a missing file gives the defaults."""
    if not os.path.exists(path):
        return Config()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"{path}: cannot read: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    known = {f.name for f in fields(Config)}
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        raise ConfigError(f"{path}: unknown setting(s): {', '.join(unknown)}")
    aliases = data.get("aliases") or {}
    if not isinstance(aliases, dict):
        raise ConfigError(f"{path}: 'aliases' must map alias names to commands")
    try:
        history_length = int(data.get("history_length", DEFAULT_HISTORY_LENGTH))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{path}: 'history_length' must be a number") from e
    history_file = data.get("history_file", DEFAULT_HISTORY_FILE)
    return Config(
        prompt=str(data.get("prompt", DEFAULT_PROMPT)),
        app_name=str(data.get("app_name", DEFAULT_APP_NAME)),
        history_file=str(history_file) if history_file else None,
        history_length=history_length,
        intro=str(data.get("intro", DEFAULT_INTRO)),
        aliases={str(k): str(v) for k, v in aliases.items()},
    )


# ---------- Shell ----------
class FilemanShell(Cmd):
    prompt = DEFAULT_PROMPT

    def __init__(self, editor=None, table: Optional[CommandTable] = None, config: Optional[Config] = None):
        super().__init__()
        self.config = config or Config()
        if table is None:
            table = COMMANDS
        if self.config.aliases:
            table = table.with_aliases(self.config.aliases)
        # 'help' and its aliases list this shell's own table
        table = table.bind_help(lambda: self.table)
        self.table = table
        self.dispatcher = Dispatcher(table)
        self.completion = CompletionEngine(table)
        self.editor = editor or ReadlineEditor(self.config.app_name, self.config.history_file,
                                               self.config.history_length)
        self.prompt = self.config.prompt
        self.intro = c(self.config.intro, Fore.MAGENTA)
        self.last_status = 0

    def preloop(self):
        self.editor.set_app_name(self.config.app_name)
        self.editor.set_completer(self.completion.complete)

    def cmdloop(self, intro=None):
        """Read, record and execute lines until quit or end of input."""
        self.preloop()
        intro = self.intro if intro is None else intro
        if intro:
            print(intro)
        while not SHELL_STATE.done:
            try:
                line = self.editor.read_line(self.prompt)
            except KeyboardInterrupt:
                # drop the half-typed line and prompt again
                print()
                continue
            if line is None:
                print()
                break
            line = line.strip()
            if not line:
                continue
            self.editor.add_history(line)
            try:
                line = self.precmd(line)
                stop = self.onecmd(line)
                stop = self.postcmd(stop, line)
            except KeyboardInterrupt:
                # an interrupted command fails; the shell keeps going
                print()
                self.last_status = INTERRUPTED_STATUS
                continue
            if stop:
                break
        self.postloop()

    def onecmd(self, line: str) -> bool:
        try:
            self.last_status = self.dispatcher.execute(line)
        except EmptyCommand:
            return SHELL_STATE.done
        except UnknownCommand as e:
            self.last_status = _err(str(e))
        return SHELL_STATE.done

    def postloop(self):
        print(c("Bye!", Fore.MAGENTA))


# ---------- main ----------
def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="fileman", description="A tiny interactive file manager shell.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH,
                        help=f"YAML settings file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--no-history", action="store_true", help="do not load or save the history file")
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
        if args.no_history:
            config.history_file = None
        shell = FilemanShell(config=config)
    except FilemanError as e:
        _err(f"fileman: {e}")
        return 2
    shell.cmdloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
