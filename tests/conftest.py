import sys
import os

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import fileman as fm


class ScriptedEditor:
    """Line editor stand-in that replays a fixed list of lines.

    ``None`` in the script (or running out of lines) means end of input; an
    exception instance in the script is raised from ``read_line``.
    """

    def __init__(self, lines):
        self.lines = list(lines)
        self.reads = 0
        self.prompts = []
        self.history = []
        self.completer = None
        self.app_name = None

    def read_line(self, prompt):
        self.reads += 1
        self.prompts.append(prompt)
        if not self.lines:
            return None
        item = self.lines.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def add_history(self, line):
        self.history.append(line)

    def set_completer(self, complete_fn):
        self.completer = complete_fn

    def set_app_name(self, name):
        self.app_name = name


class FakeReadline:
    """Records what the editor asks of readline and plays back cursor bounds."""

    def __init__(self):
        self.begidx = 0
        self.endidx = 0
        self.completer = None
        self.delims = None
        self.bindings = []
        self.history = []
        self.auto_history = None
        self.history_length = None
        self.init_files = []

    def get_begidx(self):
        return self.begidx

    def get_endidx(self):
        return self.endidx

    def set_completer(self, fn):
        self.completer = fn

    def set_completer_delims(self, delims):
        self.delims = delims

    def parse_and_bind(self, binding):
        self.bindings.append(binding)

    def add_history(self, line):
        self.history.append(line)

    def set_auto_history(self, enabled):
        self.auto_history = enabled

    def set_history_length(self, length):
        self.history_length = length

    def read_history_file(self, path):
        raise FileNotFoundError(path)

    def write_history_file(self, path):
        pass

    def read_init_file(self, path):
        self.init_files.append(path)


@pytest.fixture(autouse=True)
def fresh_state(monkeypatch):
    """Give every test its own ShellState and a clean LAST_ERROR."""
    state = fm.ShellState()
    monkeypatch.setattr(fm, "SHELL_STATE", state)
    monkeypatch.setattr(fm, "LAST_ERROR", None)
    return state


@pytest.fixture
def fake_readline(monkeypatch):
    fake = FakeReadline()
    monkeypatch.setattr(fm, "readline", fake)
    return fake


@pytest.fixture
def scripted_editor():
    return ScriptedEditor


@pytest.fixture
def recorded_calls(monkeypatch):
    """Capture shell commands instead of running them."""
    calls = []

    def fake_call(command, shell=False):
        calls.append((command, shell))
        return 0

    monkeypatch.setattr(fm.subprocess, "call", fake_call)
    return calls
