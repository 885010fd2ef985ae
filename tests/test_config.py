import sys
import os

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import fileman as fm


def test_missing_file_gives_defaults(tmp_path):
    config = fm.load_config(str(tmp_path / "absent.yaml"))
    assert config == fm.Config()
    assert config.prompt == "Fileman: "
    assert config.history_file == "~/.fileman_history"


def test_settings_are_loaded(tmp_path):
    path = tmp_path / "fileman.yaml"
    path.write_text(
        "prompt: 'files> '\n"
        "app_name: Files\n"
        "history_length: 25\n"
        "history_file: null\n"
        "aliases:\n"
        "  dir: list\n"
        "  bye: quit\n"
    )
    config = fm.load_config(str(path))
    assert config.prompt == "files> "
    assert config.app_name == "Files"
    assert config.history_length == 25
    assert config.history_file is None
    assert config.aliases == {"dir": "list", "bye": "quit"}


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "fileman.yaml"
    path.write_text("")
    assert fm.load_config(str(path)) == fm.Config()


@pytest.mark.parametrize("text, message", [
    ("- a\n- b\n", "expected a mapping"),
    ("colour: red\n", "unknown setting(s): colour"),
    ("aliases: [dir]\n", "'aliases' must map"),
    ("history_length: lots\n", "'history_length' must be a number"),
    ("prompt: [unclosed\n", "invalid YAML"),
])
def test_bad_settings_raise(tmp_path, text, message):
    path = tmp_path / "fileman.yaml"
    path.write_text(text)
    with pytest.raises(fm.ConfigError) as excinfo:
        fm.load_config(str(path))
    assert message in str(excinfo.value)


def test_unreadable_path_raises_config_error(tmp_path):
    with pytest.raises(fm.ConfigError) as excinfo:
        fm.load_config(str(tmp_path))
    assert "cannot read" in str(excinfo.value)


def test_main_reports_unreadable_config(tmp_path, capsys):
    assert fm.main(["--config", str(tmp_path)]) == 2
    assert "cannot read" in capsys.readouterr().err
