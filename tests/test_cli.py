import json

import pytest

from gator.cli import build_commands, main
from gator.commands import Command, CommandError


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    return tmp_path


@pytest.fixture
def configured_home(home):
    config_file = home / ".gatorconfig.json"
    config_file.write_text(json.dumps({"db_url": str(home / "gator.db"), "current_user_name": ""}))
    return home


def _config(home):
    return json.loads((home / ".gatorconfig.json").read_text())


def test_build_commands_registers_every_command():
    cmds = build_commands()
    names = ["browse", "unfollow", "follow", "following", "login", "register",
             "reset", "users", "agg", "addfeed", "feeds"]
    assert all(name in cmds for name in names)
    with pytest.raises(CommandError, match="command not found"):
        cmds.run(None, Command("nonexistent"))


def test_missing_config_is_fatal(home, capsys):
    assert main(["users"]) == 1
    assert "error reading config" in capsys.readouterr().err


def test_no_command_prints_usage(configured_home, capsys):
    assert main([]) == 1
    assert "Usage: cli <command> [args...]" in capsys.readouterr().err


def test_unknown_command(configured_home, capsys):
    assert main(["dance"]) == 1
    assert "command not found" in capsys.readouterr().err


def test_register_then_users_across_runs(configured_home, capsys):
    assert main(["register", "alice"]) == 0
    assert _config(configured_home)["current_user_name"] == "alice"
    assert main(["register", "bob"]) == 0
    assert main(["login", "alice"]) == 0
    capsys.readouterr()
    assert main(["users"]) == 0
    assert sorted(capsys.readouterr().out.splitlines()) == ["alice (current)", "bob"]


def test_logged_in_command_without_user_fails(configured_home, capsys):
    assert main(["following"]) == 1
    assert capsys.readouterr().err.strip()


def test_reset_then_login_fails(configured_home, capsys):
    assert main(["register", "alice"]) == 0
    assert main(["reset"]) == 0
    assert main(["login", "alice"]) == 1
    assert "couldn't find user" in capsys.readouterr().err