"""CLI tests: every command runs in-process against a throwaway vault."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from taskvault.cli import main
from taskvault.config import Config
from taskvault.io_utils import read_text, write_text
from taskvault.state import STATE_FILE, VaultState


@pytest.fixture
def cli_runner():
    """Click CliRunner for invoking the CLI in-process."""
    return CliRunner()


@pytest.fixture
def invoke(cli_runner, registered_vault):
    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(main, list(args), **kwargs)

    return _invoke


def _load(vault_dir: Path) -> VaultState:
    return VaultState.load(vault_dir)


# ── Main entry and help ────────────────────────────────────────────────


class TestCliHelpAndVersion:
    def test_help_long(self, cli_runner):
        r = cli_runner.invoke(main, ["--help"])
        assert r.exit_code == 0
        assert "taskvault" in r.output

    def test_help_short(self, cli_runner):
        r = cli_runner.invoke(main, ["-h"])
        assert r.exit_code == 0

    def test_version(self, cli_runner):
        r = cli_runner.invoke(main, ["--version"])
        assert r.exit_code == 0
        assert "taskvault" in r.output.lower()

    @pytest.mark.parametrize(
        "command",
        [["new"], ["list"], ["track"], ["verify"], ["vault", "new"], ["config", "profile"], ["stats", "tracked"]],
    )
    def test_subcommand_help(self, cli_runner, command):
        r = cli_runner.invoke(main, [*command, "--help"])
        assert r.exit_code == 0


# ── Task commands ──────────────────────────────────────────────────────


class TestTaskCommands:
    def test_requires_a_vault(self, cli_runner):
        r = cli_runner.invoke(main, ["new", "-n", "a"])
        assert r.exit_code == 1
        assert "requires a vault" in r.output

    def test_new_and_view(self, invoke, registered_vault):
        r = invoke("new", "-n", "buy milk", "-t", "shopping", "-p", "high")
        assert r.exit_code == 0, r.output
        task = _load(registered_vault).task(1)
        assert task.tags == {"shopping"}
        assert task.priority.value == "high"

        r = invoke("view", "buy milk")
        assert r.exit_code == 0
        assert "buy milk" in r.output
        assert "high" in r.output

    def test_new_with_dependency_by_name(self, invoke, registered_vault):
        invoke("new", "-n", "buy milk")
        r = invoke("new", "-n", "cook", "-d", "buy milk")
        assert r.exit_code == 0, r.output
        assert _load(registered_vault).graph.edges() == [(2, 1)]

    def test_numeric_name_fails(self, invoke, registered_vault):
        r = invoke("new", "-n", "42")
        assert r.exit_code == 1
        assert "numeric" in r.output
        assert _load(registered_vault).tasks() == []

    def test_rename(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        r = invoke("rename", "1", "b")
        assert r.exit_code == 0
        assert _load(registered_vault).resolve("b") == 1

    def test_ambiguous_name(self, invoke):
        invoke("new", "-n", "dup")
        invoke("new", "-n", "dup")
        r = invoke("complete", "dup")
        assert r.exit_code == 1
        assert "[1, 2]" in r.output

    def test_complete_and_discard(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        invoke("new", "-n", "b")
        assert invoke("complete", "a").exit_code == 0
        assert invoke("discard", "2").exit_code == 0
        state = _load(registered_vault)
        assert state.task(1).is_complete
        assert state.task(2).discarded

    def test_track(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        r = invoke("track", "a", "-H", "1", "-M", "75", "-d", "2024-02-01", "-m", "deep work")
        assert r.exit_code == 0, r.output
        assert "2:15" in r.output
        entry = _load(registered_vault).task(1).time_entries[0]
        assert entry.message == "deep work"

    def test_track_rejects_negative(self, invoke):
        invoke("new", "-n", "a")
        r = invoke("track", "a", "-M", "-5")
        assert r.exit_code == 2


class TestDependencyCommands:
    def test_depend_and_cycle(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        invoke("new", "-n", "b")
        assert invoke("depend", "a", "b").exit_code == 0
        r = invoke("depend", "b", "a")
        assert r.exit_code == 1
        assert "2 -> 1 -> 2" in r.output
        assert _load(registered_vault).graph.edges() == [(1, 2)]

    def test_undepend(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        invoke("new", "-n", "b")
        invoke("depend", "a", "b")
        assert invoke("undepend", "a", "b").exit_code == 0
        assert _load(registered_vault).task(1).dependencies == set()

    def test_delete_refused_then_cascade(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        invoke("new", "-n", "b")
        invoke("depend", "a", "b")

        r = invoke("delete", "b")
        assert r.exit_code == 1
        assert 2 in _load(registered_vault)

        r = invoke("delete", "b", "--cascade")
        assert r.exit_code == 0, r.output
        state = _load(registered_vault)
        assert 2 not in state
        assert state.task(1).dependencies == set()


class TestEdit:
    def test_edit_record(self, invoke, registered_vault):
        invoke("new", "-n", "a")

        def fake_edit(text, **kwargs):
            return text.replace("name: a", "name: edited")

        with patch("taskvault.cli.click.edit", side_effect=fake_edit):
            r = invoke("edit", "a")
        assert r.exit_code == 0, r.output
        assert _load(registered_vault).resolve("edited") == 1

    def test_edit_cannot_change_id(self, invoke, registered_vault):
        invoke("new", "-n", "a")

        def fake_edit(text, **kwargs):
            return text.replace("id: 1", "id: 5")

        with patch("taskvault.cli.click.edit", side_effect=fake_edit):
            r = invoke("edit", "a")
        assert r.exit_code == 1
        assert "ID" in r.output
        assert _load(registered_vault).task(1).name == "a"

    def test_edit_info(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        with patch("taskvault.cli.click.edit", return_value="some notes\n"):
            r = invoke("edit", "a", "--info")
        assert r.exit_code == 0
        assert _load(registered_vault).task(1).info == "some notes\n"

    def test_edit_aborted(self, invoke):
        invoke("new", "-n", "a")
        with patch("taskvault.cli.click.edit", return_value=None):
            r = invoke("edit", "a")
        assert r.exit_code == 0
        assert "No changes" in r.output


# ── Listing and stats ──────────────────────────────────────────────────


class TestList:
    def test_list_filters(self, invoke):
        invoke("new", "-n", "home task", "-t", "home")
        invoke("new", "-n", "work task", "-t", "work")
        r = invoke("list", "-t", "home", "-c", "tags")
        assert r.exit_code == 0, r.output
        assert "home task" in r.output
        assert "work task" not in r.output

    def test_profile(self, invoke):
        invoke("new", "-n", "home task", "-t", "home")
        invoke("new", "-n", "work task", "-t", "work")
        assert invoke("config", "profile", "work", "-t", "work").exit_code == 0
        assert Config.load().profile("work")["tags"] == ["work"]

        r = invoke("list", "--profile", "work")
        assert r.exit_code == 0, r.output
        assert "work task" in r.output
        assert "home task" not in r.output

    def test_unknown_profile(self, invoke):
        r = invoke("list", "--profile", "missing")
        assert r.exit_code == 1

    def test_stats(self, invoke):
        invoke("new", "-n", "a", "-t", "home")
        invoke("track", "a", "-M", "30")
        invoke("complete", "a")
        r = invoke("stats", "tracked")
        assert r.exit_code == 0
        assert "0:30" in r.output
        r = invoke("stats", "completed", "--days", "1")
        assert r.exit_code == 0
        assert "a" in r.output


# ── Verification ───────────────────────────────────────────────────────


class TestVerify:
    def test_consistent(self, invoke):
        invoke("new", "-n", "a")
        r = invoke("verify")
        assert r.exit_code == 0
        assert "consistent" in r.output

    def test_repair(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        state_file = registered_vault / STATE_FILE
        write_text(state_file, read_text(state_file).replace("a:", "ghost:"))

        assert invoke("list").exit_code == 1
        assert invoke("verify").exit_code == 1

        r = invoke("verify", "--repair")
        assert r.exit_code == 0, r.output
        assert "Repaired" in r.output
        assert invoke("list").exit_code == 0

    def test_broken_counter(self, invoke, registered_vault):
        invoke("new", "-n", "a")
        state_file = registered_vault / STATE_FILE
        write_text(state_file, read_text(state_file).replace("next_id: 2", "next_id: 1"))
        r = invoke("verify", "--repair")
        assert r.exit_code == 1
        assert "next_id" in r.output


# ── Vaults and configuration ───────────────────────────────────────────


class TestVaultCommands:
    def test_new_list_switch(self, cli_runner, tmp_path):
        assert cli_runner.invoke(main, ["vault", "new", "a", str(tmp_path / "a")]).exit_code == 0
        assert cli_runner.invoke(main, ["vault", "new", "b", str(tmp_path / "b")]).exit_code == 0
        r = cli_runner.invoke(main, ["switch", "b"])
        assert r.exit_code == 0
        assert Config.load().current_vault()[0] == "b"

        r = cli_runner.invoke(main, ["vault", "list"])
        assert r.exit_code == 0
        assert "* b" in r.output

    def test_list_without_vaults(self, cli_runner):
        r = cli_runner.invoke(main, ["vault", "list"])
        assert r.exit_code == 1
        assert "vault new" in r.output

    def test_rename_disconnect_connect(self, cli_runner, tmp_path):
        path = tmp_path / "a"
        cli_runner.invoke(main, ["vault", "new", "a", str(path)])
        assert cli_runner.invoke(main, ["vault", "rename", "a", "z"]).exit_code == 0
        assert cli_runner.invoke(main, ["vault", "disconnect", "z"]).exit_code == 0
        assert Config.load().vaults == []
        assert cli_runner.invoke(main, ["vault", "connect", "z", str(path)]).exit_code == 0
        assert Config.load().current_vault() == ("z", path)

    def test_delete_asks_for_confirmation(self, cli_runner, tmp_path):
        path = tmp_path / "a"
        cli_runner.invoke(main, ["vault", "new", "a", str(path)])
        r = cli_runner.invoke(main, ["vault", "delete", "a"], input="n\n")
        assert r.exit_code == 1
        assert path.is_dir()
        r = cli_runner.invoke(main, ["vault", "delete", "a", "--yes"])
        assert r.exit_code == 0
        assert not path.exists()

    def test_gitignore(self, invoke, registered_vault):
        assert invoke("gitignore").exit_code == 0
        assert STATE_FILE in read_text(registered_vault / ".gitignore")


class TestConfigCommands:
    def test_editor(self, cli_runner):
        r = cli_runner.invoke(main, ["config", "editor", "nano"])
        assert r.exit_code == 0
        assert Config.load().editor == "nano"
        r = cli_runner.invoke(main, ["config", "editor"])
        assert "nano" in r.output
