"""Shared fixtures for taskvault tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Use taskvault.io_utils read_text/write_text for consistent UTF-8 I/O.
- The config file is always redirected into tmp_path via TASKVAULT_CONFIG.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from taskvault.config import CONFIG_ENV, Config
from taskvault.state import VaultState
from taskvault.tasks.model import Task


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the global config at a throwaway file for every test."""
    path = tmp_path / "config" / "config.yaml"
    monkeypatch.setenv(CONFIG_ENV, str(path))
    monkeypatch.setenv("EDITOR", "true")
    monkeypatch.delenv("VISUAL", raising=False)
    return path


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    return tmp_path / "vault"


@pytest.fixture
def state(vault_dir: Path) -> VaultState:
    """A freshly initialised, empty vault."""
    return VaultState.init(vault_dir)


@pytest.fixture
def registered_vault(vault_dir: Path) -> Path:
    """An empty vault registered as the current vault in the config."""
    VaultState.init(vault_dir)
    cfg = Config()
    cfg.add("main", vault_dir)
    cfg.save()
    return vault_dir


def _make_task(
    id: int,
    name: str = "",
    dependencies: set[int] | None = None,
    tags: set[str] | None = None,
    **fields,
) -> Task:
    return Task(
        id=id,
        name=name or f"task {id}",
        dependencies=dependencies or set(),
        tags=tags or set(),
        **fields,
    )


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task
