"""Vault lifecycle: create, connect, disconnect, delete, rename and switch vaults."""

from __future__ import annotations

import shutil
from pathlib import Path

from taskvault import log
from taskvault.config import Config
from taskvault.errors import VaultExists, VaultNotFound
from taskvault.state import STATE_FILE, VaultState


def new(name: str, path: Path, config: Config) -> VaultState:
    """Create an empty vault at *path* and register it as *name*."""
    if config.contains_name(name):
        raise VaultExists(f"A vault named {name!r} already exists")
    if config.contains_path(path):
        raise VaultExists(f"A vault at the path {path} already exists")
    if path.is_file():
        raise VaultExists("The specified path points to a file, not a folder")
    if path.is_dir() and any(path.iterdir()):
        raise VaultExists(
            "The specified folder already exists and contains other data, "
            "please provide a path to a new or empty folder"
        )

    state = VaultState.init(path)
    config.add(name, path)
    log.debug(f"Initialised vault {name} at {path}")
    return state


def connect(name: str, path: Path, config: Config) -> None:
    """Register an existing vault folder without touching its files."""
    if config.contains_name(name):
        raise VaultExists(f"A vault named {name!r} already exists")
    if config.contains_path(path):
        raise VaultExists(f"A vault at the path {path} already exists")
    if path.is_file():
        raise VaultNotFound("The specified path points to a file, not a folder")
    if not path.is_dir():
        raise VaultNotFound(f"The path {path} does not exist")
    if not (path / STATE_FILE).is_file():
        raise VaultNotFound(f"Cannot connect the vault as it is missing the {STATE_FILE} file")
    config.add(name, path)


def disconnect(name: str, config: Config) -> Path:
    return config.remove(name)


def delete(name: str, config: Config) -> Path:
    """Unregister *name* and remove its folder with all of its data."""
    path = config.remove(name)
    if path.is_dir():
        shutil.rmtree(path)
    log.debug(f"Removed vault folder {path}")
    return path


def rename(old_name: str, new_name: str, config: Config) -> None:
    config.rename_vault(old_name, new_name)


def switch(name: str, config: Config) -> None:
    config.switch(name)


def open_current(config: Config, *, check: bool = True) -> tuple[str, VaultState]:
    name, path = config.current_vault()
    return name, VaultState.load(path, check=check)
