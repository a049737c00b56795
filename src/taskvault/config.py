"""Global configuration: registered vaults, editor command and list profiles."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from taskvault import log
from taskvault.errors import ConfigError, VaultExists, VaultNotFound
from taskvault.io_utils import read_text, write_atomic

CONFIG_ENV = "TASKVAULT_CONFIG"


def default_editor() -> str:
    return os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vim"


def config_path() -> Path:
    """``$TASKVAULT_CONFIG``, else ``<XDG config home>/taskvault/config.yaml``."""
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override)
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "taskvault" / "config.yaml"


def _same_path(a: Path, b: Path) -> bool:
    return a.expanduser().resolve() == b.expanduser().resolve()


@dataclass
class Config:
    """User-wide settings, persisted as YAML."""

    # Ordered by recent use; the current vault is first.
    vaults: list[tuple[str, Path]] = field(default_factory=list)
    editor: str = ""
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.editor:
            self.editor = default_editor()

    # ── persistence ──────────────────────────────────────────────

    @classmethod
    def load(cls, path: Path | None = None) -> Config:
        path = path or config_path()
        if not path.is_file():
            log.debug(f"No config at {path}, using defaults")
            return cls()
        try:
            data = yaml.safe_load(read_text(path)) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Failed to parse {path}: expected a mapping")

        try:
            vaults = [(str(v["name"]), Path(v["path"])) for v in data.get("vaults") or []]
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Malformed vault entry in {path}: {e}") from e
        return cls(
            vaults=vaults,
            editor=str(data.get("editor") or ""),
            profiles=dict(data.get("profiles") or {}),
        )

    def save(self, path: Path | None = None) -> None:
        path = path or config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "vaults": [{"name": name, "path": str(p)} for name, p in self.vaults],
            "editor": self.editor,
            "profiles": self.profiles,
        }
        write_atomic(path, yaml.safe_dump(data, sort_keys=False, allow_unicode=True))

    # ── vault registry ───────────────────────────────────────────

    def current_vault(self) -> tuple[str, Path]:
        if not self.vaults:
            raise VaultNotFound(
                "The attempted operation requires a vault, none of which have been set up"
            )
        return self.vaults[0]

    def contains_name(self, name: str) -> bool:
        return any(n == name for n, _ in self.vaults)

    def contains_path(self, path: Path) -> bool:
        return any(_same_path(p, path) for _, p in self.vaults)

    def add(self, name: str, path: Path) -> None:
        if self.contains_name(name):
            raise VaultExists(f"A vault named {name!r} already exists")
        if self.contains_path(path):
            raise VaultExists(f"A vault at the path {path} already exists")
        self.vaults.append((name, path))

    def _position(self, name: str) -> int:
        for i, (n, _) in enumerate(self.vaults):
            if n == name:
                return i
        raise VaultNotFound(f"No vault by the name {name!r} exists")

    def remove(self, name: str) -> Path:
        _, path = self.vaults.pop(self._position(name))
        return path

    def switch(self, name: str) -> None:
        self.vaults.insert(0, self.vaults.pop(self._position(name)))

    def rename_vault(self, old_name: str, new_name: str) -> None:
        if self.contains_name(new_name):
            raise VaultExists(f"A vault named {new_name!r} already exists")
        pos = self._position(old_name)
        self.vaults[pos] = (new_name, self.vaults[pos][1])

    # ── list profiles ────────────────────────────────────────────

    def profile(self, name: str) -> dict[str, Any]:
        try:
            return dict(self.profiles[name])
        except KeyError:
            raise ConfigError(f"No profile named {name!r} exists") from None

    def set_profile(self, name: str, options: dict[str, Any]) -> None:
        self.profiles[name] = dict(options)
