"""Version-control passthrough at the vault root (git, svn) and ignore files."""

from __future__ import annotations

import subprocess
from pathlib import Path

from taskvault import log
from taskvault.errors import TaskVaultError
from taskvault.io_utils import write_text
from taskvault.state import STATE_FILE

# The snapshot is re-derived from the records when missing; temp files are staging leftovers.
IGNORED = [STATE_FILE, ".*.tmp"]


def _run(tool: str, *args: str, cwd: Path) -> int:
    try:
        return subprocess.run([tool, *args], cwd=cwd).returncode
    except FileNotFoundError:
        raise TaskVaultError(f"{tool} is not installed or not on PATH") from None


def git(args: list[str], vault_dir: Path) -> int:
    """Run git in *vault_dir*; its own output and errors go straight to the terminal."""
    log.debug(f"git {' '.join(args)} (in {vault_dir})")
    return _run("git", "-c", "color.ui=always", *args, cwd=vault_dir)


def svn(args: list[str], vault_dir: Path) -> int:
    log.debug(f"svn {' '.join(args)} (in {vault_dir})")
    return _run("svn", *args, cwd=vault_dir)


def create_gitignore(vault_dir: Path) -> Path:
    path = vault_dir / ".gitignore"
    write_text(path, "\n".join(IGNORED) + "\n")
    return path


def set_svn_ignore(vault_dir: Path) -> int:
    return _run("svn", "propset", "svn:ignore", "\n".join(IGNORED), ".", cwd=vault_dir)
