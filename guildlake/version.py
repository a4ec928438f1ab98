from __future__ import annotations

import os
import subprocess
from importlib import metadata
from pathlib import Path


def _read_git_head(repo_dir: Path) -> str | None:
    """Short commit hash straight from .git/HEAD, for hosts without git."""
    head_file = repo_dir / ".git" / "HEAD"
    if not head_file.is_file():
        return None
    ref = head_file.read_text().strip()
    if not ref.startswith("ref:"):
        return ref[:7]
    ref_path = repo_dir / ".git" / ref.split(" ", 1)[1]
    return ref_path.read_text().strip()[:7] if ref_path.is_file() else None


def get_version() -> str:
    """``GUILDLAKE_VERSION``, then the git commit, then the installed dist version."""
    env_version = os.getenv("GUILDLAKE_VERSION") or os.getenv("VERSION")
    if env_version:
        return env_version

    repo_dir = Path(__file__).resolve().parent.parent
    try:
        out = subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"], cwd=repo_dir, stderr=subprocess.DEVNULL
        )
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):
        commit = _read_git_head(repo_dir)
    if commit:
        return commit
    try:
        return metadata.version("guildlake")
    except metadata.PackageNotFoundError:
        return "unknown"
