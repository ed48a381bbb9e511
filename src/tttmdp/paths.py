"""Path helpers for trained policies and run logs, plus git provenance.

Environment-first (TTT_REPO_ROOT, TTT_POLICY_DIR, TTT_RUNS_DIR), falling back to
the nearest git root and finally the CWD so nothing is written under
site-packages when installed as a library.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Dict, Optional


def _find_git_root(start: Path) -> Path | None:
    for cur in [start] + list(start.parents)[:5]:
        if (cur / ".git").exists():
            return cur
    return None


def repo_root() -> Path:
    env = os.getenv("TTT_REPO_ROOT")
    if env:
        return Path(env)
    git_root = _find_git_root(Path(__file__).resolve())
    return git_root if git_root is not None else Path.cwd()


def policies_dir() -> Path:
    p = os.getenv("TTT_POLICY_DIR")
    return Path(p) if p else repo_root() / "policies"


def runs_dir() -> Path:
    p = os.getenv("TTT_RUNS_DIR")
    return Path(p) if p else repo_root() / "runs"


def _git(*args: str) -> Optional[str]:
    try:
        return subprocess.check_output(
            ["git", "-C", str(repo_root()), *args],
            stderr=subprocess.DEVNULL,
            text=True,
            timeout=2.0,
        )
    except (OSError, subprocess.SubprocessError):
        return None


def git_metadata() -> Dict[str, object]:
    """Commit hash and dirty flag of the working tree; None values outside a repo."""
    head = _git("rev-parse", "HEAD")
    status = _git("status", "--porcelain")
    return {
        "git_commit": head.strip() if head else None,
        "git_is_dirty": (len(status.strip()) > 0) if status is not None else None,
    }
