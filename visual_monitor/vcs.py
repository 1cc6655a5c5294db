"""Git persistence: commit and push the baseline directory after a run."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from visual_monitor.errors import VcsError

logger = logging.getLogger(__name__)


def commit_message(seeded: int, changed: int) -> str:
    if seeded > 0 and changed == 0:
        return f"Seed baselines ({seeded})"
    return f"Update baselines ({changed} change(s))"


def _git(repo_dir: Path, *args: str) -> str:
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=repo_dir,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise VcsError("git executable not found") from e
    except subprocess.CalledProcessError as e:
        raise VcsError(f"git {' '.join(args)} failed ({e.returncode}): {e.stderr.strip()}") from e
    return proc.stdout


def commit_baselines(
    repo_dir: Path,
    baselines_dir: Path,
    seeded: int,
    changed: int,
    push: bool = True,
) -> bool:
    """Commit the baseline directory as one commit. Returns False if nothing changed on disk."""
    if seeded == 0 and changed == 0:
        return False

    pathspec = str(baselines_dir)
    status = _git(repo_dir, "status", "--porcelain", "--", pathspec).strip()
    if not status:
        logger.info("Baselines unchanged on disk, nothing to commit")
        return False

    message = commit_message(seeded, changed)
    _git(repo_dir, "add", "-A", "--", pathspec)
    _git(repo_dir, "commit", "-m", message, "--", pathspec)
    logger.info("Committed baselines: %s", message)
    if push:
        _git(repo_dir, "push")
        logger.info("Pushed baseline commit")
    return True
