"""Baseline store: one reference PNG per target, replaced atomically."""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from pathlib import Path

from visual_monitor.errors import BaselineError

logger = logging.getLogger(__name__)


def write_file_atomic(path: Path, data: bytes) -> None:
    """Write to a sibling temp file, then rename it over ``path``.

    The temp file lives in the destination directory so the rename never
    crosses a filesystem and readers see either the old or the new file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp-{uuid.uuid4().hex[:8]}")
    try:
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class BaselineStore:
    """Maps target slugs to ``<baselines_dir>/<slug>.png``."""

    def __init__(self, baselines_dir: Path):
        self.baselines_dir = baselines_dir

    def path_for(self, slug: str) -> Path:
        return self.baselines_dir / f"{slug}.png"

    def exists(self, slug: str) -> bool:
        return self.path_for(slug).exists()

    def read(self, slug: str) -> bytes | None:
        """Return the baseline PNG, or None when the target was never seen."""
        path = self.path_for(slug)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BaselineError(f"Could not read baseline {path}: {e}") from e

    def write_atomic(self, slug: str, png: bytes) -> Path:
        path = self.path_for(slug)
        try:
            write_file_atomic(path, png)
        except OSError as e:
            raise BaselineError(f"Could not write baseline {path}: {e}") from e
        logger.debug("Stored baseline %s (%d bytes, sha256=%s)",
                     path.name, len(png), hashlib.sha256(png).hexdigest()[:12])
        return path

    def seed(self, slug: str, png: bytes) -> bool:
        """Create the baseline only if absent. Returns True if it was written."""
        if self.exists(slug):
            return False
        self.write_atomic(slug, png)
        logger.info("Seeded baseline %s", slug)
        return True

    def replace(self, slug: str, png: bytes) -> Path:
        path = self.write_atomic(slug, png)
        logger.info("Replaced baseline %s", slug)
        return path
