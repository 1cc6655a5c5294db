"""Diff archive: bundles every diff image of a run into one zip."""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from visual_monitor.errors import ArchiveError

logger = logging.getLogger(__name__)


def create_zip(files: list[Path], out_path: Path) -> Path:
    """Write ``files`` (flat, by basename) into a deflated zip at ``out_path``."""
    if not files:
        raise ArchiveError("No files to archive")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in files:
                zf.write(path, arcname=path.name)
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError(f"Could not create {out_path}: {e}") from e
    logger.debug("Archived %d file(s) into %s", len(files), out_path)
    return out_path
