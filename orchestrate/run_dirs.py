"""
Run directory management.

Layout:
    {screenshots_dir}/run_{timestamp}/{entity}/{site}_{timestamp}.png

All operations are idempotent with respect to existing directories.
Filesystem faults surface as StorageError and are not retried here.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

from .errors import StorageError


# Characters unsafe in file names on common filesystems, plus control chars
_UNSAFE_CHARS = re.compile(r'[/\\:*?"<>|\x00-\x1f\x7f]')

RUN_DIR_PREFIX = "run_"
ARTIFACT_SUFFIX = ".png"


def format_timestamp(dt: datetime | None = None) -> str:
    """UTC timestamp safe for file names: 2026-10-19T13-39-00."""
    dt = dt or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")


def sanitize_name(name: str) -> str:
    """Replace path-unsafe characters with '_'."""
    cleaned = _UNSAFE_CHARS.sub("_", str(name)).strip()
    if cleaned in ("", ".", ".."):
        return "_"
    return cleaned


def run_id_for(as_of: datetime | None = None) -> str:
    return f"{RUN_DIR_PREFIX}{format_timestamp(as_of)}"


def _mkdir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except FileExistsError as exc:
        raise StorageError(f"Path exists and is not a directory: {path}") from exc
    except OSError as exc:
        raise StorageError(f"Could not create directory {path}: {exc}") from exc
    return path


def create_run_dir(base_dir: Path, as_of: datetime | None = None) -> Path:
    """Create (or reuse) the run root for as_of under base_dir."""
    return _mkdir(Path(base_dir) / run_id_for(as_of))


def create_entity_dir(run_root: Path, entity: str) -> Path:
    """Create (or reuse) the sanitized per-entity directory under run_root."""
    return _mkdir(Path(run_root) / sanitize_name(entity))


def artifact_path(entity_dir: Path, site_name: str, captured_at: datetime | None = None) -> Path:
    return Path(entity_dir) / f"{sanitize_name(site_name)}_{format_timestamp(captured_at)}{ARTIFACT_SUFFIX}"


def write_artifact(path: Path, data: bytes) -> Path:
    path = Path(path)
    try:
        path.write_bytes(data)
    except OSError as exc:
        raise StorageError(f"Could not write {path}: {exc}") from exc
    return path


def list_artifacts(run_root: Path) -> list[Path]:
    """All screenshots under a run root; empty for a run with no successes."""
    root = Path(run_root)
    if not root.exists():
        return []
    return sorted(root.glob(f"*/*{ARTIFACT_SUFFIX}"))
