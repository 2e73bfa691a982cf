"""
Presentation helpers for lookup output.

Keeps the CLI focused on orchestration while this module builds the run
summary, the live status file, and execution log entries.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
import json

from .progress import ProgressSnapshot
from .run_dirs import list_artifacts


RUN_SUMMARY_FILE = "run.json"
STATUS_FILE = "lookup_status.json"
EXECUTION_LOG_FILE = "executions.jsonl"


def _error_kind(last_error: str | None) -> str:
    """'FieldError: ...' -> 'FieldError'."""
    if not last_error:
        return "unknown"
    return last_error.split(":", 1)[0].strip() or "unknown"


def summarize_failures(snapshot: ProgressSnapshot) -> dict[str, int]:
    counts = Counter(_error_kind(t.last_error) for t in snapshot.tasks if t.status == "failed")
    return dict(counts)


def build_run_summary(
    snapshot: ProgressSnapshot,
    started: datetime,
    finished: datetime | None = None,
    as_of: datetime | None = None,
) -> dict:
    finished = finished or datetime.now(timezone.utc)
    entities = list(dict.fromkeys(t.entity for t in snapshot.tasks))
    sites = list(dict.fromkeys(t.site.name for t in snapshot.tasks))

    return {
        "run_dir": str(snapshot.run_dir) if snapshot.run_dir else None,
        "as_of": as_of.isoformat() if as_of else None,
        "started": started.isoformat(),
        "finished": finished.isoformat(),
        "duration_sec": round((finished - started).total_seconds(), 1),
        "entities": entities,
        "sites": sites,
        "stats": {
            "total": snapshot.total,
            "completed": snapshot.completed,
            "failed": snapshot.failed,
            "total_attempts": sum(t.attempts for t in snapshot.tasks),
            "failure_kinds": summarize_failures(snapshot),
            # screenshots actually present, retried runs included
            "screenshots_on_disk": len(list_artifacts(snapshot.run_dir)) if snapshot.run_dir else 0,
        },
        "tasks": [
            {
                "id": t.id,
                "entity": t.entity,
                "site": t.site.name,
                "status": t.status,
                "attempts": t.attempts,
                "last_error": t.last_error,
                "screenshot": str(t.artifact_path) if t.artifact_path else None,
            }
            for t in snapshot.tasks
        ],
    }


def write_run_json(summary: dict, run_dir: Path) -> Path:
    path = Path(run_dir) / RUN_SUMMARY_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)
    return path


def write_status_file(snapshot: ProgressSnapshot, path: Path) -> Path:
    """Overwrite the live status file with the latest snapshot."""
    status = {
        "updated": datetime.now(timezone.utc).isoformat(),
        **snapshot.to_dict(),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(status, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def build_execution_log_entry(summary: dict, command: str, config: dict) -> dict:
    stats = summary.get("stats", {})
    return {
        "timestamp": summary.get("finished"),
        "duration_sec": summary.get("duration_sec", 0),
        "command": command,
        "config": config,
        "results": {
            "tasks_total": stats.get("total", 0),
            "tasks_completed": stats.get("completed", 0),
            "tasks_failed": stats.get("failed", 0),
            "total_attempts": stats.get("total_attempts", 0),
            "failure_kinds": stats.get("failure_kinds", {}),
        },
        "run_dir": summary.get("run_dir"),
        "entities": summary.get("entities", []),
        "sites": summary.get("sites", []),
    }


def append_execution_log(entry: dict, log_dir: Path) -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / EXECUTION_LOG_FILE
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry, ensure_ascii=False) + "\n")
    return log_file


__all__ = [
    "append_execution_log",
    "build_execution_log_entry",
    "build_run_summary",
    "summarize_failures",
    "write_run_json",
    "write_status_file",
]
