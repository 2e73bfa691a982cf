"""
Task registry for one lookup run.

Holds one immutable CrawlTask record per (entity, site) pair in insertion
order. Every write replaces the record and then notifies the progress
publisher, so a snapshot never shares mutable state with the registry.
Writes are plain synchronous methods: under asyncio each write completes
without interleaving, and writes to different ids are independent.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Literal

from browse.config import SiteDescriptor

from .errors import InvalidConfig, InvalidTransition

if TYPE_CHECKING:
    from .progress import ProgressPublisher


TaskStatus = Literal["pending", "processing", "retrying", "success", "failed"]

PENDING = "pending"
PROCESSING = "processing"
RETRYING = "retrying"
SUCCESS = "success"
FAILED = "failed"

TERMINAL_STATUSES = frozenset({SUCCESS, FAILED})

# status -> statuses it may move to
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({PROCESSING, FAILED}),
    PROCESSING: frozenset({SUCCESS, RETRYING, FAILED}),
    RETRYING: frozenset({PROCESSING, FAILED}),
    SUCCESS: frozenset(),
    FAILED: frozenset({PENDING}),
}


def make_task_id(run_id: str, entity: str, site_name: str) -> str:
    return f"{run_id}:{entity}-{site_name}"


@dataclass(frozen=True)
class CrawlTask:
    """One (entity, site) lookup within a run."""
    id: str
    entity: str
    site: SiteDescriptor
    status: TaskStatus = PENDING
    attempts: int = 0
    last_error: str | None = None
    artifact_path: Path | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity": self.entity,
            "site": self.site.to_dict(),
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "artifact_path": str(self.artifact_path) if self.artifact_path else None,
        }


class TaskRegistry:
    """Ordered id -> CrawlTask store with validated status transitions."""

    def __init__(self, publisher: "ProgressPublisher | None" = None):
        self._tasks: dict[str, CrawlTask] = {}
        self._publisher = publisher

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __iter__(self) -> Iterator[CrawlTask]:
        return iter(list(self._tasks.values()))

    def get(self, task_id: str) -> CrawlTask | None:
        return self._tasks.get(task_id)

    def tasks(self) -> tuple[CrawlTask, ...]:
        return tuple(self._tasks.values())

    def ids(self) -> list[str]:
        return list(self._tasks)

    def count(self, status: str) -> int:
        return sum(1 for t in self._tasks.values() if t.status == status)

    # -- population (no progress event; the run publishes once tasks exist) --

    def add(self, task: CrawlTask) -> None:
        if task.id in self._tasks:
            raise InvalidConfig(f"Duplicate task id: {task.id}")
        self._tasks[task.id] = task

    # -- status writes (each one publishes) --

    def begin_attempt(self, task_id: str, attempt: int) -> CrawlTask:
        """pending|retrying -> processing, recording the attempt number."""
        return self._write(task_id, PROCESSING, attempts=attempt)

    def mark_retrying(self, task_id: str, error: str, attempt: int) -> CrawlTask:
        return self._write(task_id, RETRYING, attempts=attempt, last_error=error)

    def mark_success(self, task_id: str, artifact_path: Path) -> CrawlTask:
        current = self._require(task_id)
        if current.artifact_path is not None:
            raise InvalidTransition(f"Artifact already recorded for {task_id}")
        return self._write(task_id, SUCCESS, artifact_path=Path(artifact_path), last_error=None)

    def mark_failed(self, task_id: str, error: str) -> CrawlTask:
        return self._write(task_id, FAILED, last_error=error or "Unknown error")

    def reset_for_retry(self, task_id: str) -> bool:
        """
        failed -> pending, clearing last_error and attempts.

        Returns False (and writes nothing) for unknown or non-failed ids.
        """
        current = self._tasks.get(task_id)
        if current is None or current.status != FAILED:
            return False
        self._write(task_id, PENDING, attempts=0, last_error=None)
        return True

    def _require(self, task_id: str) -> CrawlTask:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise KeyError(f"Unknown task id: {task_id}") from None

    def _write(self, task_id: str, status: str, **changes) -> CrawlTask:
        current = self._require(task_id)
        if status not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidTransition(f"{task_id}: {current.status} -> {status} not allowed")
        updated = replace(current, status=status, **changes)
        self._tasks[task_id] = updated
        if self._publisher is not None:
            self._publisher.publish(self)
        return updated
