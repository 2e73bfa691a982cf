"""
Progress snapshots for live run monitoring.

The publisher is called after every single status write on the registry
and hands the subscriber a fresh, immutable snapshot. It does not buffer or
coalesce; a slow subscriber slows the run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Callable

from .registry import FAILED, PENDING, PROCESSING, RETRYING, SUCCESS, CrawlTask

if TYPE_CHECKING:
    from .registry import TaskRegistry


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only view of a run's registry at publication time."""
    total: int
    completed: int
    failed: int
    tasks: tuple[CrawlTask, ...]
    current_task: CrawlTask | None
    run_dir: Path | None = None

    @property
    def in_flight(self) -> int:
        """Tasks not yet terminal (pending, processing or retrying)."""
        return self.total - self.completed - self.failed

    @property
    def processing(self) -> int:
        return sum(1 for t in self.tasks if t.status == PROCESSING)

    @property
    def done(self) -> bool:
        return self.total > 0 and self.in_flight == 0

    def status_counts(self) -> dict[str, int]:
        counts = {s: 0 for s in (PENDING, PROCESSING, RETRYING, SUCCESS, FAILED)}
        for task in self.tasks:
            counts[task.status] += 1
        return counts

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "tasks": [t.to_dict() for t in self.tasks],
            "current_task": self.current_task.to_dict() if self.current_task else None,
            "run_dir": str(self.run_dir) if self.run_dir else None,
        }


EMPTY_SNAPSHOT = ProgressSnapshot(total=0, completed=0, failed=0, tasks=(), current_task=None)


def build_snapshot(registry: "TaskRegistry", run_dir: Path | None = None) -> ProgressSnapshot:
    tasks = registry.tasks()
    return ProgressSnapshot(
        total=len(tasks),
        completed=sum(1 for t in tasks if t.status == SUCCESS),
        failed=sum(1 for t in tasks if t.status == FAILED),
        tasks=tasks,
        current_task=next((t for t in tasks if t.status == PROCESSING), None),
        run_dir=run_dir,
    )


Subscriber = Callable[[ProgressSnapshot], None]


class ProgressPublisher:
    """Pushes a snapshot to the subscriber on every registry write."""

    def __init__(self, subscriber: Subscriber | None = None, run_dir: Path | None = None):
        self.subscriber = subscriber
        self.run_dir = run_dir
        self.published = 0

    def publish(self, registry: "TaskRegistry") -> ProgressSnapshot:
        snapshot = build_snapshot(registry, self.run_dir)
        self.published += 1
        if self.subscriber is not None:
            self.subscriber(snapshot)
        return snapshot


class SnapshotStream:
    """
    Subscriber that exposes snapshots as an async iterator.

    Pass the stream as the orchestrator's subscriber and consume it from a
    transport task; call close() when the run ends to stop iteration.

        stream = SnapshotStream()
        orchestrator = CrawlOrchestrator(automation, subscriber=stream)
        async for snapshot in stream:
            await socket.send_json(snapshot.to_dict())
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        if self._closed:
            return
        self._queue.put_nowait(snapshot)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> AsyncIterator[ProgressSnapshot]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressSnapshot]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item
