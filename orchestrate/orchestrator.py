"""
Crawl task orchestrator.

Expands entities x sites into tasks and runs them in static waves:
- at most `concurrency` tasks run at once, all started together
- the next wave starts only when every task of the current wave is terminal
- each task's whole attempt cycle (retries and backoff included) races one
  deadline; a task that hits it fails, and the shared browser is recycled
  before the next wave
- every status write publishes a progress snapshot

Task-level errors are recorded on the task and never raised from run().
InvalidConfig, run-root StorageError and RunAborted are.
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Sequence

from browse.config import SiteDescriptor

from .errors import InvalidConfig, ResourceTimeout
from .progress import EMPTY_SNAPSHOT, ProgressPublisher, ProgressSnapshot, Subscriber, build_snapshot
from .registry import FAILED, CrawlTask, TaskRegistry, make_task_id
from .resource import ResourceGate
from .retry_policy import RetryPolicy, retry_operation, should_retry_error, validate_policy
from .run_dirs import artifact_path, create_entity_dir, create_run_dir, run_id_for, sanitize_name, write_artifact

if TYPE_CHECKING:
    from browse.automation import Automation


DEFAULT_CONCURRENCY = 2
DEFAULT_TASK_TIMEOUT_MS = 60000
DEFAULT_SCREENSHOTS_DIR = Path("screenshots")


@dataclass
class RunContext:
    """State owned by one run (or by retries replayed into it)."""
    run_id: str
    as_of: datetime
    root_dir: Path
    registry: TaskRegistry
    publisher: ProgressPublisher
    needs_recycle: bool = False
    # Stamped on screenshots; moves forward when failed tasks are retried.
    query_time: datetime | None = None


def describe_error(exc: BaseException) -> str:
    """Human-readable one-liner for a task's last_error."""
    message = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


def watermark_label(site_name: str, entity: str, as_of: datetime) -> str:
    return f"Site: {site_name} | Company: {entity} | Query time: {as_of.strftime('%Y-%m-%d %H:%M:%S')}"


def chunked(items: Sequence[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def coerce_sites(sites: Sequence[SiteDescriptor | dict[str, Any]]) -> list[SiteDescriptor]:
    coerced = []
    for site in sites:
        if isinstance(site, SiteDescriptor):
            coerced.append(site)
            continue
        try:
            coerced.append(SiteDescriptor.from_dict(site))
        except ValueError as exc:
            raise InvalidConfig(str(exc)) from exc
    return coerced


def clean_entities(entities: Sequence[str]) -> list[str]:
    cleaned = []
    for entity in entities:
        if not isinstance(entity, str) or not entity.strip():
            raise InvalidConfig(f"Entity names must be non-blank strings, got {entity!r}")
        cleaned.append(entity.strip())
    return cleaned


def build_tasks(run_id: str, entities: Sequence[str], sites: Sequence[SiteDescriptor]) -> list[CrawlTask]:
    """
    Full cross product, entity-major then site-minor.

    Pairs are compared by their on-disk names too: "Acme/Corp" and
    "Acme:Corp" would share one entity folder and one screenshot file.
    """
    tasks = []
    seen: dict[tuple[str, str], tuple[str, str]] = {}
    for entity in entities:
        for site in sites:
            key = (sanitize_name(entity), sanitize_name(site.name))
            if key in seen:
                raise InvalidConfig(
                    f"Entity/site pair {entity!r} on {site.name!r} collides with "
                    f"{seen[key][0]!r} on {seen[key][1]!r} (same artifact path)"
                )
            seen[key] = (entity, site.name)
            tasks.append(CrawlTask(id=make_task_id(run_id, entity, site.name), entity=entity, site=site))
    return tasks


class CrawlOrchestrator:
    """Bounded-concurrency lookup scheduler over one shared browser."""

    def __init__(
        self,
        automation: "Automation",
        *,
        screenshots_dir: Path = DEFAULT_SCREENSHOTS_DIR,
        concurrency: int = DEFAULT_CONCURRENCY,
        retry_policy: RetryPolicy | None = None,
        task_timeout_ms: int = DEFAULT_TASK_TIMEOUT_MS,
        should_retry: Callable[[BaseException], bool] = should_retry_error,
        subscriber: Subscriber | None = None,
        watermark: bool = True,
        verbose: bool = False,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        if concurrency < 1:
            raise InvalidConfig(f"concurrency must be >= 1, got {concurrency}")
        if task_timeout_ms <= 0:
            raise InvalidConfig(f"task_timeout_ms must be > 0, got {task_timeout_ms}")

        self.automation = automation
        self.screenshots_dir = Path(screenshots_dir)
        self.concurrency = concurrency
        self.retry_policy = validate_policy(retry_policy or RetryPolicy())
        self.task_timeout_ms = task_timeout_ms
        self.should_retry = should_retry
        self.subscriber = subscriber
        self.watermark = watermark
        self.verbose = verbose
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep
        self._gate = ResourceGate(automation)
        self._context: RunContext | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    @property
    def run_dir(self) -> Path | None:
        return self._context.root_dir if self._context else None

    @property
    def resource(self) -> ResourceGate:
        return self._gate

    def progress(self) -> ProgressSnapshot:
        if self._context is None:
            return EMPTY_SNAPSHOT
        return build_snapshot(self._context.registry, self._context.root_dir)

    async def run(
        self,
        entities: Sequence[str],
        sites: Sequence[SiteDescriptor | dict[str, Any]],
        as_of: datetime | None = None,
    ) -> Path:
        """
        Look up every entity on every site and return the run root.

        Raises:
            InvalidConfig: empty or malformed input
            RunAborted: browser could not be started or restarted
            StorageError: run root could not be created
        """
        if not entities:
            raise InvalidConfig("Entity list must not be empty")
        if not sites:
            raise InvalidConfig("Site list must not be empty")
        entity_names = clean_entities(entities)
        descriptors = coerce_sites(sites)
        as_of = as_of or self._clock()
        run_id = run_id_for(as_of)
        tasks = build_tasks(run_id, entity_names, descriptors)

        async with self._lock:
            await self._gate.acquire()
            try:
                root = create_run_dir(self.screenshots_dir, as_of)
                publisher = ProgressPublisher(self.subscriber, run_dir=root)
                registry = TaskRegistry(publisher)
                for task in tasks:
                    registry.add(task)
                ctx = RunContext(run_id=run_id, as_of=as_of, root_dir=root, registry=registry,
                                 publisher=publisher, query_time=as_of)
                self._context = ctx
                publisher.publish(registry)

                self._say(f"Run {run_id}: {len(tasks)} tasks "
                          f"({len(entity_names)} entities x {len(descriptors)} sites, concurrency={self.concurrency})")
                self._say(f"  [run] artifacts -> {root}")

                await self._run_waves(ctx, registry.ids())

                snapshot = self.progress()
                self._say(f"Done: {snapshot.completed}/{snapshot.total} succeeded, {snapshot.failed} failed")
                return root
            finally:
                await self._gate.release()

    async def retry_tasks(self, task_ids: Sequence[str]) -> None:
        """
        Re-queue and replay failed tasks of the current run.

        Ids that are unknown or not failed are ignored without any progress
        event. Eligible tasks run in waves of `concurrency` on a freshly
        acquired browser session that is released afterwards.
        """
        async with self._lock:
            ctx = self._context
            if ctx is None:
                return

            eligible = []
            for task_id in dict.fromkeys(task_ids):
                task = ctx.registry.get(task_id)
                if task is not None and task.status == FAILED:
                    eligible.append(task_id)
            if not eligible:
                return

            self._say(f"Retrying {len(eligible)} failed task(s)")
            # Tasks stay failed if the browser cannot be started.
            await self._gate.acquire()
            try:
                for task_id in eligible:
                    ctx.registry.reset_for_retry(task_id)
                ctx.needs_recycle = False
                ctx.query_time = self._clock()
                create_run_dir(self.screenshots_dir, ctx.as_of)
                await self._run_waves(ctx, eligible)
            finally:
                await self._gate.release()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def _run_waves(self, ctx: RunContext, task_ids: Sequence[str]) -> None:
        for index, wave in enumerate(chunked(task_ids, self.concurrency), start=1):
            if ctx.needs_recycle:
                self._say("  [resource] recycling browser after task timeout")
                await self._gate.recycle()
                ctx.needs_recycle = False
            self._say(f"  [wave {index}] {len(wave)} task(s)")
            await asyncio.gather(*(self._run_task(ctx, task_id) for task_id in wave))

    async def _run_task(self, ctx: RunContext, task_id: str) -> None:
        task = ctx.registry.get(task_id)
        timeout_s = self.task_timeout_ms / 1000.0
        # The deadline is judged by whether the cycle finished, not by the
        # exception type: a TimeoutError raised inside an attempt is an
        # ordinary task failure.
        cycle = asyncio.ensure_future(self._attempt_cycle(ctx, task))
        try:
            done, _ = await asyncio.wait({cycle}, timeout=timeout_s)
        except asyncio.CancelledError:
            cycle.cancel()
            raise

        if not done:
            cycle.cancel()
            await asyncio.wait({cycle})
            if not cycle.cancelled() and cycle.exception() is not None:
                self._say(f"  [timeout] {task_id} cleanup: {describe_error(cycle.exception())}")
            ctx.needs_recycle = True
            error = ResourceTimeout(f"Task timed out after {timeout_s:g}s: {task_id}")
            ctx.registry.mark_failed(task_id, describe_error(error))
            self._warn(f"  [timeout] {task_id}")
            return

        exc = cycle.exception()
        if exc is not None and not isinstance(exc, Exception):
            raise exc
        if exc is not None:
            ctx.registry.mark_failed(task_id, describe_error(exc))
            self._warn(f"  [failed] {task_id}: {describe_error(exc)}")
            return

        path = cycle.result()
        ctx.registry.mark_success(task_id, path)
        self._say(f"  [ok] {task_id} -> {path.name}")

    async def _attempt_cycle(self, ctx: RunContext, task: CrawlTask) -> Path:
        registry = ctx.registry

        def on_attempt(attempt: int) -> None:
            registry.begin_attempt(task.id, attempt)

        def on_retry(exc: Exception, attempt: int) -> None:
            registry.mark_retrying(task.id, describe_error(exc), attempt)
            self._say(f"  [retry] {task.id} attempt {attempt} failed: {describe_error(exc)}")

        return await retry_operation(
            lambda: self._search_and_capture(ctx, task),
            self.retry_policy,
            should_retry=self.should_retry,
            on_retry=on_retry,
            on_attempt=on_attempt,
            sleep=self._sleep,
        )

    async def _search_and_capture(self, ctx: RunContext, task: CrawlTask) -> Path:
        site = task.site
        automation = self.automation

        async with self._gate.page() as page:
            await automation.navigate(page, site.home_url)
            if site.needs_challenge:
                await automation.resolve_challenge(page)
            await automation.type_into_field(page, site.search_input_selector, task.entity)
            found = await automation.click_and_await_results(
                page,
                site.search_button_selector,
                site.results_selector,
                site.needs_navigation,
            )
            if not found:
                self._say(f"  [warn] results area {site.results_selector!r} not found for {task.id}")
            if self.watermark:
                label = watermark_label(site.name, task.entity, ctx.query_time or ctx.as_of)
                await automation.stamp(page, label)
            image = await automation.capture_full_page(page)

        entity_dir = create_entity_dir(ctx.root_dir, task.entity)
        return write_artifact(artifact_path(entity_dir, site.name, self._clock()), image)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _say(self, message: str) -> None:
        if self.verbose:
            print(message)

    def _warn(self, message: str) -> None:
        if self.verbose:
            print(message, file=sys.stderr)
