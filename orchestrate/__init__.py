"""
Orchestration for bulk entity lookups across search sites.

    from browse import PlaywrightAutomation
    from orchestrate import CrawlOrchestrator, load_sites_file

    orchestrator = CrawlOrchestrator(PlaywrightAutomation(), concurrency=2)
    run_dir = await orchestrator.run(["Acme Corp"], load_sites_file("profiles/sites.yaml"))
    failed = [t.id for t in orchestrator.progress().tasks if t.status == "failed"]
    await orchestrator.retry_tasks(failed)
"""

from .config import (
    LookupConfig,
    build_lookup_config,
    config_from_args,
    apply_run_config,
    load_run_config,
    load_entities_file,
    load_sites_file,
    parse_sites,
    select_sites,
    PROJECT_ROOT,
    DEFAULT_CONFIG_FILE,
    SITES_FILE,
    SCREENSHOTS_DIR,
    LOG_DIR,
)
from .errors import (
    LookupCrawlerError,
    InvalidConfig,
    StorageError,
    ResourceTimeout,
    RunAborted,
    InvalidTransition,
)
from .orchestrator import CrawlOrchestrator, RunContext, build_tasks, describe_error
from .progress import ProgressPublisher, ProgressSnapshot, SnapshotStream, build_snapshot
from .registry import CrawlTask, TaskRegistry, make_task_id
from .resource import ResourceGate
from .retry_policy import RetryPolicy, compute_backoff_delay, retry_operation, should_retry_error
from .run_dirs import create_entity_dir, create_run_dir, sanitize_name, format_timestamp

__all__ = [
    "LookupConfig",
    "build_lookup_config",
    "config_from_args",
    "apply_run_config",
    "load_run_config",
    "load_entities_file",
    "load_sites_file",
    "parse_sites",
    "select_sites",
    "PROJECT_ROOT",
    "DEFAULT_CONFIG_FILE",
    "SITES_FILE",
    "SCREENSHOTS_DIR",
    "LOG_DIR",
    "LookupCrawlerError",
    "InvalidConfig",
    "StorageError",
    "ResourceTimeout",
    "RunAborted",
    "InvalidTransition",
    "CrawlOrchestrator",
    "RunContext",
    "build_tasks",
    "describe_error",
    "ProgressPublisher",
    "ProgressSnapshot",
    "SnapshotStream",
    "build_snapshot",
    "CrawlTask",
    "TaskRegistry",
    "make_task_id",
    "ResourceGate",
    "RetryPolicy",
    "compute_backoff_delay",
    "retry_operation",
    "should_retry_error",
    "create_entity_dir",
    "create_run_dir",
    "sanitize_name",
    "format_timestamp",
]
