#!/usr/bin/env python3
"""
Bulk entity lookup with full-page screenshots.

For every entity x site pair:
- open the site's home page in a fresh browser page
- type the entity into the search box and submit
- wait for the results area, stamp a watermark, capture the full page
- write screenshots/run_<ts>/<entity>/<site>_<ts>.png

Then write run.json and append to logs/executions.jsonl.
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

from tqdm import tqdm

# Add parent dir to path for browse/orchestrate modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from browse import PlaywrightAutomation
from orchestrate.config import (
    DEFAULT_CONFIG_FILE,
    LOG_DIR,
    SITES_FILE,
    apply_run_config,
    config_from_args,
    load_entities_file,
    load_run_config,
    load_sites_file,
    parse_sites,
    select_sites,
)
from orchestrate.errors import InvalidConfig, RunAborted, StorageError
from orchestrate.orchestrator import CrawlOrchestrator
from orchestrate.presenter import (
    STATUS_FILE,
    append_execution_log,
    build_execution_log_entry,
    build_run_summary,
    write_run_json,
    write_status_file,
)
from orchestrate.progress import ProgressSnapshot


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Look up entities on search sites and capture result pages")
    parser.add_argument("--entities", help="Comma-separated entity names")
    parser.add_argument("--entities-file", help="Path to txt/JSON/YAML entity list")
    parser.add_argument("--sites-file", help="Path to JSON/YAML site descriptors (default: profiles/sites.yaml)")
    parser.add_argument("--site", help="Only use these sites (comma-separated names)")
    parser.add_argument("--concurrency", "-j", type=int,
                        help="Tasks per wave (default: 2)")
    parser.add_argument("--max-attempts", type=int, help="Attempts per task (default: 3)")
    parser.add_argument("--initial-delay-ms", type=int, help="First retry delay in ms (default: 2000)")
    parser.add_argument("--max-delay-ms", type=int, help="Retry delay cap in ms (default: 10000)")
    parser.add_argument("--task-timeout-ms", type=int,
                        help="Deadline for a task's whole attempt cycle in ms (default: 60000)")
    parser.add_argument("--screenshots-dir", help="Base directory for run folders")
    parser.add_argument("--no-headless", action="store_true", help="Run browser visibly")
    parser.add_argument("--stealth", action="store_true", help="Use playwright-stealth for anti-bot evasion")
    parser.add_argument("--no-watermark", action="store_true", help="Skip the watermark overlay")
    parser.add_argument("--as-of", help="Run timestamp (ISO 8601, default: now)")
    parser.add_argument("--run-config", help="Path to JSON/YAML run config (overrides defaults)")
    parser.add_argument("--progress", action="store_true",
                        help="Show a progress bar instead of verbose output")
    parser.add_argument("--quiet", action="store_true", help="Suppress per-task output")
    parser.add_argument("--retry-failed", action="store_true",
                        help="Replay failed tasks once after the run")
    return parser


def provided_flags_from_argv(argv: list[str]) -> set[str]:
    """Flags the user actually typed, as argparse dest names."""
    flags = {a.split("=", 1)[0].lstrip("-").replace("-", "_") for a in argv if a.startswith("--")}
    if "-j" in argv:
        flags.add("concurrency")
    return flags


def parse_as_of(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except ValueError as exc:
        raise InvalidConfig(f"--as-of must be an ISO 8601 timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def resolve_entities(args: argparse.Namespace, cfg: dict) -> list[str]:
    if args.entities:
        return [e.strip() for e in str(args.entities).split(",") if e.strip()]
    if args.entities_file:
        return load_entities_file(args.entities_file)
    configured = cfg.get("entities") or cfg.get("companies")
    if isinstance(configured, list):
        return [str(e).strip() for e in configured if str(e).strip()]
    return []


def resolve_sites(args: argparse.Namespace, cfg: dict):
    if args.sites_file:
        sites = load_sites_file(args.sites_file)
    elif isinstance(cfg.get("sites"), list):
        sites = parse_sites(cfg["sites"])
    else:
        sites = load_sites_file(SITES_FILE)
    names = [n.strip() for n in args.site.split(",")] if args.site else None
    return select_sites(sites, names)


class ProgressReporter:
    """Subscriber driving the tqdm bar and the live status file."""

    def __init__(self, status_file: Path | None, use_bar: bool):
        self.status_file = status_file
        self.use_bar = use_bar
        self.pbar = None
        self.latest: ProgressSnapshot | None = None

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        self.latest = snapshot
        if self.use_bar:
            if self.pbar is None or self.pbar.total != snapshot.total:
                if self.pbar is not None:
                    self.pbar.close()
                self.pbar = tqdm(total=snapshot.total, desc="Lookups", unit="task")
            done = snapshot.completed + snapshot.failed
            if done > self.pbar.n:
                self.pbar.update(done - self.pbar.n)
            current = snapshot.current_task
            self.pbar.set_postfix_str(f"ok={snapshot.completed} failed={snapshot.failed}"
                                      + (f" {current.entity}@{current.site.name}" if current else ""))
        if self.status_file is not None:
            try:
                write_status_file(snapshot, self.status_file)
            except OSError as exc:
                print(f"  [status] could not write {self.status_file}: {exc}", file=sys.stderr)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None


async def run_lookup(orchestrator: CrawlOrchestrator, entities, sites, as_of, retry_failed: bool) -> Path:
    run_dir = await orchestrator.run(entities, sites, as_of=as_of)
    if retry_failed:
        failed_ids = [t.id for t in orchestrator.progress().tasks if t.status == "failed"]
        if failed_ids:
            await orchestrator.retry_tasks(failed_ids)
    return run_dir


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    args = parser.parse_args(argv)

    # Apply run config (unless overridden via CLI)
    provided_flags = provided_flags_from_argv(argv)
    try:
        cfg = {}
        if DEFAULT_CONFIG_FILE.exists():
            cfg = load_run_config(DEFAULT_CONFIG_FILE)
        if args.run_config:
            cfg.update(load_run_config(args.run_config))
        args = apply_run_config(args, cfg, provided_flags)
        if args.no_watermark:
            cfg["watermark"] = False
        config = config_from_args(args, cfg, provided_flags)
        if args.progress:
            config.verbose = False

        entities = resolve_entities(args, cfg)
        sites = resolve_sites(args, cfg)
        as_of = parse_as_of(args.as_of)
    except (InvalidConfig, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if not entities:
        print("No entities given (use --entities or --entities-file)", file=sys.stderr)
        return 2
    if not sites:
        print("No sites matched filters", file=sys.stderr)
        return 2

    challenged = [s.name for s in sites if s.needs_challenge]
    if challenged and config.headless:
        print(f"  [warn] {', '.join(challenged)} may show a challenge that needs a visible "
              f"browser; rerun with --no-headless to solve it by hand", file=sys.stderr)

    reporter = ProgressReporter(Path(config.screenshots_dir) / STATUS_FILE, use_bar=args.progress)
    orchestrator = CrawlOrchestrator(
        PlaywrightAutomation(config.browser_options()),
        subscriber=reporter,
        **config.orchestrator_kwargs(),
    )

    if not args.progress:
        print(f"Looking up {len(entities)} entities on {len(sites)} sites "
              f"(concurrency={config.concurrency}, attempts={config.max_attempts})...")

    started = datetime.now(timezone.utc)
    try:
        run_dir = asyncio.run(run_lookup(orchestrator, entities, sites, as_of, args.retry_failed))
    except InvalidConfig as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except (RunAborted, StorageError) as exc:
        print(f"Run aborted: {exc}", file=sys.stderr)
        return 1
    finally:
        reporter.close()

    snapshot = orchestrator.progress()
    summary = build_run_summary(snapshot, started, as_of=as_of or started)
    summary_path = write_run_json(summary, run_dir)

    print(f"\n{'='*60}")
    print(f"Completed: {snapshot.completed}/{snapshot.total} lookups")
    print(f"Failed: {snapshot.failed}")
    for task in snapshot.tasks:
        if task.status == "failed":
            print(f"  [failed] {task.entity} @ {task.site.name}: {task.last_error}")
    print(f"Screenshots: {run_dir} ({summary['stats']['screenshots_on_disk']} files)")
    print(f"Summary: {summary_path}")

    try:
        entry = build_execution_log_entry(
            summary,
            command=" ".join(["lookup.py", *argv]),
            config={
                "concurrency": config.concurrency,
                "max_attempts": config.max_attempts,
                "task_timeout_ms": config.task_timeout_ms,
                "headless": config.headless,
                "stealth": config.stealth,
                "watermark": config.watermark,
                "retry_failed": bool(args.retry_failed),
            },
        )
        log_file = append_execution_log(entry, LOG_DIR)
        print(f"Execution logged to: {log_file}")
    except OSError as exc:
        print(f"Warning: Could not write execution log: {exc}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
