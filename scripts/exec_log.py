#!/usr/bin/env python3
"""
View and query lookup execution logs.

Usage:
    python scripts/exec_log.py                  # Show last 5 runs
    python scripts/exec_log.py --last 10        # Show last 10 runs
    python scripts/exec_log.py --today          # Today's runs only
    python scripts/exec_log.py --failures       # Runs with failed lookups
    python scripts/exec_log.py --full           # Full JSON output
    python scripts/exec_log.py --stats          # Aggregate statistics
"""

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from orchestrate.config import LOG_DIR
from orchestrate.presenter import EXECUTION_LOG_FILE

LOG_FILE = LOG_DIR / EXECUTION_LOG_FILE


def load_logs(log_file: Path = LOG_FILE) -> list[dict]:
    """Load all execution logs, skipping unparseable lines."""
    if not log_file.exists():
        return []
    logs = []
    for line in log_file.read_text(encoding="utf-8").strip().split('\n'):
        if line:
            try:
                logs.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return logs


def format_duration(sec):
    if sec < 60:
        return f"{sec:.0f}s"
    elif sec < 3600:
        return f"{sec/60:.1f}m"
    else:
        return f"{sec/3600:.1f}h"


def format_entry(entry, full=False):
    """Format a single log entry for display."""
    if full:
        return json.dumps(entry, indent=2, ensure_ascii=False)

    ts = entry.get('timestamp', '')[:19].replace('T', ' ')
    dur = format_duration(entry.get('duration_sec', 0))
    cfg = entry.get('config', {})
    res = entry.get('results', {})

    entities = entry.get('entities', [])
    sites = entry.get('sites', [])
    target = f"{len(entities)} entities x {len(sites)} sites"

    kinds = res.get('failure_kinds', {})
    kinds_str = ', '.join(f"{k}:{v}" for k, v in kinds.items()) if kinds else '-'

    lines = [
        f"[{ts}] {target} (concurrency={cfg.get('concurrency', '-')})",
        f"  {res.get('tasks_completed', 0)}/{res.get('tasks_total', 0)} lookups, "
        f"{res.get('total_attempts', 0)} attempts in {dur}",
        f"  run: {entry.get('run_dir') or '-'}",
    ]

    if res.get('tasks_failed', 0) > 0:
        lines.append(f"  FAILED: {res['tasks_failed']} lookups ({kinds_str})")

    return '\n'.join(lines)


def aggregate(logs: list[dict]) -> dict:
    kinds: dict[str, int] = {}
    for entry in logs:
        for kind, count in entry.get('results', {}).get('failure_kinds', {}).items():
            kinds[kind] = kinds.get(kind, 0) + count
    return {
        "runs": len(logs),
        "completed": sum(l.get('results', {}).get('tasks_completed', 0) for l in logs),
        "failed": sum(l.get('results', {}).get('tasks_failed', 0) for l in logs),
        "attempts": sum(l.get('results', {}).get('total_attempts', 0) for l in logs),
        "duration_sec": sum(l.get('duration_sec', 0) for l in logs),
        "failure_kinds": kinds,
    }


def main():
    parser = argparse.ArgumentParser(description='View lookup execution logs')
    parser.add_argument('--last', type=int, default=5, help='Show last N runs')
    parser.add_argument('--today', action='store_true', help='Today only')
    parser.add_argument('--failures', action='store_true', help='Runs with failures only')
    parser.add_argument('--full', action='store_true', help='Full JSON output')
    parser.add_argument('--stats', action='store_true', help='Aggregate statistics')
    args = parser.parse_args()

    logs = load_logs()

    if not logs:
        print("No execution logs found.")
        print("Run a lookup first: python scripts/lookup.py --entities 'Acme Corp'")
        return

    if args.today:
        today = datetime.now(timezone.utc).date().isoformat()
        logs = [l for l in logs if l.get('timestamp', '').startswith(today)]

    if args.failures:
        logs = [l for l in logs if l.get('results', {}).get('tasks_failed', 0) > 0]

    if args.stats:
        stats = aggregate(logs)
        print("=== Execution Log Statistics ===")
        print(f"Total runs:      {stats['runs']}")
        print(f"Total lookups:   {stats['completed']} ({stats['failed']} failed)")
        print(f"Total attempts:  {stats['attempts']}")
        print(f"Total time:      {format_duration(stats['duration_sec'])}")
        print(f"Failure kinds:   {stats['failure_kinds']}")

        if logs:
            first = logs[0].get('timestamp', '')[:10]
            last = logs[-1].get('timestamp', '')[:10]
            print(f"Date range:      {first} to {last}")
        return

    logs = logs[-args.last:]

    if not logs:
        print("No matching logs found.")
        return

    print(f"=== Last {len(logs)} Execution(s) ===\n")
    for entry in logs:
        print(format_entry(entry, full=args.full))
        print()


if __name__ == '__main__':
    main()
