"""
Tests for orchestrate/presenter.py.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from conftest import FIXED_AS_OF, make_site
from orchestrate.presenter import (
    append_execution_log,
    build_execution_log_entry,
    build_run_summary,
    summarize_failures,
    write_run_json,
    write_status_file,
)
from orchestrate.progress import build_snapshot
from orchestrate.registry import CrawlTask, TaskRegistry


def finished_snapshot(run_dir=Path("/tmp/run")):
    registry = TaskRegistry()
    sites = [make_site("SiteA"), make_site("SiteB")]
    for entity in ("Acme", "Globex"):
        for site in sites:
            registry.add(CrawlTask(id=f"run_1:{entity}-{site.name}", entity=entity, site=site))

    registry.begin_attempt("run_1:Acme-SiteA", 1)
    registry.mark_success("run_1:Acme-SiteA", Path("/tmp/run/Acme/SiteA.png"))
    registry.begin_attempt("run_1:Acme-SiteB", 1)
    registry.mark_failed("run_1:Acme-SiteB", "FieldError: value never matched")
    registry.begin_attempt("run_1:Globex-SiteA", 3)
    registry.mark_failed("run_1:Globex-SiteA", "ResourceTimeout: Task timed out after 60s")
    registry.begin_attempt("run_1:Globex-SiteB", 2)
    registry.mark_failed("run_1:Globex-SiteB", "FieldError: gone")
    return build_snapshot(registry, run_dir)


class TestRunSummary:

    def test_failure_kinds(self):
        assert summarize_failures(finished_snapshot()) == {"FieldError": 2, "ResourceTimeout": 1}

    def test_summary_fields(self):
        started = FIXED_AS_OF
        finished = started + timedelta(seconds=42)
        summary = build_run_summary(finished_snapshot(), started, finished, as_of=FIXED_AS_OF)

        assert summary["run_dir"] == "/tmp/run"
        assert summary["duration_sec"] == 42.0
        assert summary["entities"] == ["Acme", "Globex"]
        assert summary["sites"] == ["SiteA", "SiteB"]
        assert summary["stats"]["total"] == 4
        assert summary["stats"]["completed"] == 1
        assert summary["stats"]["failed"] == 3
        assert summary["stats"]["total_attempts"] == 7
        assert summary["tasks"][0]["screenshot"] == "/tmp/run/Acme/SiteA.png"
        assert summary["tasks"][1]["screenshot"] is None

    def test_write_run_json(self, tmp_path):
        summary = build_run_summary(finished_snapshot(tmp_path), FIXED_AS_OF)
        path = write_run_json(summary, tmp_path)
        assert path == tmp_path / "run.json"
        assert json.loads(path.read_text(encoding="utf-8"))["stats"]["failed"] == 3


class TestStatusFile:

    def test_overwrites_with_latest(self, tmp_path):
        path = tmp_path / "status" / "lookup_status.json"
        write_status_file(finished_snapshot(), path)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["total"] == 4
        assert data["failed"] == 3
        assert "updated" in data


class TestExecutionLog:

    def test_entry_and_append(self, tmp_path):
        summary = build_run_summary(finished_snapshot(), FIXED_AS_OF, datetime.now(timezone.utc))
        entry = build_execution_log_entry(summary, "lookup.py --entities Acme", {"concurrency": 2})
        assert entry["results"]["tasks_total"] == 4
        assert entry["results"]["failure_kinds"] == {"FieldError": 2, "ResourceTimeout": 1}
        assert entry["config"] == {"concurrency": 2}

        log_file = append_execution_log(entry, tmp_path / "logs")
        append_execution_log(entry, tmp_path / "logs")
        lines = log_file.read_text(encoding="utf-8").strip().split("\n")
        assert len(lines) == 2
        assert json.loads(lines[0])["command"] == "lookup.py --entities Acme"


class TestScreenshotsOnDisk:

    def test_counts_files_under_run_dir(self, tmp_path):
        (tmp_path / "Acme").mkdir()
        (tmp_path / "Acme" / "SiteA_2026-03-14T09-30-00.png").write_bytes(b"png")
        (tmp_path / "Globex").mkdir()
        (tmp_path / "Globex" / "SiteB_2026-03-14T09-31-00.png").write_bytes(b"png")
        (tmp_path / "run.json").write_text("{}", encoding="utf-8")

        summary = build_run_summary(finished_snapshot(tmp_path), FIXED_AS_OF)
        assert summary["stats"]["screenshots_on_disk"] == 2
        # only one task is marked success in the registry
        assert summary["stats"]["completed"] == 1

    def test_missing_run_dir(self, tmp_path):
        summary = build_run_summary(finished_snapshot(tmp_path / "gone"), FIXED_AS_OF)
        assert summary["stats"]["screenshots_on_disk"] == 0
