"""
Tests for orchestrate/registry.py.
"""

from pathlib import Path

import pytest

from conftest import SnapshotRecorder, make_site
from orchestrate.errors import InvalidConfig, InvalidTransition
from orchestrate.progress import ProgressPublisher
from orchestrate.registry import (
    ALLOWED_TRANSITIONS,
    CrawlTask,
    TaskRegistry,
    make_task_id,
)


@pytest.fixture
def recorder():
    return SnapshotRecorder()


@pytest.fixture
def registry(recorder):
    reg = TaskRegistry(ProgressPublisher(recorder))
    site = make_site("SiteA")
    for entity in ("Acme", "Globex"):
        reg.add(CrawlTask(id=make_task_id("run_1", entity, site.name), entity=entity, site=site))
    return reg


ACME = "run_1:Acme-SiteA"
GLOBEX = "run_1:Globex-SiteA"


class TestPopulation:

    def test_make_task_id(self):
        assert make_task_id("run_2026", "Acme Corp", "SiteA") == "run_2026:Acme Corp-SiteA"

    def test_insertion_order(self, registry):
        assert registry.ids() == [ACME, GLOBEX]
        assert len(registry) == 2
        assert ACME in registry

    def test_add_does_not_publish(self, registry, recorder):
        assert recorder.snapshots == []

    def test_duplicate_id_rejected(self, registry):
        site = make_site("SiteA")
        with pytest.raises(InvalidConfig):
            registry.add(CrawlTask(id=ACME, entity="Acme", site=site))

    def test_new_task_defaults(self, registry):
        task = registry.get(ACME)
        assert task.status == "pending"
        assert task.attempts == 0
        assert task.last_error is None
        assert task.artifact_path is None
        assert not task.is_terminal


class TestTransitions:

    def test_happy_path(self, registry, recorder):
        registry.begin_attempt(ACME, 1)
        registry.mark_success(ACME, Path("/tmp/a.png"))

        task = registry.get(ACME)
        assert task.status == "success"
        assert task.attempts == 1
        assert task.artifact_path == Path("/tmp/a.png")
        assert task.is_terminal
        assert len(recorder.snapshots) == 2

    def test_retry_path_records_error(self, registry):
        registry.begin_attempt(ACME, 1)
        registry.mark_retrying(ACME, "NavigationError: reset", 1)
        assert registry.get(ACME).status == "retrying"
        assert registry.get(ACME).last_error == "NavigationError: reset"

        registry.begin_attempt(ACME, 2)
        registry.mark_success(ACME, Path("/tmp/a.png"))
        assert registry.get(ACME).last_error is None
        assert registry.get(ACME).attempts == 2

    def test_failed_keeps_error(self, registry):
        registry.begin_attempt(ACME, 1)
        registry.mark_failed(ACME, "FieldError: gone")
        assert registry.get(ACME).status == "failed"
        assert registry.get(ACME).last_error == "FieldError: gone"

    def test_pending_can_fail_directly(self, registry):
        registry.mark_failed(ACME, "ResourceTimeout: late")
        assert registry.get(ACME).status == "failed"

    def test_success_is_final(self, registry):
        registry.begin_attempt(ACME, 1)
        registry.mark_success(ACME, Path("/tmp/a.png"))
        with pytest.raises(InvalidTransition):
            registry.mark_failed(ACME, "late")
        with pytest.raises(InvalidTransition):
            registry.begin_attempt(ACME, 2)

    def test_pending_cannot_succeed(self, registry):
        with pytest.raises(InvalidTransition):
            registry.mark_success(ACME, Path("/tmp/a.png"))

    def test_invalid_transition_does_not_publish(self, registry, recorder):
        with pytest.raises(InvalidTransition):
            registry.mark_retrying(ACME, "x", 1)
        assert recorder.snapshots == []
        assert registry.get(ACME).status == "pending"

    def test_unknown_id(self, registry):
        with pytest.raises(KeyError):
            registry.begin_attempt("run_1:Nobody-SiteA", 1)

    def test_writes_are_independent(self, registry):
        registry.begin_attempt(ACME, 1)
        assert registry.get(GLOBEX).status == "pending"

    def test_transition_table_has_no_exit_from_success(self):
        assert ALLOWED_TRANSITIONS["success"] == frozenset()


class TestResetForRetry:

    def test_failed_resets_to_pending(self, registry, recorder):
        registry.begin_attempt(ACME, 1)
        registry.mark_failed(ACME, "FieldError: gone")
        published = len(recorder.snapshots)

        assert registry.reset_for_retry(ACME) is True
        task = registry.get(ACME)
        assert task.status == "pending"
        assert task.attempts == 0
        assert task.last_error is None
        assert len(recorder.snapshots) == published + 1

    def test_non_failed_is_noop(self, registry, recorder):
        registry.begin_attempt(ACME, 1)
        registry.mark_success(ACME, Path("/tmp/a.png"))
        before = registry.tasks()
        published = len(recorder.snapshots)

        assert registry.reset_for_retry(ACME) is False
        assert registry.reset_for_retry(GLOBEX) is False
        assert registry.tasks() == before
        assert len(recorder.snapshots) == published

    def test_unknown_is_noop(self, registry, recorder):
        assert registry.reset_for_retry("missing") is False
        assert recorder.snapshots == []

    def test_count(self, registry):
        registry.begin_attempt(ACME, 1)
        registry.mark_failed(ACME, "x")
        assert registry.count("failed") == 1
        assert registry.count("pending") == 1
