"""Tests for the progress registry."""
import pytest

from conftest import make_task
from driveup.models import TaskStatus
from driveup.orchestrator.registry import ProgressRegistry


@pytest.fixture
def task():
    return make_task("report.pdf", 200)


class TestProgressRegistry:
    def test_add_starts_queued_at_zero(self, registry, task):
        entry = registry.add(task)
        assert entry.status == TaskStatus.QUEUED
        assert entry.percent == 0.0
        assert entry.filename == "report.pdf"
        assert entry.label == "queued"

    def test_update_requires_uploading(self, registry, task):
        registry.add(task)
        assert registry.update(task.id, 50, 200) is None
        assert registry.get(task.id).percent == 0.0

    def test_update_computes_percent(self, registry, task):
        registry.add(task)
        registry.start(task.id)
        entry = registry.update(task.id, 50, 200)
        assert entry.percent == 25.0
        assert entry.label == "uploading (25%)"

    def test_regressive_update_is_ignored(self, registry, task):
        registry.add(task)
        registry.start(task.id)
        registry.update(task.id, 150, 200)
        assert registry.update(task.id, 100, 200) is None
        assert registry.get(task.id).percent == 75.0

    def test_percent_is_clamped(self, registry, task):
        registry.add(task)
        registry.start(task.id)
        assert registry.update(task.id, 500, 200).percent == 100.0

    def test_zero_total_is_ignored(self, registry, task):
        registry.add(task)
        registry.start(task.id)
        assert registry.update(task.id, 0, 0) is None

    def test_settle_completed_keeps_full_bar(self, registry, task):
        registry.add(task)
        registry.start(task.id)
        entry = registry.settle(task.id, TaskStatus.COMPLETED)
        assert entry.percent == 100.0
        assert entry.label == "done"

    @pytest.mark.parametrize("status", [TaskStatus.FAILED, TaskStatus.CANCELLED])
    def test_settle_failure_removes_entry(self, registry, task, status):
        registry.add(task)
        registry.start(task.id)
        registry.update(task.id, 120, 200)
        assert registry.settle(task.id, status) is None
        assert task.id not in registry
        assert len(registry.snapshot()) == 0

    def test_settle_rejects_non_terminal(self, registry, task):
        registry.add(task)
        with pytest.raises(ValueError):
            registry.settle(task.id, TaskStatus.UPLOADING)

    def test_prune_only_removes_settled(self, registry):
        done, waiting = make_task("a.txt"), make_task("b.txt")
        registry.add(done)
        registry.add(waiting)
        registry.start(done.id)
        registry.settle(done.id, TaskStatus.COMPLETED)

        registry.prune([done.id, waiting.id, "temp-unknown"])

        assert done.id not in registry
        assert waiting.id in registry

    def test_snapshot_is_read_only_copy(self, registry, task):
        registry.add(task)
        snapshot = registry.snapshot()
        with pytest.raises(TypeError):
            snapshot[task.id] = None
        registry.remove(task.id)
        assert task.id in snapshot
        assert len(registry) == 0

    def test_unknown_task_raises(self):
        registry = ProgressRegistry()
        with pytest.raises(KeyError):
            registry.start("temp-missing")
