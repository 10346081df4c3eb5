"""Tests for the shared task subscription behind the pages."""

import pytest

from helpers import make_task
from taskfirst import state
from taskfirst.backends import MockBackend
from taskfirst.state import SnapshotHolder


class TestSnapshotHolder:
    """Tests for SnapshotHolder."""

    def test_attach_subscribes_once(self):
        """Attaching twice keeps one subscription; close releases it."""
        backend = MockBackend()
        holder = SnapshotHolder().attach(backend).attach(backend)
        assert backend.watcher_count == 1
        assert {t.id for t in holder.tasks} == {"t1", "t2"}
        version = holder.version
        backend.add_task(make_task("t3"))
        assert holder.version == version + 1
        assert "t3" in {t.id for t in holder.tasks}
        holder.close()
        assert backend.watcher_count == 0

    def test_tasks_before_first_delivery(self):
        """A detached holder has no snapshot yet."""
        assert SnapshotHolder().tasks is None


class TestLiveSnapshot:
    """Tests for the process-wide subscription."""

    @pytest.fixture
    def backend(self, monkeypatch):
        backend = MockBackend()
        monkeypatch.setattr(state, "shared_backend", lambda: backend)
        state.live_snapshot.clear()
        yield backend
        state.live_snapshot().close()
        state.live_snapshot.clear()

    def test_sessions_share_one_watcher(self, backend):
        """Many readers reuse the same holder and a single watcher."""
        holders = {id(state.live_snapshot()) for _ in range(50)}
        assert len(holders) == 1
        assert backend.watcher_count == 1
