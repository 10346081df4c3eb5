"""Per-session wiring between Streamlit and the workspace."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

import streamlit as st

from taskfirst.backends import TaskBackend, get_backend
from taskfirst.backends.base import Unsubscribe
from taskfirst.config import get_config
from taskfirst.errors import TaskFirstError
from taskfirst.models import Project, Task
from taskfirst.seed import MOCK_PROJECTS, MOCK_USERS, initial_tasks
from taskfirst.workspace import FilterState, Workspace


logger = logging.getLogger(__name__)


class SnapshotHolder:
    """Latest task snapshot delivered by ``watch_tasks``.

    Watchers may call back from a poller thread, so the holder is the only
    thing they touch; pages read it on the next rerun. One holder is shared
    by every session on the same backend.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: Optional[List[Task]] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self.version = 0

    def attach(self, backend: TaskBackend) -> "SnapshotHolder":
        if self._unsubscribe is None:
            self._unsubscribe = backend.watch_tasks(self.update)
        return self

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def update(self, tasks: List[Task]) -> None:
        with self._lock:
            self._tasks = list(tasks)
            self.version += 1

    @property
    def tasks(self) -> Optional[List[Task]]:
        with self._lock:
            return None if self._tasks is None else list(self._tasks)


@st.cache_resource
def shared_backend() -> TaskBackend:
    cfg = get_config()
    backend = get_backend(cfg)
    if backend.name != "mock":
        backend.seed_initial_data(initial_tasks(), MOCK_PROJECTS)
    logger.info("Workspace backend: %s (configured=%s)", backend.name, backend.is_configured)
    return backend


@st.cache_resource
def live_snapshot() -> SnapshotHolder:
    """The single task subscription of this process."""
    return SnapshotHolder().attach(shared_backend())


def get_workspace() -> Workspace:
    cfg = get_config()
    if "workspace" not in st.session_state:
        st.session_state.workspace = Workspace(
            backend=shared_backend(),
            users=list(MOCK_USERS),
            current_user_id=cfg.current_user_id,
            role=cfg.default_role,
        )
    return st.session_state.workspace


def get_filter() -> FilterState:
    if "filter_state" not in st.session_state:
        st.session_state.filter_state = FilterState()
    return st.session_state.filter_state


def current_tasks() -> List[Task]:
    """Tasks from the live subscription, falling back to a direct fetch."""
    ws = get_workspace()
    try:
        tasks = live_snapshot().tasks
        return tasks if tasks is not None else ws.tasks()
    except TaskFirstError as e:
        logger.warning("Task load failed: %s", e)
        st.warning(f"Tasks could not be loaded: {e}")
        return []


def current_projects() -> List[Project]:
    try:
        return get_workspace().projects()
    except TaskFirstError as e:
        logger.warning("Project load failed: %s", e)
        st.warning(f"Projects could not be loaded: {e}")
        return []


def refresh_tasks() -> None:
    """Re-read the store into the shared snapshot."""
    try:
        live_snapshot().update(get_workspace().tasks())
    except TaskFirstError as e:
        st.toast(f"Refresh failed: {e}", icon="⚠️")
