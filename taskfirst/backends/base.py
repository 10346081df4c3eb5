from __future__ import annotations

import itertools
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from threading import Event, Thread
from typing import Any, Callable, Dict, List, Optional

from taskfirst.models import Project, Task


logger = logging.getLogger(__name__)

TaskListener = Callable[[List[Task]], None]
Unsubscribe = Callable[[], None]


def utc_now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="milliseconds") + "Z"


def new_id() -> str:
    return str(uuid.uuid4())


class SnapshotPoller:
    """Background loop that re-fetches tasks and reports changed snapshots.

    Remote stores have no push channel here, so watching means polling.
    The first snapshot is delivered immediately; later ones only when the
    serialised content differs from the previous delivery.
    """

    def __init__(self, fetch: Callable[[], List[Task]], callback: TaskListener, interval_seconds: float):
        self._fetch = fetch
        self._callback = callback
        self._interval = max(0.1, float(interval_seconds))
        self._stop = Event()
        self._thread: Optional[Thread] = None
        self._last: Optional[List[Dict[str, Any]]] = None
        # Polls are serialised: a fetch taken before a write is never delivered after it.
        self._poll_lock = threading.Lock()

    def poll_once(self) -> bool:
        """Fetch once; return True when a snapshot was delivered."""
        with self._poll_lock:
            if self._stop.is_set():
                return False
            try:
                tasks = self._fetch()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Task snapshot poll failed: %s", exc)
                return False
            fingerprint = [t.to_dict() for t in tasks]
            if fingerprint == self._last:
                return False
            self._last = fingerprint
            self._callback(tasks)
            return True

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.poll_once()
            self._stop.wait(self._interval)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = Thread(target=self._loop, name="taskfirst-snapshot-poller", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()


class TaskBackend(ABC):
    """Storage capability consumed by the workspace and the dashboards.

    Subclasses implement the raw reads and writes; listener bookkeeping,
    upserts and seeding live here.
    """

    name = "base"
    # Remote stores set this to poll for changes made by other clients.
    poll_seconds: Optional[float] = None

    def __init__(self) -> None:
        self._listeners: Dict[int, TaskListener] = {}
        self._pollers: Dict[int, SnapshotPoller] = {}
        self._tokens = itertools.count(1)
        self._lock = threading.Lock()
        self._deliver_lock = threading.Lock()

    @property
    def is_configured(self) -> bool:
        return True

    # ---- reads -------------------------------------------------------------
    @abstractmethod
    def fetch_tasks(self) -> List[Task]:
        ...

    @abstractmethod
    def fetch_projects(self) -> List[Project]:
        ...

    # ---- writes ------------------------------------------------------------
    @abstractmethod
    def _insert_task(self, task: Task) -> Task:
        """Store a new task and return it with its final id."""

    @abstractmethod
    def _patch_task(self, task_id: str, updates: Dict[str, Any]) -> None:
        """Apply a partial update (snake_case field names)."""

    @abstractmethod
    def _put_task(self, task: Task) -> None:
        """Create or fully replace the task with ``task.id``."""

    @abstractmethod
    def _remove_task(self, task_id: str) -> None:
        ...

    @abstractmethod
    def _put_project(self, project: Project) -> None:
        ...

    @abstractmethod
    def _remove_project(self, project_id: str) -> None:
        ...

    def add_task(self, task: Task) -> Task:
        stored = self._insert_task(task)
        self._notify()
        return stored

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> None:
        self._patch_task(task_id, updates)
        self._notify()

    def save_task(self, task: Task) -> None:
        self._put_task(task)
        self._notify()

    def delete_task(self, task_id: str) -> None:
        self._remove_task(task_id)
        self._notify()

    def add_project(self, name: str) -> Project:
        project = Project(id=new_id(), name=name)
        self._put_project(project)
        return project

    def save_project(self, project: Project) -> None:
        """Create or rename the project with ``project.id``."""
        self._put_project(project)

    def delete_project(self, project_id: str) -> None:
        self._remove_project(project_id)

    def seed_initial_data(self, tasks: List[Task], projects: List[Project]) -> bool:
        """Write demo data only when both collections are empty."""
        try:
            if self.fetch_tasks() or self.fetch_projects():
                return False
            logger.info("Seeding %s with %d projects and %d tasks", self.name, len(projects), len(tasks))
            for project in projects:
                self._put_project(project)
            for task in tasks:
                self._put_task(task)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Initial data seed skipped for %s: %s", self.name, exc)
            return False
        self._notify()
        return True

    # ---- watching ----------------------------------------------------------
    @property
    def watcher_count(self) -> int:
        with self._lock:
            return len(self._listeners) + len(self._pollers)

    def watch_tasks(self, callback: TaskListener) -> Unsubscribe:
        """Deliver the current snapshot now and every later one; return an unsubscribe."""
        token = next(self._tokens)

        def _unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(token, None)
                poller_ = self._pollers.pop(token, None)
            if poller_ is not None:
                poller_.stop()

        if self.poll_seconds:
            poller = SnapshotPoller(self.fetch_tasks, callback, self.poll_seconds)
            with self._lock:
                self._pollers[token] = poller
            poller.poll_once()
            poller.start()
            return _unsubscribe

        with self._lock:
            self._listeners[token] = callback
        try:
            callback(self.fetch_tasks())
        except Exception:
            _unsubscribe()
            raise
        return _unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
            pollers = list(self._pollers.values())
        if not listeners and not pollers:
            return
        if listeners:
            with self._deliver_lock:
                snapshot = self.fetch_tasks()
                for listener in listeners:
                    listener(snapshot)
        for poller in pollers:
            poller.poll_once()
