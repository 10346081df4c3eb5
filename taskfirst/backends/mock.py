from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from taskfirst.backends.base import TaskBackend, new_id, utc_now_iso
from taskfirst.errors import ItemNotFoundError
from taskfirst.models import Project, Task
from taskfirst.seed import MOCK_PROJECTS, initial_tasks


class MockBackend(TaskBackend):
    """In-memory store used when no remote workspace is configured.

    Reads return deep copies so callers can never mutate the stored state.
    """

    name = "mock"

    def __init__(
        self,
        tasks: Optional[List[Task]] = None,
        projects: Optional[List[Project]] = None,
        *,
        seed: bool = True,
    ) -> None:
        super().__init__()
        if tasks is None and seed:
            tasks = initial_tasks()
        if projects is None and seed:
            projects = MOCK_PROJECTS
        self._tasks: Dict[str, Task] = {t.id: copy.deepcopy(t) for t in (tasks or [])}
        self._projects: Dict[str, Project] = {p.id: copy.deepcopy(p) for p in (projects or [])}

    def fetch_tasks(self) -> List[Task]:
        return [copy.deepcopy(t) for t in self._tasks.values()]

    def fetch_projects(self) -> List[Project]:
        return [copy.deepcopy(p) for p in self._projects.values()]

    def _insert_task(self, task: Task) -> Task:
        stored = copy.deepcopy(task)
        if not stored.id:
            stored.id = new_id()
        now = utc_now_iso()
        stored.created_at = stored.created_at or now
        stored.updated_at = now
        self._tasks[stored.id] = stored
        return copy.deepcopy(stored)

    def _patch_task(self, task_id: str, updates: Dict[str, Any]) -> None:
        current = self._tasks.get(task_id)
        if current is None:
            raise ItemNotFoundError(f"task {task_id} not found")
        updated = current.with_updates(updates)
        updated.updated_at = utc_now_iso()
        self._tasks[task_id] = copy.deepcopy(updated)

    def _put_task(self, task: Task) -> None:
        self._tasks[task.id] = copy.deepcopy(task)

    def _remove_task(self, task_id: str) -> None:
        self._tasks.pop(task_id, None)

    def _put_project(self, project: Project) -> None:
        self._projects[project.id] = copy.deepcopy(project)

    def _remove_project(self, project_id: str) -> None:
        self._projects.pop(project_id, None)
