"""Editing surface of the spreadsheet view.

Everything a click in the workspace can do, without any Streamlit in it:
adding tasks and subtasks, editing cells under the manager/member rules,
the handoff that finishes an item, and project housekeeping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from taskfirst import metrics
from taskfirst.backends.base import TaskBackend
from taskfirst.errors import AlreadyFinishedError, ItemNotFoundError, PermissionDenied
from taskfirst.models import (
    Priority,
    Project,
    Rating,
    Status,
    SubTask,
    Task,
    User,
    WorkItem,
    normalise_updates,
)
from taskfirst.seed import MOCK_USERS, TASK_TYPES


logger = logging.getLogger(__name__)

MANAGER = "manager"
MEMBER = "member"

DEFAULT_PROJECT_NAME = "Default Project"
DEFAULT_TEAM = "Design"

MAIN_FIELDS = {"title", "task_type", "assignee_id"}
PLANNING_FIELDS = {"deadline", "estimated_hours"}
MANAGER_ONLY_FIELDS = {"project_id"}


@dataclass(frozen=True)
class Permissions:
    can_edit_main_fields: bool
    can_edit_planning: bool
    can_delete: bool

    @classmethod
    def for_item(cls, role: str, current_user_id: str, item: WorkItem, *, is_sub: bool) -> "Permissions":
        manager = role == MANAGER
        own_sub = is_sub and item.creator_id == current_user_id
        is_assignee = item.assignee_id == current_user_id
        return cls(
            can_edit_main_fields=manager or own_sub,
            can_edit_planning=manager or is_assignee or own_sub,
            can_delete=manager or own_sub,
        )

    def allows(self, role: str, field_name: str) -> bool:
        if field_name in MANAGER_ONLY_FIELDS:
            return role == MANAGER
        if field_name in MAIN_FIELDS:
            return self.can_edit_main_fields
        if field_name in PLANNING_FIELDS:
            return self.can_edit_planning
        return True


@dataclass
class FilterState:
    """The single active stat-card filter (None means show everything)."""

    active: Optional[str] = None

    def toggle(self, selected: Optional[str]) -> Optional[str]:
        self.active = metrics.toggle_filter(self.active, selected)
        return self.active

    def apply(self, tasks: Sequence[Task]) -> List[Task]:
        return metrics.filter_top_level(tasks, self.active)


def _iso(ts: datetime) -> str:
    return ts.isoformat(timespec="milliseconds") + "Z"


@dataclass
class Workspace:
    backend: TaskBackend
    users: List[User] = field(default_factory=lambda: list(MOCK_USERS))
    current_user_id: str = "u1"
    role: str = MANAGER
    task_types: List[str] = field(default_factory=lambda: list(TASK_TYPES))
    clock: Callable[[], datetime] = datetime.utcnow

    # ---- lookups -----------------------------------------------------------
    def tasks(self) -> List[Task]:
        return self.backend.fetch_tasks()

    def projects(self) -> List[Project]:
        return self.backend.fetch_projects()

    def find_task(self, task_id: str) -> Task:
        for task in self.tasks():
            if task.id == task_id:
                return task
        raise ItemNotFoundError(f"task {task_id} not found")

    def find_subtask(self, task_id: str, sub_id: str) -> SubTask:
        sub = self.find_task(task_id).sub_task(sub_id)
        if sub is None:
            raise ItemNotFoundError(f"subtask {sub_id} not found in task {task_id}")
        return sub

    def permissions(self, item: WorkItem, *, is_sub: bool = False) -> Permissions:
        return Permissions.for_item(self.role, self.current_user_id, item, is_sub=is_sub)

    def _check(self, item: WorkItem, updates: Dict[str, Any], *, is_sub: bool) -> None:
        perms = self.permissions(item, is_sub=is_sub)
        denied = [name for name in normalise_updates(type(item), updates) if not perms.allows(self.role, name)]
        if denied:
            raise PermissionDenied(f"{self.role} may not edit {', '.join(sorted(denied))} on {item.id}")

    # ---- tasks -------------------------------------------------------------
    def add_task(self, title: str = "New Mission Item") -> Task:
        if self.role != MANAGER:
            raise PermissionDenied("only managers add top-level tasks")
        projects = self.projects()
        project_id = projects[0].id if projects else self.backend.add_project(DEFAULT_PROJECT_NAME).id
        now = _iso(self.clock())
        task = Task(
            id="",
            project_id=project_id,
            title=title,
            description="",
            priority=Priority.MEDIUM,
            status=Status.NOT_STARTED,
            assignee_id=self.current_user_id,
            creator_id=self.current_user_id,
            team=DEFAULT_TEAM,
            task_type=self.task_types[0] if self.task_types else "General",
            duration_hours=0,
            duration_minutes=0,
            estimated_hours=0,
            created_at=now,
            updated_at=now,
        )
        stored = self.backend.add_task(task)
        logger.info("Task %s added to project %s", stored.id, project_id)
        return stored

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> None:
        task = self.find_task(task_id)
        self._check(task, updates, is_sub=False)
        self.backend.update_task(task_id, updates)

    def delete_task(self, task_id: str) -> None:
        task = self.find_task(task_id)
        if not self.permissions(task).can_delete:
            raise PermissionDenied(f"{self.role} may not delete {task_id}")
        # Subtasks are embedded, so they go with the parent.
        self.backend.delete_task(task_id)
        logger.info("Task %s deleted with %d subtasks", task_id, len(task.sub_tasks))

    # ---- subtasks ----------------------------------------------------------
    def _new_subtask_id(self, parent: Task) -> str:
        ms = int(self.clock().timestamp() * 1000)
        taken = {s.id for s in parent.sub_tasks}
        candidate = f"s-{ms}"
        while candidate in taken:
            ms += 1
            candidate = f"s-{ms}"
        return candidate

    def add_subtask(self, task_id: str, title: str = "Action Point") -> SubTask:
        parent = self.find_task(task_id)
        sub = SubTask(
            id=self._new_subtask_id(parent),
            title=title,
            status=Status.NOT_STARTED,
            priority=Priority.MEDIUM,
            assignee_id=self.current_user_id,
            creator_id=self.current_user_id,
            team=DEFAULT_TEAM,
            task_type=self.task_types[0] if self.task_types else "General",
            duration_hours=0,
            duration_minutes=0,
            estimated_hours=0,
        )
        self.backend.update_task(task_id, {"sub_tasks": parent.sub_tasks + [sub]})
        logger.info("Subtask %s added to task %s", sub.id, task_id)
        return sub

    def update_subtask(self, task_id: str, sub_id: str, updates: Dict[str, Any]) -> None:
        parent = self.find_task(task_id)
        sub = parent.sub_task(sub_id)
        if sub is None:
            raise ItemNotFoundError(f"subtask {sub_id} not found in task {task_id}")
        self._check(sub, updates, is_sub=True)
        new_subs = [s.with_updates(updates) if s.id == sub_id else s for s in parent.sub_tasks]
        self.backend.update_task(task_id, {"sub_tasks": new_subs})

    def delete_subtask(self, task_id: str, sub_id: str) -> None:
        parent = self.find_task(task_id)
        sub = parent.sub_task(sub_id)
        if sub is None:
            raise ItemNotFoundError(f"subtask {sub_id} not found in task {task_id}")
        if not self.permissions(sub, is_sub=True).can_delete:
            raise PermissionDenied(f"{self.role} may not delete {sub_id}")
        self.backend.update_task(task_id, {"sub_tasks": [s for s in parent.sub_tasks if s.id != sub_id]})

    # ---- status and handoff ------------------------------------------------
    def set_status(self, item_id: str, status: str, *, parent_id: Optional[str] = None) -> None:
        """Change a status; moving to Finished goes through the handoff."""
        if status == Status.FINISHED:
            self.handoff(item_id, parent_id=parent_id)
            return
        if parent_id:
            self.update_subtask(parent_id, item_id, {"status": status})
        else:
            self.update_task(item_id, {"status": status})

    def handoff(
        self,
        item_id: str,
        *,
        parent_id: Optional[str] = None,
        comment: Optional[str] = None,
        output_link: Optional[str] = None,
    ) -> str:
        """Mark an item Finished and stamp ``completed_at``; returns the stamp.

        Raises ``AlreadyFinishedError`` for an item that is already Finished.
        """
        item: WorkItem = self.find_subtask(parent_id, item_id) if parent_id else self.find_task(item_id)
        if item.is_finished:
            raise AlreadyFinishedError(f"{item_id} was already handed off at {item.completed_at}")
        completed_at = _iso(self.clock())
        updates: Dict[str, Any] = {"status": Status.FINISHED, "completed_at": completed_at}
        if comment is not None:
            updates["handoff_comment"] = comment
        if output_link is not None:
            updates["output_link"] = output_link
        if parent_id:
            parent = self.find_task(parent_id)
            new_subs = [s.with_updates(updates) if s.id == item_id else s for s in parent.sub_tasks]
            self.backend.update_task(parent_id, {"sub_tasks": new_subs})
        else:
            self.backend.update_task(item_id, updates)
        logger.info("Handoff of %s at %s", item_id, completed_at)
        return completed_at

    def rate(self, item_id: str, stars: int, comment: str = "", *, parent_id: Optional[str] = None) -> Rating:
        """Attach a 1-5 star quality rating to a finished item (managers only)."""
        if self.role != MANAGER:
            raise PermissionDenied("only managers rate finished work")
        if not 1 <= int(stars) <= 5:
            raise ValueError("stars must be between 1 and 5")
        item: WorkItem = self.find_subtask(parent_id, item_id) if parent_id else self.find_task(item_id)
        if not item.is_finished:
            raise ValueError(f"{item_id} is not finished yet")
        rating = Rating(stars=int(stars), comment=comment or "")
        if parent_id:
            parent = self.find_task(parent_id)
            new_subs = [replace(s, rating=rating) if s.id == item_id else s for s in parent.sub_tasks]
            self.backend.update_task(parent_id, {"sub_tasks": new_subs})
        else:
            self.backend.update_task(item_id, {"rating": rating})
        return rating

    # ---- projects and bulk sync ---------------------------------------------
    def add_project(self, name: str) -> Project:
        name = (name or "").strip()
        if not name:
            raise ValueError("project name must not be empty")
        if self.role != MANAGER:
            raise PermissionDenied("only managers manage projects")
        return self.backend.add_project(name)

    def delete_project(self, project_id: str) -> None:
        if self.role != MANAGER:
            raise PermissionDenied("only managers manage projects")
        self.backend.delete_project(project_id)

    def sync_snapshot(self, tasks: Iterable[Task], projects: Iterable[Project]) -> None:
        """Replace the stored tasks and projects with the given snapshot."""
        tasks = list(tasks)
        projects = list(projects)
        keep_tasks = {t.id for t in tasks}
        keep_projects = {p.id for p in projects}
        for existing in self.backend.fetch_tasks():
            if existing.id not in keep_tasks:
                self.backend.delete_task(existing.id)
        for existing in self.backend.fetch_projects():
            if existing.id not in keep_projects:
                self.backend.delete_project(existing.id)
        for project in projects:
            self.backend.save_project(project)
        for task in tasks:
            self.backend.save_task(task)
        logger.info("Synced snapshot: %d tasks, %d projects", len(tasks), len(projects))
