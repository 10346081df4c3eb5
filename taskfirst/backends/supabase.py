"""Supabase (PostgREST) task store.

Rows use snake_case columns; nested subtasks, comments and documents are
jsonb columns holding the camelCase documents.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from taskfirst.backends.base import TaskBackend, new_id, utc_now_iso
from taskfirst.errors import BackendError, BackendNotConfigured
from taskfirst.models import Project, Task, normalise_updates


logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"
PROJECTS_TABLE = "projects"

# Task attribute -> table column, where they differ only by nesting format.
_JSON_FIELDS = ("sub_tasks", "documents", "comments", "document_history")
_SCALAR_FIELDS = (
    "project_id", "title", "description", "priority", "status", "assignee_id", "creator_id",
    "team", "task_type", "deadline", "completed_at", "output_link", "handoff_comment",
    "duration_hours", "duration_minutes", "estimated_hours",
)


def row_to_task(row: Dict[str, Any]) -> Task:
    return Task.from_dict({
        "id": row.get("id"),
        "projectId": row.get("project_id"),
        "title": row.get("title"),
        "description": row.get("description"),
        "priority": row.get("priority"),
        "status": row.get("status"),
        "assigneeId": row.get("assignee_id"),
        "creatorId": row.get("creator_id"),
        "team": row.get("team"),
        "taskType": row.get("task_type"),
        "deadline": row.get("deadline"),
        "completedAt": row.get("completed_at"),
        "subTasks": row.get("sub_tasks") or [],
        "documents": row.get("documents") or [],
        "outputLink": row.get("output_link"),
        "handoffComment": row.get("handoff_comment"),
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
        "durationHours": row.get("duration_hours") or 0,
        "durationMinutes": row.get("duration_minutes") or 0,
        "estimatedHours": row.get("estimated_hours") or 0,
        "rating": row.get("rating"),
        "comments": row.get("comments") or [],
        "documentHistory": row.get("document_history") or [],
    })


def _serialise(name: str, value: Any) -> Any:
    if name in _JSON_FIELDS:
        return [v.to_dict() if hasattr(v, "to_dict") else v for v in (value or [])]
    if name == "rating":
        return value.to_dict() if hasattr(value, "to_dict") else value
    if name in ("status", "priority") and value is not None:
        return str(value)
    return value


def updates_to_row(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Map a partial task update to columns; always stamps ``updated_at``."""
    fields = normalise_updates(Task, updates)
    row: Dict[str, Any] = {}
    for name in _SCALAR_FIELDS + _JSON_FIELDS + ("rating",):
        if name in fields:
            row[name] = _serialise(name, fields[name])
    row["updated_at"] = utc_now_iso()
    return row


def task_to_row(task: Task) -> Dict[str, Any]:
    row = {"id": task.id}
    for name in _SCALAR_FIELDS + _JSON_FIELDS + ("rating",):
        row[name] = _serialise(name, getattr(task, name))
    row["created_at"] = task.created_at or utc_now_iso()
    row["updated_at"] = utc_now_iso()
    return row


class SupabaseBackend(TaskBackend):
    name = "supabase"

    def __init__(
        self,
        url: Optional[str],
        key: Optional[str],
        *,
        poll_seconds: Optional[float] = 5,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ) -> None:
        super().__init__()
        self.url = (url or "").rstrip("/")
        self.key = key or ""
        self.poll_seconds = poll_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        if self.is_configured:
            self.session.headers.update({
                "apikey": self.key,
                "Authorization": f"Bearer {self.key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            })

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.key)

    def _require_config(self) -> None:
        if not self.is_configured:
            raise BackendNotConfigured("Supabase is not configured.")

    def _request(self, method: str, table: str, *, params=None, json=None, headers=None) -> Any:
        self._require_config()
        endpoint = f"{self.url}/rest/v1/{table}"
        try:
            r = self.session.request(
                method, endpoint, params=params or {}, json=json, headers=headers or {}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.warning("Supabase %s %s failed: %s", method, table, exc)
            raise BackendError(f"Supabase is unreachable: {exc}") from exc
        if r.status_code >= 400:
            logger.warning("Supabase %s %s returned %s", method, table, r.status_code)
            raise BackendError(f"{method} {endpoint} failed {r.status_code}: {r.text[:500]}")
        if not r.content:
            return None
        return r.json()

    def fetch_tasks(self) -> List[Task]:
        if not self.is_configured:
            return []
        rows = self._request("GET", TASKS_TABLE, params={"select": "*", "order": "created_at.desc"}) or []
        return [row_to_task(r) for r in rows]

    def fetch_projects(self) -> List[Project]:
        if not self.is_configured:
            return []
        rows = self._request("GET", PROJECTS_TABLE, params={"select": "*"}) or []
        return [Project.from_dict(r) for r in rows]

    def _insert_task(self, task: Task) -> Task:
        row = task_to_row(task)
        if not task.id:
            row.pop("id")
        created = self._request(
            "POST", TASKS_TABLE, json=[row], headers={"Prefer": "return=representation"}
        ) or []
        if not created:
            raise BackendError("Supabase insert returned no rows")
        return row_to_task(created[0])

    def _patch_task(self, task_id: str, updates: Dict[str, Any]) -> None:
        self._request("PATCH", TASKS_TABLE, params={"id": f"eq.{task_id}"}, json=updates_to_row(updates))

    def _put_task(self, task: Task) -> None:
        self._request(
            "POST", TASKS_TABLE, json=[task_to_row(task)], headers={"Prefer": "resolution=merge-duplicates"}
        )

    def _remove_task(self, task_id: str) -> None:
        self._request("DELETE", TASKS_TABLE, params={"id": f"eq.{task_id}"})

    def add_project(self, name: str) -> Project:
        created = self._request(
            "POST", PROJECTS_TABLE, json=[{"name": name}], headers={"Prefer": "return=representation"}
        ) or []
        if not created:
            raise BackendError("Supabase insert returned no rows")
        return Project.from_dict(created[0])

    def _put_project(self, project: Project) -> None:
        self._request(
            "POST", PROJECTS_TABLE, json=[{"id": project.id or new_id(), "name": project.name}],
            headers={"Prefer": "resolution=merge-duplicates"},
        )

    def _remove_project(self, project_id: str) -> None:
        self._request("DELETE", PROJECTS_TABLE, params={"id": f"eq.{project_id}"})
