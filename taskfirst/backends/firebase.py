"""Firestore task store over the REST API.

Documents hold the camelCase task shape (``assigneeId``, ``subTasks``) with
the document id as the task id. Firestore wraps every value in a typed
envelope, handled by ``encode_value`` / ``decode_value``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from taskfirst.backends.base import TaskBackend, utc_now_iso
from taskfirst.errors import BackendError, BackendNotConfigured
from taskfirst.models import Project, Task, normalise_updates, to_camel


logger = logging.getLogger(__name__)

TASKS_COLLECTION = "tasks"
PROJECTS_COLLECTION = "projects"
FIRESTORE_ROOT = "https://firestore.googleapis.com/v1"


def encode_value(value: Any) -> Dict[str, Any]:
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    return {"stringValue": str(value)}


def encode_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k): encode_value(v) for k, v in data.items()}


def decode_value(value: Dict[str, Any]) -> Any:
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return value["timestampValue"]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields") or {})
    if "arrayValue" in value:
        return [decode_value(v) for v in (value["arrayValue"].get("values") or [])]
    if "referenceValue" in value:
        return value["referenceValue"]
    return None


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: decode_value(v) for k, v in fields.items()}


def decode_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a Firestore document into a plain dict with its ``id``."""
    data = decode_fields(doc.get("fields") or {})
    data["id"] = str(doc.get("name", "")).rsplit("/", 1)[-1]
    return data


class FirebaseBackend(TaskBackend):
    name = "firebase"

    def __init__(
        self,
        project_id: Optional[str],
        api_key: Optional[str],
        *,
        poll_seconds: Optional[float] = 5,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        page_size: int = 300,
    ) -> None:
        super().__init__()
        self.project_id = project_id or ""
        self.api_key = api_key or ""
        self.poll_seconds = poll_seconds
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()
        if not self.is_configured:
            logger.warning(
                "Firebase configuration is missing or invalid. "
                "Set FIREBASE_PROJECT_ID and FIREBASE_API_KEY."
            )

    @property
    def is_configured(self) -> bool:
        return bool(self.project_id and self.api_key)

    @property
    def documents_url(self) -> str:
        return f"{FIRESTORE_ROOT}/projects/{self.project_id}/databases/(default)/documents"

    def _request(self, method: str, path: str, *, params=None, body=None) -> Dict[str, Any]:
        if not self.is_configured:
            raise BackendNotConfigured("Firebase is not configured.")
        url = f"{self.documents_url}/{path}"
        query = {"key": self.api_key}
        query.update(params or {})
        try:
            r = self.session.request(method, url, params=query, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Firebase %s %s failed: %s", method, path, exc)
            raise BackendError(f"Firebase is unreachable: {exc}") from exc
        if r.status_code >= 400:
            logger.warning("Firebase %s %s returned %s", method, path, r.status_code)
            raise BackendError(f"{method} {url} failed {r.status_code}: {r.text[:500]}")
        if not r.content:
            return {}
        return r.json()

    def _list(self, collection: str) -> List[Dict[str, Any]]:
        docs: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"pageSize": self.page_size}
            if page_token:
                params["pageToken"] = page_token
            data = self._request("GET", collection, params=params)
            docs.extend(decode_document(d) for d in data.get("documents") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                return docs

    def fetch_tasks(self) -> List[Task]:
        if not self.is_configured:
            return []
        tasks = [Task.from_dict(d) for d in self._list(TASKS_COLLECTION)]
        return sorted(tasks, key=lambda t: t.created_at or "", reverse=True)

    def fetch_projects(self) -> List[Project]:
        if not self.is_configured:
            return []
        return [Project.from_dict(d) for d in self._list(PROJECTS_COLLECTION)]

    @staticmethod
    def _task_fields(task: Task) -> Dict[str, Any]:
        data = task.to_dict()
        data.pop("id", None)
        return encode_fields(data)

    def _insert_task(self, task: Task) -> Task:
        now = utc_now_iso()
        stored = task.with_updates({"created_at": now, "updated_at": now})
        params = {"documentId": task.id} if task.id else None
        doc = self._request("POST", TASKS_COLLECTION, params=params, body={"fields": self._task_fields(stored)})
        return Task.from_dict(decode_document(doc)) if doc else stored

    def _patch_task(self, task_id: str, updates: Dict[str, Any]) -> None:
        names = normalise_updates(Task, updates)
        partial = Task(id=task_id).with_updates(names)
        partial.updated_at = utc_now_iso()
        full = partial.to_dict()
        keys = [to_camel(n) for n in names] + ["updatedAt"]
        fields = {k: encode_value(full.get(k)) for k in keys}
        params = {"updateMask.fieldPaths": keys}
        self._request("PATCH", f"{TASKS_COLLECTION}/{task_id}", params=params, body={"fields": fields})

    def _put_task(self, task: Task) -> None:
        self._request("PATCH", f"{TASKS_COLLECTION}/{task.id}", body={"fields": self._task_fields(task)})

    def _remove_task(self, task_id: str) -> None:
        self._request("DELETE", f"{TASKS_COLLECTION}/{task_id}")

    def add_project(self, name: str) -> Project:
        doc = self._request("POST", PROJECTS_COLLECTION, body={"fields": encode_fields({"name": name})})
        return Project.from_dict(decode_document(doc))

    def _put_project(self, project: Project) -> None:
        self._request(
            "PATCH", f"{PROJECTS_COLLECTION}/{project.id}", body={"fields": encode_fields({"name": project.name})}
        )

    def _remove_project(self, project_id: str) -> None:
        self._request("DELETE", f"{PROJECTS_COLLECTION}/{project_id}")
