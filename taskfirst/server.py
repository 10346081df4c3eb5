"""FastMCP proxy for the workspace data and the smart report.

Tools mirror the small HTTP surface the browser app used to call:
- get_data: projects, users, departments, task types and tasks
- sync_data: replace the stored tasks/projects with a client snapshot
- dashboard_metrics: every dashboard aggregate for the current snapshot
- ai_report: LLM commentary on dashboard data
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from taskfirst.ai.report import UNAVAILABLE_MESSAGE, get_smart_report
from taskfirst.backends import TaskBackend, get_backend
from taskfirst.config import get_config
from taskfirst.metrics import build_dashboard
from taskfirst.models import Project, Task
from taskfirst.seed import INITIAL_DEPARTMENTS, MOCK_PROJECTS, MOCK_USERS, TASK_TYPES
from taskfirst.workspace import Workspace


logger = logging.getLogger(__name__)

mcp = FastMCP("taskfirst")

_BACKEND: Optional[TaskBackend] = None
_STARTED_AT = datetime.utcnow().replace(microsecond=0).isoformat() + "Z"


def _backend() -> TaskBackend:
    global _BACKEND
    if _BACKEND is None:
        _BACKEND = get_backend(get_config())
    return _BACKEND


def data_payload(backend: TaskBackend) -> Dict[str, Any]:
    return {
        "projects": [p.to_dict() for p in backend.fetch_projects()],
        "users": [u.to_dict() for u in MOCK_USERS],
        "departments": list(INITIAL_DEPARTMENTS),
        "taskTypes": list(TASK_TYPES),
        "tasks": [t.to_dict() for t in backend.fetch_tasks()],
    }


def apply_sync(backend: TaskBackend, payload: Dict[str, Any]) -> Dict[str, Any]:
    tasks: List[Task] = [Task.from_dict(t) for t in payload.get("tasks") or []]
    projects: List[Project] = [Project.from_dict(p) for p in payload.get("projects") or []]
    Workspace(backend=backend).sync_snapshot(tasks, projects)
    return {"success": True, "tasks": len(tasks), "projects": len(projects)}


def report_payload(data: Dict[str, Any], timeframe: str, role: str, **kwargs: Any) -> Dict[str, Any]:
    try:
        text = get_smart_report(data, timeframe, role, **kwargs)
    except Exception as exc:  # noqa: BLE001
        logger.error("AI report failed: %s", exc)
        return {"ok": False, "text": UNAVAILABLE_MESSAGE}
    return {"ok": True, "text": text}


@mcp.tool
def health() -> Dict[str, Any]:
    cfg = get_config()
    backend = _backend()
    return {
        "ok": True,
        "service": "taskfirst",
        "backend": backend.name,
        "configured": backend.is_configured,
        "requested_backend": cfg.backend,
        "started_at_utc": _STARTED_AT,
    }


@mcp.tool
def get_data() -> Dict[str, Any]:
    return {"ok": True, **data_payload(_backend())}


@mcp.tool
def sync_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"ok": True, **apply_sync(_backend(), payload)}


@mcp.tool
def dashboard_metrics() -> Dict[str, Any]:
    snapshot = build_dashboard(_backend().fetch_tasks(), MOCK_USERS)
    return {"ok": True, "metrics": snapshot.to_dict()}


@mcp.tool
def ai_report(data: Dict[str, Any], timeframe: str = "Last 30 days", role: str = "manager") -> Dict[str, Any]:
    return report_payload(data, timeframe, role)


def run() -> None:
    cfg = get_config()
    backend = _backend()
    # A fresh store starts with the reference projects and no tasks.
    backend.seed_initial_data([], MOCK_PROJECTS)
    logger.info("TaskFirst MCP server on %s:%s (%s backend)", cfg.mcp_host, cfg.mcp_port, backend.name)
    try:
        mcp.run(transport="http", host=cfg.mcp_host, port=int(cfg.mcp_port))
    except TypeError:
        mcp.run(transport="http")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
