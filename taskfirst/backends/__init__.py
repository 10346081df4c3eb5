"""Storage backends: one capability interface, four interchangeable stores."""

from __future__ import annotations

from typing import Optional

from taskfirst.backends.base import SnapshotPoller, TaskBackend
from taskfirst.backends.firebase import FirebaseBackend
from taskfirst.backends.mock import MockBackend
from taskfirst.backends.sql import SqlBackend
from taskfirst.backends.supabase import SupabaseBackend
from taskfirst.config import WorkspaceConfig, get_config


def get_backend(config: Optional[WorkspaceConfig] = None) -> TaskBackend:
    """Build the backend selected by ``config`` (env-driven by default)."""
    cfg = config or get_config()
    kind = cfg.resolved_backend()
    if kind == "supabase":
        return SupabaseBackend(cfg.supabase_url, cfg.supabase_key, poll_seconds=cfg.poll_seconds)
    if kind == "firebase":
        return FirebaseBackend(cfg.firebase_project_id, cfg.firebase_api_key, poll_seconds=cfg.poll_seconds)
    if kind == "sql":
        return SqlBackend(cfg.database_url)
    return MockBackend()


__all__ = [
    "FirebaseBackend",
    "MockBackend",
    "SnapshotPoller",
    "SqlBackend",
    "SupabaseBackend",
    "TaskBackend",
    "get_backend",
]
