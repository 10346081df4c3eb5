from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from taskfirst.config_utils import env_int, env_optional_str, env_secret, env_str


BACKENDS = ("auto", "mock", "sql", "supabase", "firebase")
ROLES = ("manager", "member")


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _default_sqlite_url() -> str:
    data_dir = _repo_root() / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{(data_dir / 'taskfirst.db').as_posix()}"


@dataclass(frozen=True)
class WorkspaceConfig:
    """Runtime configuration for the workspace and its storage backend.

    Backend selection:
    - TASKFIRST_BACKEND: auto|mock|sql|supabase|firebase (default: auto)
      auto uses Supabase when configured, then Firebase, else the mock store.

    SQL store:
    - TASKFIRST_DATABASE_URL / PLATFORM_DATABASE_URL / DATABASE_URL
      If none is set, defaults to local SQLite at data/taskfirst.db

    Supabase:
    - SUPABASE_URL
    - SUPABASE_ANON_KEY (or SUPABASE_PUBLISHABLE_KEY)

    Firebase (Firestore REST):
    - FIREBASE_PROJECT_ID (or PROJECT_ID)
    - FIREBASE_API_KEY (or API_KEY)

    Session:
    - TASKFIRST_CURRENT_USER (default: u1)
    - TASKFIRST_DEFAULT_ROLE: manager|member (default: manager)
    - TASKFIRST_POLL_SECONDS: remote snapshot polling interval (default: 5)

    Proxy server:
    - TASKFIRST_MCP_HOST (default: 0.0.0.0)
    - TASKFIRST_MCP_PORT (default: 8030)

    Placeholder values such as "undefined" or "your-project-id" count as unset.
    """

    backend: str
    database_url: str
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    firebase_project_id: Optional[str]
    firebase_api_key: Optional[str]
    current_user_id: str
    default_role: str
    poll_seconds: int
    mcp_host: str
    mcp_port: int

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def firebase_configured(self) -> bool:
        return bool(self.firebase_project_id and self.firebase_api_key)

    def resolved_backend(self) -> str:
        if self.backend != "auto":
            return self.backend
        if self.supabase_configured:
            return "supabase"
        if self.firebase_configured:
            return "firebase"
        return "mock"

    @classmethod
    def from_env(cls) -> "WorkspaceConfig":
        backend = env_str("TASKFIRST_BACKEND", "auto").lower()
        if backend not in BACKENDS:
            backend = "auto"

        database_url = (
            env_optional_str("TASKFIRST_DATABASE_URL")
            or env_optional_str("PLATFORM_DATABASE_URL")
            or env_optional_str("DATABASE_URL")
        )
        if not database_url:
            database_url = _default_sqlite_url()

        role = env_str("TASKFIRST_DEFAULT_ROLE", "manager").lower()
        if role not in ROLES:
            role = "manager"

        return cls(
            backend=backend,
            database_url=database_url,
            supabase_url=env_secret("SUPABASE_URL"),
            supabase_key=env_secret("SUPABASE_ANON_KEY", "SUPABASE_PUBLISHABLE_KEY"),
            firebase_project_id=env_secret("FIREBASE_PROJECT_ID", "PROJECT_ID"),
            firebase_api_key=env_secret("FIREBASE_API_KEY", "API_KEY"),
            current_user_id=env_str("TASKFIRST_CURRENT_USER", "u1") or "u1",
            default_role=role,
            poll_seconds=max(1, env_int("TASKFIRST_POLL_SECONDS", 5)),
            mcp_host=env_str("TASKFIRST_MCP_HOST", "0.0.0.0"),
            mcp_port=env_int("TASKFIRST_MCP_PORT", 8030),
        )


# Global config instance
_config: Optional[WorkspaceConfig] = None


def get_config() -> WorkspaceConfig:
    """Get the workspace configuration (cached)."""
    global _config
    if _config is None:
        _config = WorkspaceConfig.from_env()
    return _config
