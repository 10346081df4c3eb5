"""Tests for env-driven configuration and backend selection."""

import pytest

from taskfirst.ai.config import AIReportConfig
from taskfirst.backends import FirebaseBackend, MockBackend, SqlBackend, SupabaseBackend, get_backend
from taskfirst.config import WorkspaceConfig
from taskfirst.config_utils import env_secret

_VARS = [
    "TASKFIRST_BACKEND", "TASKFIRST_DATABASE_URL", "PLATFORM_DATABASE_URL", "DATABASE_URL",
    "SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_PUBLISHABLE_KEY",
    "FIREBASE_PROJECT_ID", "PROJECT_ID", "FIREBASE_API_KEY", "API_KEY",
    "TASKFIRST_CURRENT_USER", "TASKFIRST_DEFAULT_ROLE", "TASKFIRST_POLL_SECONDS",
    "TASKFIRST_MCP_HOST", "TASKFIRST_MCP_PORT",
    "OLLAMA_BASE_URL", "TASKFIRST_AI_MODEL", "OLLAMA_MODEL", "OLLAMA_TEMPERATURE", "OLLAMA_ENABLED",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TASKFIRST_DATABASE_URL", f"sqlite:///{(tmp_path / 'cfg.db').as_posix()}")


class TestWorkspaceConfig:
    """Tests for WorkspaceConfig.from_env."""

    def test_defaults(self):
        """Nothing set: auto backend resolving to mock, manager u1."""
        cfg = WorkspaceConfig.from_env()
        assert cfg.backend == "auto"
        assert cfg.resolved_backend() == "mock"
        assert cfg.current_user_id == "u1"
        assert cfg.default_role == "manager"
        assert cfg.poll_seconds == 5
        assert cfg.mcp_port == 8030

    def test_auto_prefers_supabase(self, monkeypatch):
        """Supabase wins over Firebase when both are configured."""
        monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        monkeypatch.setenv("FIREBASE_PROJECT_ID", "demo")
        monkeypatch.setenv("FIREBASE_API_KEY", "key")
        assert WorkspaceConfig.from_env().resolved_backend() == "supabase"

    def test_auto_falls_back_to_firebase(self, monkeypatch):
        """Firebase is used when only it is configured; legacy names work."""
        monkeypatch.setenv("PROJECT_ID", "demo")
        monkeypatch.setenv("API_KEY", "key")
        cfg = WorkspaceConfig.from_env()
        assert cfg.firebase_project_id == "demo"
        assert cfg.resolved_backend() == "firebase"

    def test_placeholders_count_as_unset(self, monkeypatch):
        """Template leftovers do not switch the backend on."""
        monkeypatch.setenv("FIREBASE_PROJECT_ID", "your-project-id")
        monkeypatch.setenv("FIREBASE_API_KEY", "undefined")
        assert WorkspaceConfig.from_env().resolved_backend() == "mock"

    def test_invalid_values_fall_back(self, monkeypatch):
        """Unknown backend or role names revert to defaults."""
        monkeypatch.setenv("TASKFIRST_BACKEND", "oracle")
        monkeypatch.setenv("TASKFIRST_DEFAULT_ROLE", "owner")
        monkeypatch.setenv("TASKFIRST_POLL_SECONDS", "0")
        cfg = WorkspaceConfig.from_env()
        assert cfg.backend == "auto"
        assert cfg.default_role == "manager"
        assert cfg.poll_seconds == 1

    def test_env_secret_order(self, monkeypatch):
        """The first real value wins."""
        monkeypatch.setenv("SUPABASE_ANON_KEY", "null")
        monkeypatch.setenv("SUPABASE_PUBLISHABLE_KEY", "pub")
        assert env_secret("SUPABASE_ANON_KEY", "SUPABASE_PUBLISHABLE_KEY") == "pub"


class TestGetBackend:
    """Tests for the backend factory."""

    def test_explicit_choices(self, monkeypatch):
        """Each backend name builds the matching store."""
        for name, cls in [("mock", MockBackend), ("sql", SqlBackend), ("supabase", SupabaseBackend),
                          ("firebase", FirebaseBackend)]:
            monkeypatch.setenv("TASKFIRST_BACKEND", name)
            assert isinstance(get_backend(WorkspaceConfig.from_env()), cls)

    def test_remote_backends_poll(self, monkeypatch):
        """Remote stores get the configured polling interval."""
        monkeypatch.setenv("TASKFIRST_BACKEND", "supabase")
        monkeypatch.setenv("TASKFIRST_POLL_SECONDS", "12")
        assert get_backend(WorkspaceConfig.from_env()).poll_seconds == 12


class TestAIReportConfig:
    """Tests for AIReportConfig.from_env."""

    def test_defaults(self):
        """Local Ollama, enabled."""
        cfg = AIReportConfig.from_env()
        assert cfg.ollama_base_url == "http://localhost:11434"
        assert cfg.enabled is True

    def test_overrides(self, monkeypatch):
        """TASKFIRST_AI_MODEL beats OLLAMA_MODEL; junk temperature is ignored."""
        monkeypatch.setenv("OLLAMA_MODEL", "llama3")
        monkeypatch.setenv("TASKFIRST_AI_MODEL", "qwen2")
        monkeypatch.setenv("OLLAMA_TEMPERATURE", "warm")
        monkeypatch.setenv("OLLAMA_ENABLED", "false")
        cfg = AIReportConfig.from_env()
        assert cfg.model == "qwen2"
        assert cfg.temperature == AIReportConfig.DEFAULT_TEMPERATURE
        assert cfg.enabled is False
