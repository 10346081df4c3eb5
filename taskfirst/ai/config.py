from __future__ import annotations

from dataclasses import dataclass

from taskfirst.config_utils import env_bool, env_float, env_str


@dataclass(frozen=True)
class AIReportConfig:
    """Config for the dashboard's smart report (Ollama via LangChain).

    - OLLAMA_BASE_URL (default: http://localhost:11434)
    - TASKFIRST_AI_MODEL, falling back to OLLAMA_MODEL (default: tinyllama)
    - OLLAMA_TEMPERATURE (default: 0.2)
    - OLLAMA_ENABLED: when false the report is summarised locally
    """

    ollama_base_url: str
    model: str
    temperature: float
    enabled: bool

    DEFAULT_BASE_URL: str = "http://localhost:11434"
    DEFAULT_MODEL: str = "tinyllama"
    DEFAULT_TEMPERATURE: float = 0.2
    DEFAULT_ENABLED: bool = True

    @classmethod
    def from_env(cls) -> "AIReportConfig":
        return cls(
            ollama_base_url=env_str("OLLAMA_BASE_URL", cls.DEFAULT_BASE_URL),
            model=env_str("TASKFIRST_AI_MODEL", env_str("OLLAMA_MODEL", cls.DEFAULT_MODEL)),
            temperature=env_float("OLLAMA_TEMPERATURE", cls.DEFAULT_TEMPERATURE),
            enabled=env_bool("OLLAMA_ENABLED", cls.DEFAULT_ENABLED),
        )
