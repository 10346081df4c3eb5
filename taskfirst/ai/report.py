"""Smart report: a short LLM commentary on the dashboard aggregates."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_ollama.chat_models import ChatOllama

from taskfirst.ai.config import AIReportConfig


logger = logging.getLogger(__name__)

MANAGER_CONTEXT = (
    "You are a senior project manager. Analyze this performance data for bottlenecks "
    "and efficiency. Be concise."
)
MEMBER_CONTEXT = (
    "You are an encouraging team lead. Provide a short 2-sentence motivational summary "
    "based on this completion data."
)

OFFLINE_MESSAGE = "Operational insights are currently offline. Please check your connection."
EMPTY_MESSAGE = "No analysis generated."
UNAVAILABLE_MESSAGE = "Analysis currently unavailable."


def build_prompt(data: Any, timeframe: str, role: str = "manager") -> str:
    context = MANAGER_CONTEXT if role == "manager" else MEMBER_CONTEXT
    payload = json.dumps(data, separators=(",", ":"), default=str)
    return f"{context}\n\nProject Performance Data: {payload}\nTimeframe of analysis: {timeframe}"


@lru_cache(maxsize=8)
def _llm_for(model: str, base_url: str, temperature: float) -> ChatOllama:
    return ChatOllama(model=model, base_url=base_url, temperature=temperature)


def _local_summary(data: Dict[str, Any], role: str) -> str:
    """Plain-text digest used when no model is enabled."""
    summary = data.get("summary") or {}
    timing = data.get("timing") or {}
    counts = data.get("counts") or {}
    precision = summary.get("completion_precision_percent", 0)
    velocity = summary.get("workforce_velocity_percent", 0)
    finished = counts.get("finished", 0)
    total = counts.get("total", 0)

    if role != "manager":
        return (
            f"The team has finished {finished} of {total} items with {precision}% landing on time or early. "
            "Keep the momentum going!"
        )

    lines = [
        f"Finished {finished} of {total} items; completion precision is {precision}%.",
        f"Timing: {timing.get('early', 0)} early, {timing.get('on_time', 0)} on time, {timing.get('late', 0)} late.",
        f"Top assignee efficiency is {velocity}%.",
    ]
    departments = data.get("departments") or []
    if departments:
        busiest = departments[0]
        lines.append(f"Busiest department: {busiest.get('team')} with {busiest.get('task_count')} items.")
    if counts.get("awaiting_clarity"):
        lines.append(f"{counts['awaiting_clarity']} items are blocked awaiting clarity.")
    lines.append("**Note:** Ollama is disabled. This summary was computed locally.")
    return "\n".join(lines)


def get_smart_report(
    data: Dict[str, Any],
    timeframe: str,
    role: str = "manager",
    llm: Optional[BaseChatModel] = None,
    config: Optional[AIReportConfig] = None,
) -> str:
    """Ask the model for a report on ``data``; never raises.

    ``data`` is a dashboard snapshot as produced by ``DashboardSnapshot.to_dict``.
    """
    cfg = config or AIReportConfig.from_env()
    if llm is None:
        if not cfg.enabled:
            return _local_summary(data, role)
        llm = _llm_for(cfg.model, cfg.ollama_base_url, float(cfg.temperature))

    prompt = build_prompt(data, timeframe, role)
    try:
        response = llm.invoke([HumanMessage(content=prompt)])
    except Exception as exc:  # noqa: BLE001
        logger.warning("Smart report failed: %s", exc)
        return OFFLINE_MESSAGE
    text = getattr(response, "content", response)
    if isinstance(text, list):
        text = "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in text)
    return str(text or "").strip() or EMPTY_MESSAGE
