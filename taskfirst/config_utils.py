from __future__ import annotations

import os
from typing import Optional


# Values that deployment templates leave behind when a secret is not filled in.
_PLACEHOLDERS = {"undefined", "null", "none"}
_PLACEHOLDER_FRAGMENTS = ("your-project", "AIzaSy...")


def env_str(name: str, default: str, *, strip: bool = True) -> str:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip() if strip else value


def env_optional_str(name: str, default: Optional[str] = None, *, strip: bool = True) -> Optional[str]:
    value = os.environ.get(name)
    if value is None:
        return default
    value = value.strip() if strip else value
    return value or default


def env_secret(*names: str) -> Optional[str]:
    """Return the first env var in ``names`` holding a real (non-placeholder) value."""
    for name in names:
        value = env_optional_str(name)
        if not value:
            continue
        if value.lower() in _PLACEHOLDERS:
            continue
        if any(frag in value for frag in _PLACEHOLDER_FRAGMENTS):
            continue
        return value
    return None


def env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    raw = raw.strip().lower()
    if raw in {"1", "true", "yes", "y", "on"}:
        return True
    if raw in {"0", "false", "no", "n", "off"}:
        return False
    return default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except Exception:
        return default


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except Exception:
        return default
