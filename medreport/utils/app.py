import os
from typing import List


# ---------------- Environment Helpers ----------------
def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (ValueError, TypeError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "off", "no"}


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip() or default


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in _env_str(name, default).split(",") if item.strip()]
