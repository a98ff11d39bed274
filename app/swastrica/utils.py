"""Common utility helpers."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from time import perf_counter


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> float:
    return perf_counter() * 1000.0


def elapsed_ms(start_ms: float) -> int:
    return int(perf_counter() * 1000.0 - start_ms)


def truncate(text: str, limit: int) -> str:
    if limit <= 0:
        return ""
    cleaned = re.sub(r"\s+", " ", text).strip()
    return cleaned[:limit]


def preview(text: str, limit: int = 100) -> str:
    """Single-line log preview of caller text."""
    cleaned = truncate(text, limit)
    return cleaned + "..." if len(text.strip()) > limit else cleaned
