"""Fire-and-forget audit logging.

`AuditLogger.record` schedules a detached task and returns immediately. The
response path never awaits it, and persistence failures stay inside the task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from swastrica.identity import IdentityResolver
from swastrica.router import ERROR_MODEL
from swastrica.schemas import AuditRecord, BackendResult, Classification, FinalResponse, Query, RoutingDecision
from swastrica.utils import truncate, utc_now

log = logging.getLogger(__name__)

_QUERY_TYPES = {
    "emergency": "emergency",
    "medical-image": "image_analysis",
    "medical-text": "medical_chat",
    "general": "general_chat",
}


class AuditSink(Protocol):
    async def append(self, record: AuditRecord) -> None:
        ...


def make_audit_record(
    query: Query,
    classification: Classification,
    decision: RoutingDecision,
    result: BackendResult | None,
    final: FinalResponse,
    *,
    query_chars: int,
    processing_time_ms: int,
) -> AuditRecord:
    failed = final.model == ERROR_MODEL
    return AuditRecord(
        timestamp=utc_now(),
        request_id=query.request_id,
        category=classification.category,
        query_type=_QUERY_TYPES[classification.category],
        routing_reason=decision.reason,
        backend_used=final.model,
        query_summary=truncate(query.text, query_chars),
        success=not failed,
        degraded=bool(result and result.degraded),
        fallback_used=bool(result and len(result.attempts) > 1),
        had_error=bool(result and result.error_type),
        error_type=result.error_type if result else None,
        is_emergency_detected=classification.is_emergency,
        emergency_type=classification.emergency_type,
        disclaimer_shown=bool(final.has_disclaimer or final.is_emergency),
        has_conversation_history=bool(query.history),
        has_image=query.has_image,
        processing_time_ms=processing_time_ms,
        response_length=len(final.response),
    )


class AuditLogger:
    def __init__(
        self,
        store: AuditSink,
        *,
        identity: IdentityResolver | None = None,
        timeout_sec: float = 5.0,
    ):
        self._store = store
        self._identity = identity
        self._timeout_sec = timeout_sec
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def record(self, record: AuditRecord, *, caller_token: str | None = None) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._write(record, caller_token))
        except RuntimeError:
            log.warning("audit_dropped: no running event loop (request_id=%s)", record.request_id)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, record: AuditRecord, caller_token: str | None) -> None:
        try:
            if caller_token and self._identity is not None:
                user_id = await self._identity.resolve(caller_token)
                if user_id:
                    record = record.model_copy(update={"user_id": user_id})
            await asyncio.wait_for(self._store.append(record), timeout=self._timeout_sec)
        except asyncio.TimeoutError:
            log.warning("audit_write_timeout: request_id=%s after %gs", record.request_id, self._timeout_sec)
        except Exception as exc:
            log.warning("audit_write_failed: request_id=%s %s: %s", record.request_id, type(exc).__name__, exc)

    async def drain(self) -> None:
        """Wait for in-flight audit writes. Used at shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
