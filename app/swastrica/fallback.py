"""Single-level fallback from a specialized backend to the general one."""

from __future__ import annotations

import logging

from swastrica.errors import BACKEND_FAILURES, RouterError
from swastrica.invoker import BackendInvoker
from swastrica.router import ERROR_MODEL, GENERAL_BACKEND, NO_BACKEND, is_specialized
from swastrica.schemas import BackendResult, Query, RoutingDecision
from swastrica.utils import elapsed_ms, now_ms

log = logging.getLogger(__name__)

FALLBACK_NOTE = "Medical AI temporarily unavailable, using general AI"

APOLOGY_TEXT = (
    "I'm sorry, I'm having trouble answering right now. Please try again in a moment. "
    "For any urgent health concern, contact your healthcare provider or call emergency services."
)


def _error_type(exc: RouterError) -> str:
    kind = getattr(exc, "kind", None)
    return f"{type(exc).__name__}.{kind}" if kind else type(exc).__name__


class FallbackController:
    """At most two backend calls per query: the primary, then `gemini` once."""

    def __init__(self, invoker: BackendInvoker, *, general_backend: str = GENERAL_BACKEND):
        self._invoker = invoker
        self._general_backend = general_backend

    def _apology(self, attempts: list[str], error_type: str, started: float) -> BackendResult:
        return BackendResult(
            text=APOLOGY_TEXT,
            backend=ERROR_MODEL,
            degraded=True,
            elapsed_ms=elapsed_ms(started),
            attempts=attempts,
            error_type=error_type,
        )

    async def invoke_with_fallback(self, decision: RoutingDecision, query: Query) -> BackendResult:
        if decision.target == NO_BACKEND:
            raise ValueError("emergency decisions must not reach a backend")

        started = now_ms()
        primary = decision.target
        try:
            return await self._invoker.invoke(primary, query)
        except BACKEND_FAILURES as exc:
            primary_error = _error_type(exc)
            log.warning("backend_failed: request_id=%s backend=%s error=%s", query.request_id, primary, exc)

        if not is_specialized(primary):
            log.error("general_backend_failed: request_id=%s; returning apology", query.request_id)
            return self._apology([primary], primary_error, started)

        log.info("fallback_invoked: request_id=%s from=%s to=%s", query.request_id, primary, self._general_backend)
        try:
            result = await self._invoker.invoke(self._general_backend, query)
        except BACKEND_FAILURES as exc:
            log.error(
                "fallback_failed: request_id=%s backend=%s error=%s; returning apology",
                query.request_id,
                self._general_backend,
                exc,
            )
            return self._apology([primary, self._general_backend], primary_error, started)

        return result.model_copy(
            update={
                "degraded": True,
                "note": FALLBACK_NOTE,
                "attempts": [primary, self._general_backend],
                "error_type": primary_error,
                "elapsed_ms": elapsed_ms(started),
            }
        )
