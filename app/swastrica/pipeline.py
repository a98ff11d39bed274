"""End-to-end query handling: classify, route, invoke, finalize, audit."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from uuid import uuid4

from swastrica.audit import AuditLogger, AuditSink, make_audit_record
from swastrica.classifier import QueryClassifier
from swastrica.config import Settings
from swastrica.errors import ValidationError
from swastrica.fallback import FallbackController
from swastrica.identity import IdentityResolver, build_identity_resolver
from swastrica.invoker import BackendInvoker
from swastrica.providers import ModelBackend, build_backends
from swastrica.router import NO_BACKEND, resolve_backend, route
from swastrica.safety import finalize
from swastrica.schemas import FinalResponse, Query, RouterRequest
from swastrica.storage import AuditStore
from swastrica.utils import elapsed_ms, now_ms, preview

log = logging.getLogger(__name__)


def build_query(
    request: RouterRequest,
    settings: Settings,
    *,
    caller_token: str | None = None,
    request_id: str | None = None,
) -> Query:
    text = request.message.strip()
    if not text:
        raise ValidationError("Please provide a valid message.", field="message")
    if len(text) > settings.max_message_chars:
        raise ValidationError(
            f"Message is too long. Please keep it under {settings.max_message_chars} characters.",
            field="message",
        )

    override = resolve_backend(request.force_model)
    history = tuple(request.conversation_history)
    if settings.max_history_turns > 0:
        history = history[-settings.max_history_turns :]
    else:
        history = ()

    return Query(
        request_id=request_id or str(uuid4()),
        text=text,
        image_b64=(request.image_data or "").strip() or None,
        image_type=request.image_type,
        analysis_type=request.analysis_type,
        history=history,
        override=override,
        caller_token=caller_token,
    )


class RouterPipeline:
    def __init__(
        self,
        controller: FallbackController,
        audit: AuditLogger,
        settings: Settings,
        *,
        classifier: QueryClassifier | None = None,
    ):
        self._controller = controller
        self._audit = audit
        self._settings = settings
        self._classifier = classifier or QueryClassifier()

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    async def handle(
        self,
        request: RouterRequest,
        *,
        caller_token: str | None = None,
        request_id: str | None = None,
    ) -> FinalResponse:
        query = build_query(request, self._settings, caller_token=caller_token, request_id=request_id)
        return await self.run(query)

    async def run(self, query: Query) -> FinalResponse:
        started = now_ms()
        log.info(
            "query_received: request_id=%s preview=%r history=%d image=%s override=%s",
            query.request_id,
            preview(query.text),
            len(query.history),
            query.has_image,
            query.override or "auto",
        )

        classification = self._classifier.classify(query)
        decision = route(classification, query.override)
        log.info(
            "router_decision: request_id=%s category=%s target=%s reason=%s matched=%s",
            query.request_id,
            classification.category,
            decision.target,
            decision.reason,
            list(classification.matched_terms[:5]),
        )

        result = None
        if decision.target != NO_BACKEND:
            result = await self._controller.invoke_with_fallback(decision, query)

        final = finalize(classification, result, apply_safety=decision.apply_safety)
        took = elapsed_ms(started)
        log.info(
            "query_finalized: request_id=%s model=%s degraded=%s elapsed_ms=%d",
            query.request_id,
            final.model,
            bool(final.degraded),
            took,
        )

        self._audit.record(
            make_audit_record(
                query,
                classification,
                decision,
                result,
                final,
                query_chars=self._settings.audit_query_chars,
                processing_time_ms=took,
            ),
            caller_token=query.caller_token,
        )
        return final


def build_pipeline(
    settings: Settings,
    *,
    backends: Mapping[str, ModelBackend] | None = None,
    store: AuditSink | None = None,
    identity: IdentityResolver | None = None,
) -> RouterPipeline:
    invoker = BackendInvoker(backends if backends is not None else build_backends(settings), settings)
    audit = AuditLogger(
        store if store is not None else AuditStore(settings),
        identity=identity if identity is not None else build_identity_resolver(settings),
        timeout_sec=settings.audit_timeout_sec,
    )
    return RouterPipeline(FallbackController(invoker), audit, settings)
