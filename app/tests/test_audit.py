import asyncio
from pathlib import Path

from stubs import FailingAuditStore, MemoryAuditStore, make_settings

from swastrica.audit import AuditLogger, make_audit_record
from swastrica.router import GENERAL_BACKEND, route
from swastrica.safety import finalize
from swastrica.schemas import AuditRecord, BackendResult, Classification, Query
from swastrica.storage import AuditStore
from swastrica.utils import utc_now


class FixedIdentity:
    def __init__(self, user_id):
        self.user_id = user_id
        self.tokens = []

    async def resolve(self, token):
        self.tokens.append(token)
        return self.user_id


class SlowStore:
    async def append(self, record):
        await asyncio.sleep(5)


def _record(request_id: str = "req-audit", summary: str = "hello") -> AuditRecord:
    return AuditRecord(
        timestamp=utc_now(),
        request_id=request_id,
        category="general",
        query_type="general_chat",
        routing_reason="default",
        backend_used=GENERAL_BACKEND,
        query_summary=summary,
        success=True,
    )


def test_make_audit_record_truncates_query():
    query = Query(request_id="req-1", text="fever " * 100)
    classification = Classification(category="medical-text", matched_terms=("fever",))
    decision = route(classification)
    result = BackendResult(text="ok", backend="medgemma-27b")
    final = finalize(classification, result)

    record = make_audit_record(
        query, classification, decision, result, final, query_chars=20, processing_time_ms=12
    )

    assert len(record.query_summary) == 20
    assert record.query_type == "medical_chat"
    assert record.disclaimer_shown is True
    assert record.success is True
    assert record.fallback_used is False
    assert record.response_length == len(final.response)


def test_record_does_not_block_and_persists_later():
    store = MemoryAuditStore()
    audit = AuditLogger(store)

    async def scenario():
        audit.record(_record())
        assert store.records == []
        await audit.drain()

    asyncio.run(scenario())
    assert len(store.records) == 1


def test_persistence_failure_is_swallowed():
    store = FailingAuditStore()
    audit = AuditLogger(store)

    async def scenario():
        audit.record(_record())
        await audit.drain()

    asyncio.run(scenario())
    assert store.attempts == 1
    assert audit.pending == 0


def test_slow_store_is_bounded_by_timeout():
    audit = AuditLogger(SlowStore(), timeout_sec=0.05)

    async def scenario():
        audit.record(_record())
        await audit.drain()

    asyncio.run(scenario())
    assert audit.pending == 0


def test_caller_token_resolved_inside_audit_task():
    store = MemoryAuditStore()
    identity = FixedIdentity("user-42")
    audit = AuditLogger(store, identity=identity)

    async def scenario():
        audit.record(_record(), caller_token="tok")
        await audit.drain()

    asyncio.run(scenario())
    assert identity.tokens == ["tok"]
    assert store.records[0].user_id == "user-42"


def test_record_without_event_loop_is_dropped():
    store = MemoryAuditStore()
    AuditLogger(store).record(_record())
    assert store.records == []


def test_audit_store_appends_json_lines(tmp_path: Path):
    store = AuditStore(make_settings(tmp_path))

    asyncio.run(store.append(_record("req-a")))
    asyncio.run(store.append(_record("req-b")))

    rows = store.read_records()
    assert [row["request_id"] for row in rows] == ["req-a", "req-b"]
    assert store.audit_file == tmp_path / "logs" / "audit.jsonl"
