import asyncio
from pathlib import Path

from fastapi.testclient import TestClient
from stubs import MemoryAuditStore, StubBackend, make_settings, stub_backends, total_calls

import cloudrun_backend
from cloudrun_backend import create_app
from swastrica.pipeline import build_pipeline
from swastrica.router import GENERAL_BACKEND, MEDICAL_BACKEND
from swastrica.safety import MEDICAL_DISCLAIMER
from swastrica.schemas import RouterRequest

ORIGIN = {"Origin": "https://app.swastricare.com"}


def _client(tmp_path: Path, backends=None, store=None, **settings_overrides) -> TestClient:
    settings = make_settings(tmp_path, **settings_overrides)
    pipeline = build_pipeline(
        settings,
        backends=backends if backends is not None else stub_backends(),
        store=store if store is not None else MemoryAuditStore(),
    )
    return TestClient(create_app(settings, pipeline))


def test_emergency_returns_200_with_flags(tmp_path: Path):
    backends = stub_backends()
    with _client(tmp_path, backends) as client:
        response = client.post("/ai-router", json={"message": "I have chest pain and can't breathe"}, headers=ORIGIN)

    assert response.status_code == 200
    body = response.json()
    assert body["isEmergency"] is True
    assert body["model"] == "emergency"
    assert body["emergencyType"] == "cardiac"
    assert response.headers["access-control-allow-origin"] == "*"
    assert total_calls(backends) == 0


def test_medical_fallback_returns_200_degraded(tmp_path: Path):
    backends = stub_backends(medgemma_27b=StubBackend(MEDICAL_BACKEND, delay=5.0))
    with _client(tmp_path, backends, medical_timeout_sec=0.05) as client:
        response = client.post("/ai-router", json={"message": "What medication should I take for a headache?"})

    assert response.status_code == 200
    body = response.json()
    assert body["degraded"] is True
    assert body["model"] == GENERAL_BACKEND
    assert body["hasDisclaimer"] is True
    assert MEDICAL_DISCLAIMER in body["response"]


def test_both_backends_down_is_still_200(tmp_path: Path):
    backends = stub_backends(
        medgemma_27b=StubBackend(MEDICAL_BACKEND, delay=5.0),
        gemini=StubBackend(GENERAL_BACKEND, delay=5.0),
    )
    with _client(tmp_path, backends, medical_timeout_sec=0.05, general_timeout_sec=0.05) as client:
        response = client.post("/ai-router", json={"message": "My cough will not go away"})

    assert response.status_code == 200
    assert response.json()["model"] == "error"


def test_general_query_via_alias_route(tmp_path: Path):
    with _client(tmp_path) as client:
        response = client.post(
            "/v1/router/query",
            json={"message": "What's a good recipe for dinner?"},
            headers={"Authorization": "Bearer some-token"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["model"] == GENERAL_BACKEND
    assert "hasDisclaimer" not in body
    assert body.get("isMedical") in (None, False)


def test_validation_failures_return_400(tmp_path: Path):
    backends = stub_backends()
    with _client(tmp_path, backends, max_message_chars=50) as client:
        missing = client.post("/ai-router", json={"conversationHistory": []})
        empty = client.post("/ai-router", json={"message": ""})
        oversized = client.post("/ai-router", json={"message": "a" * 51})
        unknown_model = client.post("/ai-router", json={"message": "hello", "forceModel": "gpt-9"})
        not_json = client.post("/ai-router", content=b"not json", headers={"Content-Type": "application/json"})

    for response in (missing, empty, oversized, unknown_model, not_json):
        assert response.status_code == 400
        assert response.json()["error"] is True
    assert "gpt-9" in unknown_model.json()["response"]
    assert total_calls(backends) == 0


def test_unexpected_failure_returns_generic_500(tmp_path: Path):
    backends = stub_backends(gemini=StubBackend(GENERAL_BACKEND, error=RuntimeError("provider exploded")))
    with _client(tmp_path, backends) as client:
        response = client.post("/ai-router", json={"message": "Tell me a fun fact"})

    assert response.status_code == 500
    body = response.json()
    assert body["model"] == "error"
    assert "exploded" not in body["response"]


def test_cors_preflight(tmp_path: Path):
    with _client(tmp_path) as client:
        response = client.options(
            "/ai-router",
            headers={
                **ORIGIN,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_health_reports_backends(tmp_path: Path):
    with _client(tmp_path) as client:
        body = client.get("/health").json()

    assert body["status"] == "ok"
    assert set(body["known_backends"]) == {"gemini", "medgemma-27b", "medgemma-4b"}
    assert body["backends"]["medgemma-4b"]["configured"] is False


def test_cors_header_without_origin(tmp_path: Path):
    with _client(tmp_path) as client:
        ok = client.post("/ai-router", json={"message": "Suggest a playlist"})
        rejected = client.post("/ai-router", json={"message": ""})

    assert ok.status_code == 200
    assert rejected.status_code == 400
    for response in (ok, rejected):
        assert response.headers["access-control-allow-origin"] == "*"


def test_cors_header_on_server_error(tmp_path: Path):
    backends = stub_backends(gemini=StubBackend(GENERAL_BACKEND, error=RuntimeError("provider exploded")))
    with _client(tmp_path, backends) as client:
        response = client.post("/ai-router", json={"message": "Tell me a fun fact"})

    assert response.status_code == 500
    assert response.headers["access-control-allow-origin"] == "*"


def test_bare_options_is_ok(tmp_path: Path):
    with _client(tmp_path) as client:
        bare = client.options("/ai-router")
        origin_only = client.options("/ai-router", headers=ORIGIN)

    for response in (bare, origin_only):
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "authorization" in response.headers["access-control-allow-headers"]


class DisconnectedRequest:
    async def is_disconnected(self):
        return True


def test_client_disconnect_cancels_backend_call(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(cloudrun_backend, "DISCONNECT_POLL_SEC", 0.01)
    backends = stub_backends(medgemma_27b=StubBackend(MEDICAL_BACKEND, delay=5.0))
    store = MemoryAuditStore()
    pipeline = build_pipeline(make_settings(tmp_path), backends=backends, store=store)

    async def scenario():
        work = pipeline.handle(RouterRequest(message="What medication should I take for a headache?"))
        result = await cloudrun_backend._run_until_disconnect(DisconnectedRequest(), work)
        await asyncio.sleep(0.05)
        await pipeline.audit.drain()
        return result

    assert asyncio.run(scenario()) is None
    assert backends[MEDICAL_BACKEND].cancelled is True
    assert len(backends[GENERAL_BACKEND].calls) == 0
    assert store.records == []
