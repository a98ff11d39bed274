import asyncio
from pathlib import Path

from swastrica.config import Settings
from swastrica.errors import PersistenceError
from swastrica.router import GENERAL_BACKEND, MEDICAL_BACKEND, VISION_BACKEND


class StubBackend:
    def __init__(
        self,
        backend_id: str,
        *,
        text: str | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        accepts_images: bool = True,
    ):
        self.backend_id = backend_id
        self.accepts_images = accepts_images
        self.text = text if text is not None else f"answer from {backend_id}"
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []
        self.cancelled = False

    async def answer(self, prompt, image, timeout_sec):
        self.calls.append({"prompt": prompt, "image": image, "timeout_sec": timeout_sec})
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return self.text


def stub_backends(**overrides: StubBackend) -> dict[str, StubBackend]:
    backends = {
        GENERAL_BACKEND: StubBackend(GENERAL_BACKEND),
        MEDICAL_BACKEND: StubBackend(MEDICAL_BACKEND, accepts_images=False),
        VISION_BACKEND: StubBackend(VISION_BACKEND),
    }
    for key, backend in overrides.items():
        backends[key.replace("_", "-")] = backend
    return backends


def total_calls(backends: dict[str, StubBackend]) -> int:
    return sum(len(b.calls) for b in backends.values())


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "local_storage_dir": str(tmp_path),
        "gemini_api_key": None,
        "vertex_project_id": None,
        "medgemma_api_key": None,
        "supabase_url": None,
        "supabase_anon_key": None,
        "s3_bucket": None,
        "general_timeout_sec": 2.0,
        "medical_timeout_sec": 3.0,
        "vision_timeout_sec": 4.0,
        "max_message_chars": 4000,
        "max_history_turns": 10,
        "audit_query_chars": 200,
        "audit_timeout_sec": 1.0,
    }
    values.update(overrides)
    return Settings(**values)


class MemoryAuditStore:
    def __init__(self):
        self.records = []

    async def append(self, record):
        self.records.append(record)


class FailingAuditStore:
    def __init__(self):
        self.attempts = 0

    async def append(self, record):
        self.attempts += 1
        raise PersistenceError("audit table unavailable")
