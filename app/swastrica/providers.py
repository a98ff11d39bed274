"""Model backend clients.

Every backend satisfies the same `ModelBackend` protocol: send a prompt (and
optionally one image), get text back. Transport failures are raised as raw
httpx exceptions and classified by the invoker.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from swastrica.config import Settings
from swastrica.errors import ParseError, UpstreamError
from swastrica.media import ImagePart
from swastrica.router import GENERAL_BACKEND, MEDICAL_BACKEND, VISION_BACKEND

GENERATIVE_LANGUAGE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
VERTEX_URL = (
    "https://{location}-aiplatform.googleapis.com/v1/projects/{project}/locations/{location}"
    "/publishers/google/models/{model}:generateContent"
)

_BLOCK_ONLY_HIGH = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"},
]


class ModelBackend(Protocol):
    backend_id: str
    accepts_images: bool

    async def answer(self, prompt: str, image: ImagePart | None, timeout_sec: float) -> str:
        ...


def extract_candidate_text(payload: Any, backend_id: str) -> str:
    """Text of the first candidate of a `generateContent` response."""
    if not isinstance(payload, dict):
        raise ParseError(backend_id, f"expected JSON object, got {type(payload).__name__}")

    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        feedback = payload.get("promptFeedback")
        reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        raise ParseError(backend_id, f"no candidates (blocked: {reason})" if reason else "no candidates")

    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        raise ParseError(backend_id, "candidate has no content parts")

    text = "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict)).strip()
    if not text:
        raise ParseError(backend_id, "empty answer text")
    return text


def _contents(prompt: str, image: ImagePart | None) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [{"text": prompt}]
    if image is not None:
        parts.append(image.as_inline_data())
    return [{"parts": parts}]


async def _post_generate_content(
    url: str,
    body: dict[str, Any],
    *,
    timeout_sec: float,
    params: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    async with httpx.AsyncClient(timeout=timeout_sec, transport=transport) as client:
        response = await client.post(url, params=params, headers=headers, json=body)
        response.raise_for_status()
        return response.json()


class GeminiBackend:
    """Google Generative Language API (general and specialized text backends)."""

    accepts_images = True

    def __init__(
        self,
        backend_id: str,
        settings: Settings,
        *,
        model_name: str,
        generation_config: dict[str, Any],
        safety_settings: list[dict[str, str]] | None = None,
        accepts_images: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.backend_id = backend_id
        self.accepts_images = accepts_images
        self._settings = settings
        self._model_name = model_name
        self._generation_config = generation_config
        self._safety_settings = safety_settings
        self._transport = transport

    async def answer(self, prompt: str, image: ImagePart | None, timeout_sec: float) -> str:
        if not self._settings.gemini_api_key:
            raise UpstreamError(self.backend_id, "unconfigured", "GOOGLE_AI_API_KEY not set")

        body: dict[str, Any] = {
            "contents": _contents(prompt, image if self.accepts_images else None),
            "generationConfig": dict(self._generation_config),
        }
        if self._safety_settings:
            body["safetySettings"] = self._safety_settings

        payload = await _post_generate_content(
            GENERATIVE_LANGUAGE_URL.format(model=self._model_name),
            body,
            timeout_sec=timeout_sec,
            params={"key": self._settings.gemini_api_key},
            transport=self._transport,
        )
        return extract_candidate_text(payload, self.backend_id)


class VertexMedGemmaBackend:
    """MedGemma multimodal model hosted on Vertex AI."""

    accepts_images = True

    def __init__(
        self,
        settings: Settings,
        *,
        backend_id: str = VISION_BACKEND,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.backend_id = backend_id
        self._settings = settings
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return VERTEX_URL.format(
            location=self._settings.vertex_location,
            project=self._settings.vertex_project_id,
            model=self._settings.vision_model,
        )

    async def answer(self, prompt: str, image: ImagePart | None, timeout_sec: float) -> str:
        if not self._settings.vision_configured:
            raise UpstreamError(self.backend_id, "unconfigured", "Vertex AI project or MedGemma key missing")

        body = {
            "contents": _contents(prompt, image),
            "generationConfig": {
                "temperature": 0.2,
                "maxOutputTokens": 2048,
                "topP": 0.8,
                "topK": 40,
            },
        }
        payload = await _post_generate_content(
            self.endpoint,
            body,
            timeout_sec=timeout_sec,
            headers={"Authorization": f"Bearer {self._settings.medgemma_api_key}"},
            transport=self._transport,
        )
        return extract_candidate_text(payload, self.backend_id)


def build_backends(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, ModelBackend]:
    return {
        GENERAL_BACKEND: GeminiBackend(
            GENERAL_BACKEND,
            settings,
            model_name=settings.general_model,
            generation_config={"temperature": 0.8, "maxOutputTokens": 512},
            transport=transport,
        ),
        MEDICAL_BACKEND: GeminiBackend(
            MEDICAL_BACKEND,
            settings,
            model_name=settings.medical_model,
            generation_config={"temperature": 0.4, "maxOutputTokens": 1024},
            safety_settings=_BLOCK_ONLY_HIGH,
            accepts_images=False,
            transport=transport,
        ),
        VISION_BACKEND: VertexMedGemmaBackend(settings, transport=transport),
    }
