"""Single bounded call to one model backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

import httpx

from swastrica.config import Settings
from swastrica.errors import ParseError, UpstreamError
from swastrica.media import to_image_part
from swastrica.prompts import build_prompt
from swastrica.providers import ModelBackend
from swastrica.router import timeout_for
from swastrica.schemas import BackendResult, Query
from swastrica.utils import elapsed_ms, now_ms

log = logging.getLogger(__name__)


class BackendInvoker:
    def __init__(self, backends: Mapping[str, ModelBackend], settings: Settings):
        self._backends = dict(backends)
        self._settings = settings

    async def invoke(
        self,
        backend_id: str,
        query: Query,
        *,
        timeout_sec: float | None = None,
    ) -> BackendResult:
        """Call `backend_id` exactly once.

        The call is cancelled at the timeout boundary. Every failure comes out
        as UpstreamError (timeout, status, network, unconfigured) or ParseError.
        """
        backend = self._backends.get(backend_id)
        if backend is None:
            raise UpstreamError(backend_id, "unconfigured", "no backend registered")

        timeout = timeout_sec if timeout_sec is not None else timeout_for(backend_id, self._settings)
        prompt = build_prompt(backend_id, query, max_history=self._settings.max_history_turns)
        image = None
        if query.image_b64 and backend.accepts_images:
            image = to_image_part(query.image_b64, query.image_type)

        started = now_ms()
        try:
            text = await asyncio.wait_for(backend.answer(prompt, image, timeout), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamError(backend_id, "timeout", f"no answer within {timeout:g}s") from exc
        except httpx.TimeoutException as exc:
            raise UpstreamError(backend_id, "timeout", type(exc).__name__) from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                backend_id,
                "status",
                exc.response.text[:180],
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(backend_id, "network", f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            # Undecodable JSON body.
            raise ParseError(backend_id, f"{type(exc).__name__}: {exc}") from exc

        if not isinstance(text, str) or not text.strip():
            raise ParseError(backend_id, "empty answer text")

        took = elapsed_ms(started)
        log.info("backend_answered: backend=%s elapsed_ms=%d chars=%d", backend_id, took, len(text))
        return BackendResult(
            text=text.strip(),
            backend=backend_id,
            elapsed_ms=took,
            attempts=[backend_id],
        )
