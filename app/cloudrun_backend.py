"""Cloud Run entrypoint for the Swastrica AI router API."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Awaitable

import httpx
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError as SchemaValidationError

from swastrica.config import Settings, get_settings
from swastrica.errors import ValidationError
from swastrica.pipeline import RouterPipeline, build_pipeline
from swastrica.providers import GENERATIVE_LANGUAGE_URL
from swastrica.router import BACKENDS
from swastrica.schemas import FinalResponse, RouterRequest
from swastrica.utils import utc_now

log = logging.getLogger("swastrica.api")

GENERIC_ERROR_TEXT = "I'm having trouble processing your request. Please try again."
DISCONNECT_POLL_SEC = 0.5
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def _error_body(message: str) -> dict[str, Any]:
    return {"response": message, "model": "none", "error": True}


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def _run_until_disconnect(request: Request, work: Awaitable[FinalResponse]) -> FinalResponse | None:
    """Run the pipeline, cancelling it if the caller goes away. None means cancelled."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SEC)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                log.info("client_disconnected: in-flight backend call cancelled")
                return None
    finally:
        if not task.done():
            task.cancel()


def create_app(settings: Settings | None = None, pipeline: RouterPipeline | None = None) -> FastAPI:
    settings = settings or get_settings()
    pipeline = pipeline or build_pipeline(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await pipeline.audit.drain()

    app = FastAPI(title="Swastrica AI Router (Cloud Run)", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # CORSMiddleware only acts on requests that send an Origin header.
    @app.middleware("http")
    async def _always_cors(request: Request, call_next):
        if request.method == "OPTIONS" and "access-control-request-method" not in request.headers:
            return Response(status_code=200, headers=CORS_HEADERS)
        response = await call_next(request)
        response.headers.setdefault("Access-Control-Allow-Origin", "*")
        return response

    app.state.settings = settings
    app.state.pipeline = pipeline

    @app.exception_handler(RequestValidationError)
    async def _request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
        log.info("request_rejected: %s", exc.errors()[:3])
        return JSONResponse(status_code=400, content=_error_body("Please provide a valid message."))

    @app.get("/health")
    async def health(probe: bool = False) -> dict[str, Any]:
        backends = {
            "gemini": {"configured": bool(settings.gemini_api_key), "model": settings.general_model},
            "medgemma-27b": {"configured": bool(settings.gemini_api_key), "model": settings.medical_model},
            "medgemma-4b": {"configured": settings.vision_configured, "model": settings.vision_model},
        }
        reachable = None
        if probe and settings.gemini_api_key:
            url = GENERATIVE_LANGUAGE_URL.format(model=settings.general_model).rsplit(":", 1)[0]
            try:
                async with httpx.AsyncClient(timeout=4.0) as client:
                    response = await client.get(url, params={"key": settings.gemini_api_key})
                    reachable = response.is_success
            except httpx.HTTPError:
                reachable = False

        return {
            "status": "ok",
            "service": settings.app_name,
            "timestamp": utc_now().isoformat(),
            "backends": backends,
            "known_backends": sorted(BACKENDS),
            "gemini_reachable": reachable,
            "probe_performed": probe,
            "identity_configured": bool(settings.supabase_url and settings.supabase_anon_key),
            "s3_configured": bool(settings.s3_bucket),
            "audit_pending": pipeline.audit.pending,
        }

    async def _route_query(request: Request, payload: Any = Body(...)) -> Response:
        try:
            router_request = RouterRequest.model_validate(payload)
        except SchemaValidationError as exc:
            log.info("request_rejected: %s", exc.errors()[:3])
            return JSONResponse(status_code=400, content=_error_body("Please provide a valid message."))

        try:
            final = await _run_until_disconnect(
                request,
                pipeline.handle(router_request, caller_token=_bearer_token(request)),
            )
        except ValidationError as exc:
            log.info("request_rejected: field=%s %s", exc.field, exc)
            return JSONResponse(status_code=400, content=_error_body(str(exc)))
        except Exception:
            log.exception("router_error: unexpected failure")
            return JSONResponse(status_code=500, content={**_error_body(GENERIC_ERROR_TEXT), "model": "error"})

        if final is None:
            return Response(status_code=499)
        return JSONResponse(status_code=200, content=final.to_payload())

    app.add_api_route("/ai-router", _route_query, methods=["POST"])
    app.add_api_route("/v1/router/query", _route_query, methods=["POST"])
    return app


logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(message)s")
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8080")))
