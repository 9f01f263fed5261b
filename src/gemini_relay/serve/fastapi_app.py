"""FastAPI relay in front of Gemini generateContent.

Endpoints:
- GET  /               service description
- GET  /api/health
- POST /api/generate   multipart: prompt (required), image (optional file)
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gemini_relay import __version__
from gemini_relay.common.config import Settings, load_settings
from gemini_relay.common.errors import InvalidInput, RelayError
from gemini_relay.common.presets import load_presets, resolve_prompt
from gemini_relay.common.schema import GenerationRequest, HealthOut
from gemini_relay.serve.presenter import present, render_error
from gemini_relay.serve.uploads import read_generation_input
from gemini_relay.upstream.invoker import GeminiInvoker
from gemini_relay.upstream.rotator import CredentialRotator

LOGGER = logging.getLogger("gemini_relay.serve.app")

router = APIRouter(prefix="/api")


@router.get("/health", response_model=HealthOut)
def health(request: Request) -> HealthOut:
    return HealthOut(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        model=request.app.state.settings.model_name,
    )


@router.post("/generate")
async def generate(request: Request) -> JSONResponse:
    settings: Settings = request.app.state.settings
    invoker: GeminiInvoker = request.app.state.invoker

    prompt, image = await read_generation_input(request, settings.max_upload_bytes)
    if not prompt or not prompt.strip():
        raise InvalidInput("Text prompt (prompt) is required and cannot be empty.")

    final_prompt = resolve_prompt(request.app.state.presets, prompt)
    LOGGER.info("New generation request: prompt=%r expanded=%s", prompt.strip()[:80], final_prompt != prompt.strip())

    outcome = await invoker.generate(GenerationRequest(prompt_text=final_prompt, image=image))
    LOGGER.info("Model response type: %s", type(outcome).__name__)
    return present(outcome, production=settings.is_production)


def _service_info() -> dict[str, object]:
    return {
        "message": "Welcome to the Gemini image generation relay",
        "version": __version__,
        "endpoints": {
            "generate": {
                "method": "POST",
                "path": "/api/generate",
                "description": "Generate content (text or image) based on prompt and optional image input.",
                "body": "multipart/form-data",
                "fields": {
                    "prompt": "string (required) - The text prompt for the model, or a preset code.",
                    "image": "file (optional) - An image file to include in the request.",
                },
            },
            "health": {
                "method": "GET",
                "path": "/api/health",
                "description": "Check the health status of the API.",
            },
        },
    }


def build_invoker(settings: Settings) -> GeminiInvoker:
    return GeminiInvoker(
        CredentialRotator(settings.api_keys),
        model_name=settings.model_name,
        base_url=settings.base_url,
        timeout=settings.request_timeout_s,
        generation_config=settings.generation_config,
        safety_settings=settings.safety_settings,
        include_raw=not settings.is_production,
    )


def create_app(settings: Settings | None = None, invoker: GeminiInvoker | None = None) -> FastAPI:
    """
    Build the relay application.

    Args:
        settings: Configuration; read from the environment when omitted.
        invoker: Upstream invoker; built from ``settings`` when omitted.

    Raises:
        ConfigurationError: if no API key is configured.
    """
    settings = settings or load_settings()
    invoker = invoker or build_invoker(settings)

    app = FastAPI(title="gemini-relay", version=__version__)
    app.state.settings = settings
    app.state.invoker = invoker
    app.state.presets = load_presets(settings.prompt_presets_path)
    app.include_router(router)

    @app.get("/")
    def root() -> dict[str, object]:
        return _service_info()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # noqa: ANN001, ANN202
        client = request.client.host if request.client else "-"
        LOGGER.info("%s %s from %s", request.method, request.url.path, client)
        return await call_next(request)

    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError) -> JSONResponse:
        LOGGER.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        if exc.details:
            LOGGER.debug("Error details: %s", exc.details)
        return render_error(exc, production=settings.is_production)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                {
                    "error": "Not Found",
                    "message": f"The requested path '{request.url.path}' does not exist on this server.",
                },
                status_code=404,
            )
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "An unexpected error occurred." if settings.is_production else str(exc)
        return JSONResponse({"error": "Internal Server Error", "message": message}, status_code=500)

    LOGGER.info(
        "Relay ready: model=%s keys=%d env=%s",
        settings.model_name,
        len(invoker.rotator),
        settings.app_env,
    )
    return app
