"""Tribeboard — FastAPI Application.

This module defines the application factory, the REST routes for the image
submission pipeline, and the ``main()`` CLI function that launches uvicorn.

Architecture
------------
The application is a stateless request pipeline:

- **Configuration** is a :class:`~tribeboard.core.config.TribeboardConfig`
  passed to :func:`create_app`; no route reads the environment.
- **Collaborators** (result lookup, object storage, image generator) are
  injected into the factory.  When none are given, Supabase-backed ones are
  built from the configuration on first use, so a missing credential
  surfaces as ``CONFIGURATION_ERROR`` on the request rather than a crash at
  import time.
- **Responses** always use the success/error envelope from
  :mod:`tribeboard.api.responses`.  Handled failures never escape as bare
  transport errors.

Endpoints
---------
=======  ========================================  ==========================
Method   Path                                      Purpose
=======  ========================================  ==========================
POST     ``/functions/v1/upload-moodboard-image``  Store a moodboard image
POST     ``/functions/v1/generate-image``          Generate selfie images
OPTIONS  both of the above                         CORS pre-flight
GET      ``/health``                               Liveness and version
=======  ========================================  ==========================

Any other verb on the pipeline paths returns ``METHOD_NOT_ALLOWED``.

Usage
-----
CLI (installed entry point)::

    tribeboard

Direct invocation::

    python -m tribeboard.api.main
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from tribeboard import __version__
from tribeboard.api.models import GenerateImageData, GeneratedImageData, UploadMoodboardImageData
from tribeboard.api.responses import error_response, fail, ok, preflight
from tribeboard.core.config import TribeboardConfig, config
from tribeboard.core.errors import (
    ErrorCode,
    InvalidJSONError,
    MethodNotAllowedError,
    PipelineError,
)
from tribeboard.core.generation import (
    GenerationPipeline,
    ImageGenerator,
    PassthroughImageGenerator,
)
from tribeboard.core.prompts import PromptResolver
from tribeboard.core.storage import StorageUploader, moodboard_image_key
from tribeboard.core.supabase_client import (
    ObjectStore,
    SupabaseObjectStore,
    SupabaseTribeLookup,
    TribeLookup,
    get_supabase,
)
from tribeboard.core.validation import validate_generation_request, validate_upload_request

logger = logging.getLogger(__name__)

UPLOAD_MOODBOARD_PATH = "/functions/v1/upload-moodboard-image"
GENERATE_IMAGE_PATH = "/functions/v1/generate-image"
UNSUPPORTED_METHODS = ["GET", "HEAD", "PUT", "PATCH", "DELETE"]


# ---------------------------------------------------------------------------
# Service wiring.
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Per-application pipeline components built from configuration."""

    config: TribeboardConfig
    moodboard_uploader: StorageUploader
    generation: GenerationPipeline


def build_services(
    cfg: TribeboardConfig,
    *,
    object_store: ObjectStore,
    tribe_lookup: TribeLookup,
    generator: ImageGenerator | None = None,
    clock: Callable[[], float] = time.time,
) -> Services:
    """Assemble the pipeline components around the given collaborators."""
    uploader = StorageUploader(
        object_store,
        public_base=cfg.public_base_url,
        internal_base=cfg.internal_storage_base,
        clock=clock,
    )
    pipeline = GenerationPipeline(
        resolver=PromptResolver(tribe_lookup),
        generator=generator or PassthroughImageGenerator(quality=cfg.jpeg_quality),
        uploader=uploader,
        lookup=tribe_lookup,
        bucket=cfg.generated_images_bucket,
    )
    return Services(config=cfg, moodboard_uploader=uploader, generation=pipeline)


def _get_services(app: FastAPI) -> Services:
    """Return the app's services, building Supabase collaborators on first use.

    Raises:
        ConfigurationError: If Supabase credentials are missing.
    """
    services: Services | None = app.state.services
    if services is None:
        cfg: TribeboardConfig = app.state.config
        client = get_supabase(cfg)
        services = build_services(
            cfg,
            object_store=SupabaseObjectStore(client),
            tribe_lookup=SupabaseTribeLookup(client),
            generator=app.state.generator,
        )
        app.state.services = services
    return services


# ---------------------------------------------------------------------------
# Request helpers.
# ---------------------------------------------------------------------------


async def _read_json(request: Request) -> Any:
    """Parse the request body as JSON.

    ``NaN`` and ``Infinity`` tokens are not JSON and are rejected along with
    any other malformed body.

    Raises:
        InvalidJSONError: If the body is empty or not valid JSON.
    """
    raw = await request.body()
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except ValueError as e:
        raise InvalidJSONError("Request body must be valid JSON") from e


def _reject_constant(token: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {token}")


async def _run(
    request: Request,
    handler: Callable[[FastAPI, Any], Awaitable[Response]],
) -> Response:
    """Run *handler* and convert every failure into an error envelope."""
    try:
        body = await _read_json(request)
        return await handler(request.app, body)
    except PipelineError as e:
        logger.warning(f"{request.url.path} failed with {e.code.value}: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Unexpected error on {request.url.path}")
        return fail(ErrorCode.INTERNAL_ERROR, str(e) or "An unexpected error occurred")


# ---------------------------------------------------------------------------
# Pipeline handlers.
#
# Each handler validates the body before touching services, so a malformed
# request is reported as such even when Supabase is not configured.
# ---------------------------------------------------------------------------


async def _upload_moodboard_image(app: FastAPI, body: Any) -> Response:
    cfg: TribeboardConfig = app.state.config
    upload = validate_upload_request(
        body,
        max_bytes=cfg.max_upload_bytes,
        allowed_types=cfg.allowed_mime_types,
    )

    uploader = _get_services(app).moodboard_uploader
    key = moodboard_image_key(upload.owner_id, upload.file_name, now_ms=uploader.now_ms())
    logger.info(f"Uploading moodboard image: {key}")

    stored = await uploader.upload(
        upload.payload,
        upload.mime_type,
        key,
        bucket=cfg.moodboard_bucket,
        overwrite=True,
        cache_control=cfg.cache_control,
    )
    logger.info(f"Successfully uploaded moodboard image: {stored.public_url}")
    return ok(UploadMoodboardImageData(imageUrl=stored.public_url))


async def _generate_image(app: FastAPI, body: Any) -> Response:
    generation = validate_generation_request(
        body,
        max_images=app.state.config.max_images_per_request,
    )
    images = await _get_services(app).generation.run(generation)
    return ok(
        GenerateImageData(
            imageUrl=images[0].url,
            userResultId=generation.result_id,
            images=[GeneratedImageData(url=image.url, prompt=image.prompt) for image in images],
        )
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter()


@router.options(UPLOAD_MOODBOARD_PATH)
@router.options(GENERATE_IMAGE_PATH)
async def cors_preflight() -> Response:
    """Answer CORS pre-flight requests for the pipeline endpoints."""
    return preflight()


@router.post(UPLOAD_MOODBOARD_PATH)
async def upload_moodboard_image(request: Request) -> Response:
    """Store a curated moodboard image for a subculture.

    Request body::

        {"subcultureId": uuid, "fileName": str, "fileType": mime,
         "fileSize": int, "fileData": base64}

    Returns:
        ``{"success": true, "data": {"imageUrl": str}}`` or an error envelope.
    """
    return await _run(request, _upload_moodboard_image)


@router.post(GENERATE_IMAGE_PATH)
async def generate_image(request: Request) -> Response:
    """Generate personalized images from a selfie.

    Request body::

        {"userResultId": uuid, "userPhoto": base64,
         "prompt": str | null, "numberOfImages": int | null}

    When ``prompt`` is omitted the prompt of the user's tribe is used.

    Returns:
        ``{"success": true, "data": {"imageUrl", "userResultId", "images"}}``
        or an error envelope.
    """
    return await _run(request, _generate_image)


@router.api_route(UPLOAD_MOODBOARD_PATH, methods=UNSUPPORTED_METHODS)
@router.api_route(GENERATE_IMAGE_PATH, methods=UNSUPPORTED_METHODS)
async def method_not_allowed() -> Response:
    return error_response(MethodNotAllowedError("Only POST method is allowed"))


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__}


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log startup and drop lazily built collaborators on shutdown.

    Collaborators injected through :func:`create_app` survive a restart.
    """
    logger.info(f"Tribeboard API {__version__} starting.")
    yield
    app.state.services = app.state.injected_services
    logger.info("Tribeboard API stopped.")


def create_app(
    cfg: TribeboardConfig | None = None,
    *,
    object_store: ObjectStore | None = None,
    tribe_lookup: TribeLookup | None = None,
    generator: ImageGenerator | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        cfg: Configuration; defaults to the global ``config`` instance.
        object_store: Object storage collaborator.  Must be given together
            with ``tribe_lookup``; when both are omitted Supabase-backed
            collaborators are built lazily.
        tribe_lookup: Result/tribe lookup collaborator.
        generator: Image generator; defaults to the passthrough generator.
        clock: Time source for storage keys.

    Returns:
        The configured application.
    """
    cfg = cfg or config

    app = FastAPI(
        title="Tribeboard",
        description="Selfie submission and tribe moodboard image pipeline.",
        version=__version__,
        lifespan=lifespan,
    )

    # Browser pre-flights carrying Origin are answered here; the handlers add
    # the same headers to every envelope for non-browser callers.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_allow_origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=cfg.cors_allow_headers,
    )

    app.state.config = cfg
    app.state.generator = generator
    app.state.injected_services = None
    if object_store is not None and tribe_lookup is not None:
        app.state.injected_services = build_services(
            cfg,
            object_store=object_store,
            tribe_lookup=tribe_lookup,
            generator=generator,
            clock=clock,
        )
    app.state.services = app.state.injected_services

    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port, and log level from :data:`~tribeboard.core.config.config`
    (``TRIBEBOARD_SERVER_HOST``, ``TRIBEBOARD_SERVER_PORT``,
    ``TRIBEBOARD_LOG_LEVEL``).  Registered as the ``tribeboard`` console script
    in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "tribeboard.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
