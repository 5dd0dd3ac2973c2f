"""Visual recognition (batch OCR) route."""

from __future__ import annotations

import logging
from functools import partial

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from ..config import ConfigurationError, Settings, get_settings
from ..providers.client import UpstreamClient
from ..relay.vision import (
    DEFAULT_EXTRACTION_PROMPT,
    BatchImageProcessor,
    BatchItem,
    ImagePayload,
    VisionClient,
    fetch_image_as_base64,
)
from ..schemas.events import to_sse
from ..schemas.vision import VisualRecognitionRequest
from ..services.project_store import (
    AccessDeniedError,
    ProjectStoreError,
    ProjectStoreProtocol,
    ensure_project_access,
)
from .dependencies import (
    StoreFactory,
    error_response,
    event_stream_response,
    get_store_factory,
    get_upstream_client,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["vision"])


def _stream_job(job, *, on_close=None) -> EventSourceResponse:
    async def event_publisher():
        async for event in job:
            yield to_sse(event)

    return event_stream_response(event_publisher(), on_close=on_close)


@router.post("/visual-recognition", response_model=None, status_code=200)
async def visual_recognition(
    payload: VisualRecognitionRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    upstream: UpstreamClient = Depends(get_upstream_client),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> EventSourceResponse | JSONResponse:
    """Extract text from images, streaming per-item results as they settle."""

    logger.info(
        "visual-recognition request: artifacts=%s images=%s project=%s model=%s mode=%s",
        len(payload.artifact_ids or []),
        len(payload.images or []),
        payload.project_id,
        payload.model,
        payload.mode,
    )

    try:
        settings.require_secret("gemini_api_key", "GEMINI_API_KEY")
    except ConfigurationError as exc:
        return error_response(500, str(exc))

    vision = VisionClient(upstream, settings, payload.model)
    prompt = payload.prompt or DEFAULT_EXTRACTION_PROMPT

    if payload.images:
        items = [
            BatchItem(
                id=image.id,
                image=ImagePayload(mime_type=image.mime_type, data=image.base64),
                existing_text=image.existing_text,
            )
            for image in payload.images
        ]
        logger.info("Processing %d inline images with model %s", len(items), vision.model)
        processor = BatchImageProcessor(
            vision.extract_text, batch_size=settings.vision_batch_size
        )
        return _stream_job(processor.run(items, mode=payload.mode, prompt=prompt))

    if not payload.artifact_ids:
        return error_response(400, "Either artifactIds or images array is required")
    if not payload.project_id:
        return error_response(400, "projectId is required")

    authorization = request.headers.get("authorization")
    try:
        store = await store_factory(authorization)
    except ConfigurationError as exc:
        return error_response(500, str(exc))

    # The store stays open until the stream has persisted its results.
    streaming = False
    try:
        response = await _stream_artifacts(
            payload, store, vision, upstream, settings, prompt
        )
        streaming = isinstance(response, EventSourceResponse)
        return response
    finally:
        if not streaming:
            await store.aclose()


async def _stream_artifacts(
    payload: VisualRecognitionRequest,
    store: ProjectStoreProtocol,
    vision: VisionClient,
    upstream: UpstreamClient,
    settings: Settings,
    prompt: str,
) -> EventSourceResponse | JSONResponse:
    try:
        await ensure_project_access(store, payload.project_id, payload.share_token)
        artifacts = await store.get_artifacts(payload.project_id, payload.share_token)
    except AccessDeniedError:
        return error_response(403, "Access denied")
    except ProjectStoreError as exc:
        logger.error("Error fetching artifacts: %s", exc)
        return error_response(500, "Failed to fetch artifacts")

    wanted = set(payload.artifact_ids)
    items = [
        BatchItem(
            id=artifact["id"],
            image_url=artifact["image_url"],
            existing_text=artifact.get("content"),
        )
        for artifact in artifacts
        if artifact.get("id") in wanted and artifact.get("image_url")
    ]
    if not items:
        return error_response(400, "No valid artifacts with images found")

    share_token = payload.share_token

    async def _persist(artifact_id: str, content: str) -> None:
        await store.update_artifact_content(artifact_id, share_token, content)

    logger.info("Processing %d artifacts with model %s", len(items), vision.model)
    processor = BatchImageProcessor(
        vision.extract_text,
        fetch_image=partial(fetch_image_as_base64, await upstream.get_http_client()),
        batch_size=settings.vision_batch_size,
    )
    return _stream_job(
        processor.run(items, mode=payload.mode, prompt=prompt, persist=_persist),
        on_close=store.aclose,
    )


__all__ = ["router"]
