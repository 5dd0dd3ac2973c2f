"""Batch OCR / visual recognition through the Gemini vision API."""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Literal, Optional, Sequence

import httpx

from ..config import Settings
from ..providers.base import first_mapping
from ..providers.client import UpstreamClient
from ..providers.gemini import SAFETY_SETTINGS, GeminiBinding

logger = logging.getLogger(__name__)

Mode = Literal["replace", "augment"]

VISION_MODELS = ("gemini-2.5-flash", "gemini-2.0-flash")
DEFAULT_VISION_MODEL = "gemini-2.5-flash"
AUGMENT_SEPARATOR = "\n\n---\n\n## Visual Recognition Extract:\n\n"

DEFAULT_EXTRACTION_PROMPT = """You are an expert document OCR and analysis system. Analyze this image and extract ALL content.

## Instructions:
1. Extract all visible text exactly as it appears, maintaining formatting in Markdown
2. For tables, use Markdown table syntax
3. For lists, use appropriate Markdown list formatting
4. For headings, use Markdown heading levels (# ## ###)

## Non-Text Elements:
For any non-text elements, provide detailed descriptions in this format:

[IMAGE: Description of photograph or illustration]
[CHART: Type of chart, title, key data points, axes labels]
[DIAGRAM: Type of diagram, components, relationships shown]
[GRAPH: Type of graph, what it represents, trends shown]
[MAP: Geographic area, features shown, legend items]
[FLOWCHART: Process name, steps, decision points]
[TABLE: If complex table that can't be represented in Markdown]

## Output:
Return the content in reading order (top-to-bottom, left-to-right for Western documents).
Preserve paragraph breaks and formatting as much as possible."""


class VisionError(Exception):
    """The vision API answered without usable text."""


class ImageFetchError(Exception):
    """A source image could not be downloaded."""


class ItemState(str, Enum):
    PENDING = "pending"
    FETCHING_IMAGE = "fetching-image"
    CALLING_VISION_API = "calling-vision-api"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ImagePayload:
    mime_type: str
    data: str  # base64


@dataclass(frozen=True)
class BatchItem:
    """One image to recognise: inline bytes or a URL to fetch first."""

    id: str
    image: Optional[ImagePayload] = None
    image_url: Optional[str] = None
    existing_text: Optional[str] = None


ExtractText = Callable[[ImagePayload, str], Awaitable[str]]
FetchImage = Callable[[str], Awaitable[ImagePayload]]
PersistResult = Callable[[str, str], Awaitable[None]]


def select_vision_model(model: str | None) -> str:
    return model if model in VISION_MODELS else DEFAULT_VISION_MODEL


def apply_mode(mode: Mode, existing_text: str | None, extracted: str) -> str:
    """Combine prior content with freshly extracted text according to ``mode``."""

    if mode == "augment" and existing_text:
        return f"{existing_text}{AUGMENT_SEPARATOR}{extracted}"
    return extracted


async def fetch_image_as_base64(http_client: httpx.AsyncClient, url: str) -> ImagePayload:
    try:
        response = await http_client.get(url)
    except httpx.HTTPError as exc:
        logger.error("Error fetching image %s: %s", url, exc)
        raise ImageFetchError("Failed to fetch image") from exc
    if response.status_code >= 400:
        logger.error("Failed to fetch image: %s, status: %s", url, response.status_code)
        raise ImageFetchError("Failed to fetch image")

    content_type = response.headers.get("content-type") or "image/jpeg"
    mime_type = content_type.split(";", 1)[0].strip() or "image/jpeg"
    return ImagePayload(
        mime_type=mime_type,
        data=base64.b64encode(response.content).decode("ascii"),
    )


class VisionClient:
    """Single-image `generateContent` calls against Gemini."""

    def __init__(self, upstream: UpstreamClient, settings: Settings, model: str) -> None:
        self._upstream = upstream
        self._settings = settings
        self._binding = GeminiBinding(select_vision_model(model))

    @property
    def model(self) -> str:
        return self._binding.model

    async def extract_text(self, image: ImagePayload, prompt: str) -> str:
        api_key = self._binding.api_key(self._settings)
        payload: dict[str, Any] = {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": image.mime_type,
                                "data": image.data,
                            }
                        },
                    ]
                }
            ],
            "safetySettings": SAFETY_SETTINGS,
            "generationConfig": {"temperature": 0.1, "maxOutputTokens": 8192},
        }
        body = await self._upstream.post_json(
            self._binding.model_url(self._settings, "generateContent"),
            payload,
            headers=self._binding.headers(api_key),
            provider=self._binding.label,
        )
        candidate = first_mapping(body.get("candidates") if isinstance(body, dict) else None)
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        text = first_mapping(parts).get("text")
        if isinstance(text, str) and text:
            return text
        raise VisionError("No text content in response")


class BatchImageProcessor:
    """Run items through the vision API in fixed-width concurrent batches.

    Each batch is a barrier: its results are emitted (in completion order) only
    once every item in it has settled, and the next batch starts afterwards.
    """

    def __init__(
        self,
        extract_text: ExtractText,
        *,
        fetch_image: FetchImage | None = None,
        batch_size: int = 5,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._extract_text = extract_text
        self._fetch_image = fetch_image
        self._batch_size = batch_size

    async def _load_image(self, item: BatchItem) -> ImagePayload:
        if item.image is not None:
            return item.image
        if item.image_url and self._fetch_image is not None:
            return await self._fetch_image(item.image_url)
        raise ImageFetchError("Failed to fetch image")

    async def process_item(self, item: BatchItem, mode: Mode, prompt: str) -> dict[str, Any]:
        state = ItemState.PENDING
        try:
            state = ItemState.FETCHING_IMAGE
            image = await self._load_image(item)
            state = ItemState.CALLING_VISION_API
            extracted = await self._extract_text(image, prompt)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error("Error processing image %s while %s: %s", item.id, state.value, message)
            return {"id": item.id, "success": False, "error": message}

        logger.debug("Image %s %s", item.id, ItemState.SUCCEEDED.value)
        return {
            "id": item.id,
            "success": True,
            "content": apply_mode(mode, item.existing_text, extracted),
        }

    async def run_batch(
        self, batch: Sequence[BatchItem], mode: Mode, prompt: str
    ) -> list[dict[str, Any]]:
        settled: list[dict[str, Any]] = []

        async def _settle(item: BatchItem) -> None:
            settled.append(await self.process_item(item, mode, prompt))

        await asyncio.gather(*(_settle(item) for item in batch))
        return settled

    async def _persist(
        self, results: Sequence[dict[str, Any]], persist: PersistResult
    ) -> None:
        for result in results:
            if not result.get("success") or not result.get("content"):
                continue
            try:
                await persist(result["id"], result["content"])
            except Exception as exc:
                logger.error("Failed to update artifact %s: %s", result["id"], exc)

    async def run(
        self,
        items: Sequence[BatchItem],
        *,
        mode: Mode = "replace",
        prompt: str = DEFAULT_EXTRACTION_PROMPT,
        persist: PersistResult | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield `start`, per-batch `progress`, per-item results and `complete`."""

        total = len(items)
        try:
            yield {"type": "start", "total": total}

            processed = 0
            results: list[dict[str, Any]] = []
            for offset in range(0, total, self._batch_size):
                batch = items[offset : offset + self._batch_size]
                yield {
                    "type": "progress",
                    "processed": processed,
                    "total": total,
                    "currentBatch": [item.id for item in batch],
                }
                for result in await self.run_batch(batch, mode, prompt):
                    results.append(result)
                    yield result
                processed += len(batch)

            if persist is not None:
                await self._persist(results, persist)

            successful = sum(1 for result in results if result.get("success"))
            yield {
                "type": "complete",
                "processed": len(results),
                "successful": successful,
                "failed": len(results) - successful,
            }
        except Exception as exc:
            logger.exception("Visual recognition job failed")
            yield {"type": "error", "error": str(exc) or type(exc).__name__}


__all__ = [
    "AUGMENT_SEPARATOR",
    "BatchImageProcessor",
    "BatchItem",
    "DEFAULT_EXTRACTION_PROMPT",
    "ImageFetchError",
    "ImagePayload",
    "ItemState",
    "VISION_MODELS",
    "VisionClient",
    "VisionError",
    "apply_mode",
    "fetch_image_as_base64",
    "select_vision_model",
]
