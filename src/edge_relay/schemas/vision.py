"""Pydantic models for the visual-recognition batch endpoint."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class InlineImage(BaseModel):
    id: str
    base64: str
    mime_type: str = Field(default="image/jpeg", alias="mimeType")
    existing_text: Optional[str] = Field(default=None, alias="existingText")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VisualRecognitionRequest(BaseModel):
    """Either `artifactIds` (persisted mode) or `images` (inline mode)."""

    artifact_ids: Optional[List[str]] = Field(default=None, alias="artifactIds")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    share_token: Optional[str] = Field(default=None, alias="shareToken")
    images: Optional[List[InlineImage]] = None
    model: str = "gemini-2.5-flash"
    prompt: Optional[str] = None
    mode: Literal["replace", "augment"] = "replace"

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


__all__ = ["InlineImage", "VisualRecognitionRequest"]
