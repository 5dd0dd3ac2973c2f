"""Pydantic models for chat stream requests."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatMessage(BaseModel):
    """A single prior turn supplied by the caller."""

    role: Literal["user", "assistant"]
    content: str

    model_config = ConfigDict(extra="ignore")


class ToolInstance(BaseModel):
    """An auxiliary tool requested for this generation."""

    tool_id: str = Field(alias="toolId")
    config: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GenerationRequest(BaseModel):
    """Incoming body accepted by the chat stream endpoints."""

    system_prompt: str = Field(default="", alias="systemPrompt")
    user_prompt: str = Field(default="", alias="userPrompt")
    messages: List[ChatMessage] = Field(default_factory=list)
    tools: List[ToolInstance] = Field(default_factory=list)
    model: Optional[str] = None
    max_output_tokens: Optional[Union[int, float, str]] = Field(
        default=None, alias="maxOutputTokens"
    )
    thinking_enabled: bool = Field(default=False, alias="thinkingEnabled")
    thinking_budget: Optional[int] = Field(default=0, alias="thinkingBudget")
    attached_context: Optional[Dict[str, Any]] = Field(
        default=None, alias="attachedContext"
    )
    project_id: Optional[str] = Field(default=None, alias="projectId")
    share_token: Optional[str] = Field(default=None, alias="shareToken")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("thinking_budget", mode="after")
    @classmethod
    def _null_budget_is_zero(cls, value: Optional[int]) -> int:
        return value or 0


__all__ = ["ChatMessage", "GenerationRequest", "ToolInstance"]
