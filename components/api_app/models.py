"""Request and response models for the HTTP API."""

from typing import List

from pydantic import BaseModel, Field


class PromptRequest(BaseModel):
    """A question about the documentation."""

    prompt: str = Field(..., description="The user's natural-language prompt")


class FileListResponse(BaseModel):
    """Documents in the published corpus."""

    files: List[str] = Field(..., description="Document ids (relative paths)")
    total_count: int = Field(..., description="Number of published documents")


class TriggerResponse(BaseModel):
    """Acknowledges a rebuild request."""

    triggered: bool = Field(..., description="Whether a rebuild was requested")
    message: str = Field(default="", description="Human-readable detail")
