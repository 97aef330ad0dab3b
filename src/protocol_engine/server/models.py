"""Pydantic request models for the HTTP server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class DetectRequest(BaseModel):
    input: str
    context: dict[str, Any] = Field(default_factory=dict)


class StartRequest(BaseModel):
    context: dict[str, Any] = Field(default_factory=dict)


class CompleteStepRequest(BaseModel):
    result: Any = None


class ArchiveRequest(BaseModel):
    success: bool = True


class CleanupRequest(BaseModel):
    max_age_hours: float | None = Field(default=None, gt=0)
