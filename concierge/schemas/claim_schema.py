"""Claim submission and message dispatch result models."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ClaimResult(BaseModel):
    """Result of a claim intimation call, after retries."""
    success: bool
    intimation_id: Optional[str] = None
    request_id: Optional[str] = None
    attempts: int = 0
    error: Optional[dict[str, Any]] = None
    response: Optional[dict[str, Any]] = None


class DispatchResult(BaseModel):
    """Result from the messaging gateway."""
    success: bool
    error: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
