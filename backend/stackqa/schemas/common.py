"""
StackQA Backend — Shared Pydantic Schemas
==========================================

What:  Response models used across several route modules: the uniform error
       body, the health check, and the compact author card rendered next to
       questions and answers.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field


class AuthorSummary(BaseModel):
    """
    What:  Compact user card (name + avatar) for list rows and answers.
    Who:   Resolved through the process-wide UserCache.
    """
    id: uuid.UUID = Field(description="User identifier")
    name: str = Field(description="Display name")
    avatar_url: str = Field(description="Avatar image URL (40px variant)")

    model_config = {"from_attributes": True}


class ErrorResponse(BaseModel):
    """
    Standardized error body for every non-2xx response.

    Example:
        {
            "error": "forbidden",
            "message": "Only the question author can accept an answer.",
            "details": {"action": "accept_answer"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for container and load balancer health checks."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    live_subscribers: int = Field(description="Open live subscription streams in this process")
    uptime_seconds: float = Field(description="Seconds since service started")
