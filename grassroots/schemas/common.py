"""
Grassroots Hub Backend — Shared Response Schemas
==================================================

What:  Response models used across routes: error envelope, plain messages,
       health check.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "invalid_rank",
            "message": "Ranking 9 is out of range. Valid positions are 1 to 4.",
            "details": {"target_rank": 9, "min_rank": 1, "max_rank": 4},
            "request_id": "550e8400"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(BaseModel):
    success: bool = Field(default=True)
    message: str = Field(description="Human-readable result")


class CreatedResponse(MessageResponse):
    id: int = Field(description="Identifier of the created record")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
