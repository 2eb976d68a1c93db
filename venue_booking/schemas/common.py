"""
Common schemas for API responses and error handling.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""

    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")
    retry_after: Optional[int] = Field(None, description="Seconds to wait before retrying")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""

    error: ErrorDetail
    error_id: str
    timestamp: datetime

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": {
                        "code": "SEAT_CONFLICT",
                        "message": "Seats not available on slot 123e4567-e89b-12d3-a456-426614174000: A1",
                        "details": {"seats": ["A1"]},
                        "suggestions": ["Choose different seats", "Refresh the seat map"]
                    },
                    "error_id": "5f1c7e6e-7a0a-4f6d-9a53-0d2f3c1b9e21",
                    "timestamp": "2026-01-01T12:00:00Z"
                },
                {
                    "error": {
                        "code": "BUSY",
                        "message": "reserve could not complete after 5 attempts due to contention",
                        "retry_after": 1
                    },
                    "error_id": "0b8e2a1d-3c4f-4e5a-8b7c-6d9e0f1a2b3c",
                    "timestamp": "2026-01-01T12:00:00Z"
                }
            ]
        }
    }


# Shared error documentation for reservation routes
ERROR_RESPONSES: Dict[int | str, Dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Seat conflict or capacity exceeded"},
    422: {"model": ErrorResponse, "description": "Invalid request"},
    503: {"model": ErrorResponse, "description": "Busy or store unavailable; honour Retry-After"},
}


class HealthResponse(BaseModel):
    """Schema for the health check."""

    status: str
    environment: str
    checks: Dict[str, str]
