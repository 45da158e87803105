"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data
- Response models for API responses
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Pydantic Request Models
# =============================================================================

class MessageCreateRequest(BaseModel):
    """
    Body of POST /messages.

    Both fields are optional at the schema level so that missing or blank
    values are reported together by the submission service, with one
    message per field.
    """
    phone_number: Optional[str] = Field(
        None,
        description="Destination phone number: optional '+', then 2-15 digits"
    )
    content: Optional[str] = Field(
        None,
        description="Message body"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "phone_number": "+15551234567",
                    "content": "hello"
                }
            ]
        }
    }


class CredentialsRequest(BaseModel):
    """Body of POST /auth/register and POST /auth/login."""
    username: Optional[str] = None
    password: Optional[str] = None


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Response model for error responses."""
    error: str = Field(..., description="Error description")


class MessageResponse(BaseModel):
    """
    A stored message as returned by the API.

    Exactly one of session_id / user_id is set, depending on how the
    deployment scopes messages.
    """
    id: str = Field(..., description="Unique message identifier")
    phone_number: str = Field(..., description="Destination phone number")
    content: str = Field(..., description="Message body")
    created_at: datetime = Field(..., description="Server time the message was stored (ISO-8601)")
    session_id: Optional[str] = Field(None, description="Anonymous session owning the message")
    user_id: Optional[str] = Field(None, description="Account owning the message")


class UserResponse(BaseModel):
    id: str
    username: str


class UserEnvelope(BaseModel):
    user: UserResponse


class StatusMessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
