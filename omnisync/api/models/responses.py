"""API response models using Pydantic."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    field: Optional[str] = Field(None, description="Field with error (if applicable)")


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = Field(False, description="Always false for errors")
    error: ErrorDetail = Field(..., description="Error details")
    trace_id: Optional[str] = Field(None, description="Trace ID for debugging")


class LivenessResponse(BaseModel):
    """Liveness check response."""

    status: str = Field(..., description="Process status")
    version: str = Field(..., description="Package version")
    environment: str = Field(..., description="Execution environment")
    timestamp: datetime = Field(..., description="Current server time")
