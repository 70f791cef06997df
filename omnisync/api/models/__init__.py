"""API response models."""

from omnisync.api.models.responses import ErrorDetail, ErrorResponse, LivenessResponse

__all__ = ["ErrorDetail", "ErrorResponse", "LivenessResponse"]
