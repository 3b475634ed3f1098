"""Shared API response models."""

from pydantic import BaseModel, ConfigDict, Field

from booking_engine.models import ErrorCode, ToolError

__all__ = ["ErrorCode", "ToolError", "SuccessMessage"]


class SuccessMessage(BaseModel):
    """Acknowledgement for operations without a resource body."""

    model_config = ConfigDict(strict=True)

    success: bool = True
    message: str = Field(..., examples=["Block deleted"])
