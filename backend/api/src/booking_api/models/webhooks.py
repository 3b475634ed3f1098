"""API models for webhook endpoints."""

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Standard webhook response."""

    received: bool
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # "success", "duplicate", "skipped", "error"
    message: str | None = None
