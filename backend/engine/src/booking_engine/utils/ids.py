"""Record identifier generation."""

import uuid


def generate_id(prefix: str) -> str:
    """Generate an ID like ``BKG-1A2B3C4D5E6F``."""
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"
