"""Fixtures for API route tests.

The FastAPI dependency providers are overridden with the engine services
from the root conftest, so routes run against the moto tables with a
mocked Stripe gateway and notification service.
"""

from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(
    property_service: Any,
    period_registry: Any,
    block_service: Any,
    availability: Any,
    credit_ledger: Any,
    booking_service: Any,
    orchestrator: Any,
    cancellation_service: Any,
    refund_request_service: Any,
    webhook_handler: Any,
    mock_stripe: MagicMock,
) -> Generator[TestClient, None, None]:
    """TestClient with every service provider bound to the test doubles."""
    from booking_api import dependencies
    from booking_api.main import app
    from booking_engine.services.stripe_service import get_stripe_service

    app.dependency_overrides.update(
        {
            dependencies.get_property_service: lambda: property_service,
            dependencies.get_period_registry: lambda: period_registry,
            dependencies.get_block_service: lambda: block_service,
            dependencies.get_availability_resolver: lambda: availability,
            dependencies.get_credit_ledger: lambda: credit_ledger,
            dependencies.get_booking_service: lambda: booking_service,
            dependencies.get_booking_orchestrator: lambda: orchestrator,
            dependencies.get_cancellation_service: lambda: cancellation_service,
            dependencies.get_refund_request_service: lambda: refund_request_service,
            dependencies.get_webhook_handler: lambda: webhook_handler,
            get_stripe_service: lambda: mock_stripe,
        }
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def booking_body() -> Any:
    """Factory for booking request bodies on the sample property."""

    def _body(start: str, end: str, **overrides: Any) -> dict[str, Any]:
        body: dict[str, Any] = {
            "property_id": "PROP-001",
            "start_date": start,
            "end_date": end,
            "guests": {"adults": 2},
            "guest_name": "Anna Jonsdottir",
            "guest_email": "anna@example.com",
        }
        body.update(overrides)
        return body

    return _body
