"""Unit tests for public property routes and the health check.

Tests for:
- GET /api/properties/{id} - Property details
- GET /api/properties/{id}/calendar - Daily prices, open flags and blocks
- GET /api/health
"""

from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.status import HTTP_200_OK, HTTP_400_BAD_REQUEST, HTTP_404_NOT_FOUND

from booking_engine.models import PeriodRules, Property


@pytest.fixture
def summer(period_registry: Any, sample_property: Property) -> Any:
    return period_registry.create_period(
        "PROP-001",
        "2035-07-01",
        "2035-08-01",
        PeriodRules(standard_nightly_price=180, max_guests=4),
    )


class TestGetProperty:
    def test_returns_property(self, client: TestClient, sample_property: Property) -> None:
        response = client.get("/api/properties/PROP-001")

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["title"] == "Seaside Cottage"
        assert data["default_nightly_price"] == 100
        assert data["max_guests"] == 4

    def test_unknown_property(self, client: TestClient) -> None:
        response = client.get("/api/properties/PROP-MISSING")

        assert response.status_code == HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


class TestCalendar:
    def test_prices_follow_periods_and_default(self, client: TestClient, summer: Any) -> None:
        response = client.get(
            "/api/properties/PROP-001/calendar",
            params={"from": "2035-06-29", "to": "2035-07-03"},
        )

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["has_any_periods"] is True
        assert data["daily_prices"] == {
            "2035-06-29": 100,
            "2035-06-30": 100,
            "2035-07-01": 180,
            "2035-07-02": 180,
        }
        assert all(data["daily_open"].values())

    def test_bookings_exposed_without_guest_details(
        self,
        client: TestClient,
        sample_property: Property,
        orchestrator: Any,
        make_booking_request: Any,
        admin: Any,
    ) -> None:
        orchestrator.create_booking(make_booking_request("2035-07-10", "2035-07-13"), admin)

        response = client.get(
            "/api/properties/PROP-001/calendar",
            params={"from": "2035-07-01", "to": "2035-08-01"},
        )

        assert response.json()["blocks"] == [
            {"source": "DIRECT", "start_date": "2035-07-10", "end_date": "2035-07-13"}
        ]

    def test_closed_period_nights_not_open(
        self, client: TestClient, period_registry: Any, sample_property: Property
    ) -> None:
        period_registry.create_period(
            "PROP-001",
            "2035-07-01",
            "2035-07-03",
            PeriodRules(is_open=False, standard_nightly_price=100, max_guests=4),
        )

        response = client.get(
            "/api/properties/PROP-001/calendar",
            params={"from": "2035-07-01", "to": "2035-07-04"},
        )

        assert response.json()["daily_open"] == {
            "2035-07-01": False,
            "2035-07-02": False,
            "2035-07-03": True,
        }

    def test_inverted_range(self, client: TestClient, sample_property: Property) -> None:
        response = client.get(
            "/api/properties/PROP-001/calendar",
            params={"from": "2035-07-10", "to": "2035-07-01"},
        )

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_INPUT_002"

    def test_malformed_date(self, client: TestClient, sample_property: Property) -> None:
        response = client.get(
            "/api/properties/PROP-001/calendar",
            params={"from": "10/07/2035", "to": "2035-07-20"},
        )

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_INPUT_001"


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == HTTP_200_OK
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers
