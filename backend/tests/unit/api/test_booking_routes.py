"""Unit tests for customer booking API routes.

Tests for:
- POST /api/bookings/quote and POST /api/bookings
- GET /api/bookings/mine and GET /api/bookings/{id}
- Cancellation, refund status and refund request endpoints
- GET /api/vouchers/mine

Stays are placed far in the future because the routes use the real clock.
"""

from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.status import (
    HTTP_200_OK,
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_502_BAD_GATEWAY,
)

from booking_api.models.vouchers import VoucherView
from booking_engine.models import Property
from booking_engine.services.stripe_service import StripeServiceError
from booking_engine.utils.dates import utc_now

CUSTOMER = {"x-user-sub": "cust-123"}
OTHER_CUSTOMER = {"x-user-sub": "cust-456"}

START, END = "2035-07-10", "2035-07-13"


@pytest.fixture(autouse=True)
def _property(sample_property: Property) -> Property:
    return sample_property


@pytest.fixture
def pending_booking_id(client: TestClient, booking_body: Any) -> str:
    response = client.post("/api/bookings", json=booking_body(START, END), headers=CUSTOMER)
    assert response.status_code == HTTP_201_CREATED
    return response.json()["booking"]["booking_id"]


@pytest.fixture
def confirmed_booking_id(orchestrator: Any, pending_booking_id: str) -> str:
    orchestrator.confirm_checkout(pending_booking_id, "cs_test_123", "pi_test_123")
    return pending_booking_id


class TestQuote:
    def test_quote_prices_stay_without_persisting(
        self, client: TestClient, booking_body: Any, booking_service: Any
    ) -> None:
        response = client.post(
            "/api/bookings/quote", json=booking_body(START, END), headers=CUSTOMER
        )

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["payable_cents"] == 30_000
        assert data["price_breakdown"]["nights"] == 3
        assert data["refund_policy"]
        assert booking_service.list_customer_bookings("cust-123") == []

    def test_minimum_nights(self, client: TestClient, booking_body: Any) -> None:
        response = client.post(
            "/api/bookings/quote",
            json=booking_body("2035-07-10", "2035-07-11"),
            headers=CUSTOMER,
        )

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_INPUT_004"


class TestCreateBooking:
    def test_customer_booking_is_pending_with_checkout(
        self, client: TestClient, booking_body: Any
    ) -> None:
        response = client.post("/api/bookings", json=booking_body(START, END), headers=CUSTOMER)

        assert response.status_code == HTTP_201_CREATED
        data = response.json()
        assert data["booking"]["status"] == "pending"
        assert data["booking"]["customer_id"] == "cust-123"
        assert data["payment"]["amount_cents"] == 30_000
        assert data["checkout_url"] == "https://checkout.stripe.com/c/pay/cs_test_123"

    def test_anonymous_caller_rejected(self, client: TestClient, booking_body: Any) -> None:
        response = client.post("/api/bookings", json=booking_body(START, END))

        assert response.status_code == HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "ERR_AUTH_001"
        assert body["category"] == "unauthenticated"

    def test_party_without_adults_rejected(self, client: TestClient, booking_body: Any) -> None:
        response = client.post(
            "/api/bookings",
            json=booking_body(START, END, guests={"adults": 0, "children": 2}),
            headers=CUSTOMER,
        )

        assert response.status_code == HTTP_422_UNPROCESSABLE_ENTITY

    def test_overlapping_booking_conflicts(
        self, client: TestClient, booking_body: Any, pending_booking_id: str
    ) -> None:
        response = client.post(
            "/api/bookings",
            json=booking_body("2035-07-12", "2035-07-15"),
            headers=OTHER_CUSTOMER,
        )

        assert response.status_code == HTTP_409_CONFLICT
        assert response.json()["error_code"] == "ERR_CONFLICT_001"

    def test_inverted_range(self, client: TestClient, booking_body: Any) -> None:
        response = client.post("/api/bookings", json=booking_body(END, START), headers=CUSTOMER)

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "ERR_INPUT_002"

    def test_unknown_property(self, client: TestClient, booking_body: Any) -> None:
        response = client.post(
            "/api/bookings",
            json=booking_body(START, END, property_id="PROP-MISSING"),
            headers=CUSTOMER,
        )

        assert response.status_code == HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "ERR_NOT_FOUND_001"

    def test_gateway_failure_still_returns_booking(
        self, client: TestClient, booking_body: Any, mock_stripe: MagicMock
    ) -> None:
        mock_stripe.create_checkout_session.side_effect = StripeServiceError("gateway down")

        response = client.post("/api/bookings", json=booking_body(START, END), headers=CUSTOMER)

        assert response.status_code == HTTP_201_CREATED
        data = response.json()
        assert data["booking"]["status"] == "pending"
        assert data["checkout_url"] is None
        assert data["payment_link_error"]


class TestReadBookings:
    def test_list_mine(self, client: TestClient, pending_booking_id: str) -> None:
        response = client.get("/api/bookings/mine", headers=CUSTOMER)

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["total_count"] == 1
        assert data["bookings"][0]["booking_id"] == pending_booking_id

    def test_list_mine_requires_identity(self, client: TestClient) -> None:
        assert client.get("/api/bookings/mine").status_code == HTTP_401_UNAUTHORIZED

    def test_owner_reads_booking(self, client: TestClient, pending_booking_id: str) -> None:
        response = client.get(f"/api/bookings/{pending_booking_id}", headers=CUSTOMER)

        assert response.status_code == HTTP_200_OK
        assert response.json()["start_date"] == START

    def test_other_customer_forbidden(
        self, client: TestClient, pending_booking_id: str
    ) -> None:
        response = client.get(f"/api/bookings/{pending_booking_id}", headers=OTHER_CUSTOMER)

        assert response.status_code == HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "ERR_AUTH_002"

    def test_unknown_booking(self, client: TestClient) -> None:
        response = client.get("/api/bookings/BKG-MISSING", headers=CUSTOMER)

        assert response.status_code == HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "ERR_NOT_FOUND_003"


class TestCancellation:
    def test_preview_then_cancel_with_full_refund(
        self, client: TestClient, confirmed_booking_id: str
    ) -> None:
        preview = client.get(
            f"/api/bookings/{confirmed_booking_id}/cancellation-preview", headers=CUSTOMER
        )
        assert preview.status_code == HTTP_200_OK

        response = client.post(f"/api/bookings/{confirmed_booking_id}/cancel", headers=CUSTOMER)

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["refund_type"] == "stripe_refund"
        assert data["refund_cents"] == 30_000
        assert data["refund_status"] == "pending"

    def test_cancel_with_reason(
        self, client: TestClient, confirmed_booking_id: str, booking_service: Any
    ) -> None:
        response = client.post(
            f"/api/bookings/{confirmed_booking_id}/cancel",
            json={"reason": "Change of plans"},
            headers=CUSTOMER,
        )

        assert response.status_code == HTTP_200_OK
        assert booking_service.get_cancellation(confirmed_booking_id).reason == (
            "Change of plans"
        )

    def test_refund_submission_failure_is_bad_gateway(
        self,
        client: TestClient,
        confirmed_booking_id: str,
        mock_stripe: MagicMock,
        booking_service: Any,
    ) -> None:
        mock_stripe.create_refund.side_effect = StripeServiceError("insufficient_funds")

        response = client.post(f"/api/bookings/{confirmed_booking_id}/cancel", headers=CUSTOMER)

        assert response.status_code == HTTP_502_BAD_GATEWAY
        assert response.json()["error_code"] == "ERR_GATEWAY_002"
        # The cancellation itself committed
        assert booking_service.require_booking(confirmed_booking_id).status.value == (
            "cancelled"
        )

    def test_refund_status_after_cancel(
        self, client: TestClient, confirmed_booking_id: str
    ) -> None:
        client.post(f"/api/bookings/{confirmed_booking_id}/cancel", headers=CUSTOMER)

        response = client.get(
            f"/api/bookings/{confirmed_booking_id}/refund-status", headers=CUSTOMER
        )

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert data["booking_status"] == "cancelled"
        assert data["refund"]["amount_cents"] == 30_000
        assert data["cancellation"]["policy_tier"] == "60_plus"

    def test_other_customer_cannot_cancel(
        self, client: TestClient, confirmed_booking_id: str
    ) -> None:
        response = client.post(
            f"/api/bookings/{confirmed_booking_id}/cancel", headers=OTHER_CUSTOMER
        )

        assert response.status_code == HTTP_403_FORBIDDEN


class TestRefundRequests:
    def test_customer_files_request(self, client: TestClient, confirmed_booking_id: str) -> None:
        response = client.post(
            f"/api/bookings/{confirmed_booking_id}/refund-requests",
            json={"reason": "Flight cancelled by the airline"},
            headers=CUSTOMER,
        )

        assert response.status_code == HTTP_201_CREATED
        data = response.json()
        assert data["status"] == "pending"
        assert data["reason"] == "Flight cancelled by the airline"

    def test_duplicate_request_conflicts(
        self, client: TestClient, confirmed_booking_id: str
    ) -> None:
        path = f"/api/bookings/{confirmed_booking_id}/refund-requests"
        client.post(path, headers=CUSTOMER)

        response = client.post(path, headers=CUSTOMER)

        assert response.status_code == HTTP_409_CONFLICT
        assert response.json()["error_code"] == "ERR_CONFLICT_005"

    def test_anonymous_request_rejected(
        self, client: TestClient, confirmed_booking_id: str
    ) -> None:
        response = client.post(f"/api/bookings/{confirmed_booking_id}/refund-requests")

        assert response.status_code == HTTP_401_UNAUTHORIZED

    def test_preview(self, client: TestClient, confirmed_booking_id: str) -> None:
        response = client.get(
            f"/api/bookings/{confirmed_booking_id}/refund-request-preview", headers=CUSTOMER
        )

        assert response.status_code == HTTP_200_OK
        assert response.json()["refundable_remaining_cents"] == 30_000


class TestVouchers:
    def test_list_mine_totals_usable_credit(
        self, client: TestClient, credit_ledger: Any
    ) -> None:
        credit_ledger.issue_voucher("cust-123", 5_000)
        credit_ledger.issue_voucher("cust-123", 2_500)
        credit_ledger.issue_voucher("cust-456", 9_900)

        response = client.get("/api/vouchers/mine", headers=CUSTOMER)

        assert response.status_code == HTTP_200_OK
        data = response.json()
        assert len(data["vouchers"]) == 2
        assert data["total_remaining_cents"] == 7_500
        assert all(v["usable"] for v in data["vouchers"])
        assert "is_usable" not in data["vouchers"][0]

    def test_view_keeps_usability_check(self, credit_ledger: Any) -> None:
        voucher = credit_ledger.issue_voucher("cust-123", 5_000)

        view = VoucherView(**voucher.model_dump(), usable=True)

        assert view.is_usable(utc_now()) is True

    def test_requires_identity(self, client: TestClient) -> None:
        assert client.get("/api/vouchers/mine").status_code == HTTP_401_UNAUTHORIZED
