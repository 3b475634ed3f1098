"""Pytest configuration and fixtures for booking engine tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (every engine table and its GSIs)
- Engine services wired against the mocked tables
- A mocked Stripe gateway and notification service
- Sample property, callers and a fixed clock
"""

import datetime as dt
import os
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-booking")

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from booking_engine.models import Caller, Property, Role  # noqa: E402

TABLE_PREFIX = "test-booking"

# Fixed clock: stays in the tests are placed relative to this instant
NOW = dt.datetime(2027, 1, 1, 12, 0, tzinfo=dt.UTC)

PROPERTY_ID = "PROP-001"

# (table, hash key, range key, GSI partition keys)
TABLE_LAYOUT: list[tuple[str, str, str | None, list[str]]] = [
    ("properties", "property_id", None, []),
    ("periods", "period_id", None, ["property_id"]),
    ("bookings", "booking_id", None, ["property_id", "customer_id", "booking_period_id"]),
    ("payments", "booking_id", None, []),
    ("night-claims", "property_id", "night", []),
    ("external-blocks", "block_id", None, ["property_id"]),
    ("manual-blocks", "block_id", None, ["property_id"]),
    ("vouchers", "voucher_id", None, ["customer_id"]),
    ("cancellations", "booking_id", None, []),
    ("refunds", "refund_id", None, ["booking_id"]),
    ("refund-requests", "request_id", None, ["booking_id"]),
    ("webhook-events", "event_id", None, []),
]


def _table_config(
    name: str, hash_key: str, range_key: str | None, gsi_keys: list[str]
) -> dict[str, Any]:
    key_schema = [{"AttributeName": hash_key, "KeyType": "HASH"}]
    attributes = {hash_key}
    if range_key:
        key_schema.append({"AttributeName": range_key, "KeyType": "RANGE"})
        attributes.add(range_key)
    attributes.update(gsi_keys)

    config: dict[str, Any] = {
        "TableName": f"{TABLE_PREFIX}-{name}",
        "KeySchema": key_schema,
        "AttributeDefinitions": [
            {"AttributeName": attr, "AttributeType": "S"} for attr in sorted(attributes)
        ],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if gsi_keys:
        config["GlobalSecondaryIndexes"] = [
            {
                "IndexName": f"{key}-index",
                "KeySchema": [{"AttributeName": key, "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
            for key in gsi_keys
        ]
    return config


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached services before and after each test.

    This ensures tests using mock_aws get fresh clients inside the mock
    context rather than reusing one from a previous test.
    """
    from booking_api.dependencies import reset_services
    from booking_engine.services.ssm_service import SSMService, get_ssm_service

    reset_services()
    SSMService.reset()
    get_ssm_service.cache_clear()
    yield
    reset_services()
    SSMService.reset()
    get_ssm_service.cache_clear()


# === DynamoDB Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"


@pytest.fixture
def dynamodb_client(aws_credentials: None) -> Generator[Any, None, None]:
    """Create a mocked DynamoDB client."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        yield client


@pytest.fixture
def create_tables(dynamodb_client: Any) -> None:
    """Create all engine tables for testing."""
    for layout in TABLE_LAYOUT:
        dynamodb_client.create_table(**_table_config(*layout))


@pytest.fixture
def db(create_tables: None) -> Any:
    """DynamoDBService bound to the mocked tables."""
    from booking_engine.services.dynamodb import get_dynamodb_service

    return get_dynamodb_service()


# === Engine Services ===


@pytest.fixture
def property_service(db: Any) -> Any:
    from booking_engine.services.property_service import PropertyService

    return PropertyService(db)


@pytest.fixture
def night_claims(db: Any) -> Any:
    from booking_engine.services.night_claims import NightClaims

    return NightClaims(db)


@pytest.fixture
def period_registry(db: Any, property_service: Any) -> Any:
    from booking_engine.services.period_registry import PeriodRegistry

    return PeriodRegistry(db, property_service)


@pytest.fixture
def block_service(db: Any, property_service: Any, night_claims: Any) -> Any:
    from booking_engine.services.block_service import BlockService

    return BlockService(db, property_service, night_claims)


@pytest.fixture
def availability(period_registry: Any, block_service: Any, property_service: Any) -> Any:
    from booking_engine.services.availability import AvailabilityResolver

    return AvailabilityResolver(period_registry, block_service, property_service)


@pytest.fixture
def credit_ledger(db: Any) -> Any:
    from booking_engine.services.credit_ledger import CreditLedger

    return CreditLedger(db)


@pytest.fixture
def booking_service(db: Any, night_claims: Any) -> Any:
    from booking_engine.services.booking_service import BookingService

    return BookingService(db, night_claims)


@pytest.fixture
def payment_service(db: Any) -> Any:
    from booking_engine.services.payment_service import PaymentService

    return PaymentService(db)


@pytest.fixture
def mock_stripe() -> MagicMock:
    """Stripe gateway double returning a session and a pending refund."""
    from booking_engine.services.stripe_service import StripeService

    stripe = MagicMock(spec=StripeService)
    stripe.create_checkout_session.return_value = {
        "session_id": "cs_test_123",
        "checkout_url": "https://checkout.stripe.com/c/pay/cs_test_123",
        "expires_at": NOW + dt.timedelta(minutes=30),
    }
    stripe.create_refund.return_value = {
        "refund_id": "re_test_123",
        "amount": 0,
        "status": "pending",
    }
    return stripe


@pytest.fixture
def mock_notifications() -> MagicMock:
    from booking_engine.services.notification_service import NotificationService

    notifications = MagicMock(spec=NotificationService)
    notifications.send.return_value = False
    return notifications


@pytest.fixture
def orchestrator(
    db: Any,
    property_service: Any,
    availability: Any,
    credit_ledger: Any,
    booking_service: Any,
    payment_service: Any,
    mock_stripe: MagicMock,
    mock_notifications: MagicMock,
) -> Any:
    from booking_engine.services.booking_orchestrator import BookingOrchestrator
    from booking_engine.services.pricing import PricingEngine
    from booking_engine.services.refund_policy_service import RefundPolicyService

    return BookingOrchestrator(
        db=db,
        properties=property_service,
        availability=availability,
        pricing=PricingEngine(),
        credits=credit_ledger,
        bookings=booking_service,
        payments=payment_service,
        refund_policy=RefundPolicyService(),
        stripe=mock_stripe,
        notifications=mock_notifications,
        app_url="https://summerhouse.example",
    )


@pytest.fixture
def cancellation_service(
    db: Any,
    booking_service: Any,
    payment_service: Any,
    credit_ledger: Any,
    mock_stripe: MagicMock,
    mock_notifications: MagicMock,
) -> Any:
    from booking_engine.services.cancellation_service import CancellationService
    from booking_engine.services.refund_policy_service import RefundPolicyService

    return CancellationService(
        db=db,
        bookings=booking_service,
        payments=payment_service,
        credits=credit_ledger,
        refund_policy=RefundPolicyService(),
        stripe=mock_stripe,
        notifications=mock_notifications,
    )


@pytest.fixture
def refund_request_service(
    db: Any,
    booking_service: Any,
    payment_service: Any,
    mock_stripe: MagicMock,
    mock_notifications: MagicMock,
) -> Any:
    from booking_engine.services.refund_request_service import RefundRequestService

    return RefundRequestService(
        db=db,
        bookings=booking_service,
        payments=payment_service,
        stripe=mock_stripe,
        notifications=mock_notifications,
    )


@pytest.fixture
def webhook_handler(
    db: Any,
    orchestrator: Any,
    booking_service: Any,
    payment_service: Any,
    mock_notifications: MagicMock,
) -> Any:
    from booking_engine.services.webhook_handler import WebhookHandler

    return WebhookHandler(
        db=db,
        orchestrator=orchestrator,
        bookings=booking_service,
        payments=payment_service,
        notifications=mock_notifications,
    )


# === Sample Data Fixtures ===


@pytest.fixture
def sample_property(property_service: Any) -> Property:
    """A four-guest property at 100 EUR per night, two-night minimum."""
    return property_service.put_property(
        Property(
            property_id=PROPERTY_ID,
            title="Seaside Cottage",
            currency="eur",
            default_nightly_price=100,
            max_guests=4,
            min_nights=2,
        )
    )


@pytest.fixture
def customer() -> Caller:
    return Caller(customer_id="cust-123", role=Role.CUSTOMER)


@pytest.fixture
def other_customer() -> Caller:
    return Caller(customer_id="cust-456", role=Role.CUSTOMER)


@pytest.fixture
def admin() -> Caller:
    return Caller(customer_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def anonymous() -> Caller:
    return Caller()


@pytest.fixture
def now() -> dt.datetime:
    return NOW


def _booking_request(
    start: str,
    end: str,
    *,
    adults: int = 2,
    children: int = 0,
    babies: int = 0,
    use_credit: bool = False,
    property_id: str = PROPERTY_ID,
) -> Any:
    """BookingRequest with contact details filled in."""
    from booking_engine.models import BookingRequest, GuestCounts

    return BookingRequest(
        property_id=property_id,
        start_date=start,
        end_date=end,
        guests=GuestCounts(adults=adults, children=children, babies=babies),
        guest_name="Anna Jonsdottir",
        guest_email="anna@example.com",
        use_credit=use_credit,
    )


@pytest.fixture
def make_booking_request() -> Any:
    """Factory for BookingRequest objects on the sample property."""
    return _booking_request


@pytest.fixture
def create_paid_booking(
    orchestrator: Any, sample_property: Property, make_booking_request: Any
) -> Any:
    """Factory: a customer booking confirmed through a paid checkout."""

    def _create(
        caller: Caller,
        start: str,
        end: str,
        payment_intent_id: str = "pi_test_123",
        **request_kwargs: Any,
    ) -> Any:
        result = orchestrator.create_booking(
            make_booking_request(start, end, **request_kwargs), caller, now=NOW
        )
        return orchestrator.confirm_checkout(
            result.booking.booking_id,
            session_id="cs_test_123",
            payment_intent_id=payment_intent_id,
        )

    return _create
