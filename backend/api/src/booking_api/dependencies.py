"""FastAPI dependency injection providers for engine services.

Factory functions cached with @lru_cache so each service is built once per
process and shares the DynamoDB singleton.

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── PropertyService
        │       ├── PeriodRegistry
        │       └── BlockService ── NightClaims
        │               └── AvailabilityResolver
        ├── CreditLedger
        ├── BookingService ── NightClaims
        ├── PaymentService
        └── BookingOrchestrator (all of the above + StripeService)
                ├── CancellationService
                ├── RefundRequestService
                └── WebhookHandler

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from booking_engine.services.availability import AvailabilityResolver
from booking_engine.services.block_service import BlockService
from booking_engine.services.booking_orchestrator import BookingOrchestrator
from booking_engine.services.booking_service import BookingService
from booking_engine.services.cancellation_service import CancellationService
from booking_engine.services.credit_ledger import CreditLedger
from booking_engine.services.dynamodb import get_dynamodb_service
from booking_engine.services.night_claims import NightClaims
from booking_engine.services.notification_service import get_notification_service
from booking_engine.services.payment_service import PaymentService
from booking_engine.services.period_registry import PeriodRegistry
from booking_engine.services.pricing import PricingEngine
from booking_engine.services.property_service import PropertyService
from booking_engine.services.refund_policy_service import RefundPolicyService
from booking_engine.services.refund_request_service import RefundRequestService
from booking_engine.services.stripe_service import get_stripe_service
from booking_engine.services.webhook_handler import WebhookHandler


@lru_cache
def get_property_service() -> PropertyService:
    return PropertyService(db=get_dynamodb_service())


@lru_cache
def get_night_claims() -> NightClaims:
    return NightClaims(db=get_dynamodb_service())


@lru_cache
def get_period_registry() -> PeriodRegistry:
    return PeriodRegistry(db=get_dynamodb_service(), properties=get_property_service())


@lru_cache
def get_block_service() -> BlockService:
    return BlockService(
        db=get_dynamodb_service(),
        properties=get_property_service(),
        claims=get_night_claims(),
    )


@lru_cache
def get_availability_resolver() -> AvailabilityResolver:
    return AvailabilityResolver(
        periods=get_period_registry(),
        blocks=get_block_service(),
        properties=get_property_service(),
    )


@lru_cache
def get_credit_ledger() -> CreditLedger:
    return CreditLedger(db=get_dynamodb_service())


@lru_cache
def get_booking_service() -> BookingService:
    return BookingService(db=get_dynamodb_service(), claims=get_night_claims())


@lru_cache
def get_payment_service() -> PaymentService:
    return PaymentService(db=get_dynamodb_service())


@lru_cache
def get_refund_policy_service() -> RefundPolicyService:
    return RefundPolicyService()


@lru_cache
def get_booking_orchestrator() -> BookingOrchestrator:
    """Get cached BookingOrchestrator wired to every engine service.

    Returns:
        BookingOrchestrator configured with DynamoDB, Stripe and SES services.
    """
    return BookingOrchestrator(
        db=get_dynamodb_service(),
        properties=get_property_service(),
        availability=get_availability_resolver(),
        pricing=PricingEngine(),
        credits=get_credit_ledger(),
        bookings=get_booking_service(),
        payments=get_payment_service(),
        refund_policy=get_refund_policy_service(),
        stripe=get_stripe_service(),
        notifications=get_notification_service(),
    )


@lru_cache
def get_cancellation_service() -> CancellationService:
    return CancellationService(
        db=get_dynamodb_service(),
        bookings=get_booking_service(),
        payments=get_payment_service(),
        credits=get_credit_ledger(),
        refund_policy=get_refund_policy_service(),
        stripe=get_stripe_service(),
        notifications=get_notification_service(),
    )


@lru_cache
def get_refund_request_service() -> RefundRequestService:
    return RefundRequestService(
        db=get_dynamodb_service(),
        bookings=get_booking_service(),
        payments=get_payment_service(),
        stripe=get_stripe_service(),
        notifications=get_notification_service(),
    )


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    return WebhookHandler(
        db=get_dynamodb_service(),
        orchestrator=get_booking_orchestrator(),
        bookings=get_booking_service(),
        payments=get_payment_service(),
        notifications=get_notification_service(),
    )


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.
    Also resets the DynamoDB singleton and the cached gateway clients.
    """
    from booking_engine.services.dynamodb import reset_dynamodb_service

    for factory in (
        get_property_service,
        get_night_claims,
        get_period_registry,
        get_block_service,
        get_availability_resolver,
        get_credit_ledger,
        get_booking_service,
        get_payment_service,
        get_refund_policy_service,
        get_booking_orchestrator,
        get_cancellation_service,
        get_refund_request_service,
        get_webhook_handler,
        get_stripe_service,
        get_notification_service,
    ):
        factory.cache_clear()

    reset_dynamodb_service()
