"""Engine services: persistence, policy, orchestration and gateways."""

from .availability import AvailabilityResolver
from .block_service import BlockService
from .booking_orchestrator import BookingOrchestrator
from .booking_service import BookingService
from .cancellation_service import CancellationService
from .credit_ledger import CreditLedger
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .night_claims import NightClaims
from .notification_service import NotificationService, get_notification_service
from .payment_service import PaymentService
from .period_registry import PeriodRegistry
from .pricing import PricingEngine
from .property_service import PropertyService
from .refund_policy_service import RefundPolicyService
from .refund_request_service import RefundRequestService
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import StripeService, StripeServiceError, get_stripe_service
from .webhook_handler import WebhookHandler

__all__ = [
    "AvailabilityResolver",
    "BlockService",
    "BookingOrchestrator",
    "BookingService",
    "CancellationService",
    "CreditLedger",
    "DynamoDBService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "NightClaims",
    "NotificationService",
    "get_notification_service",
    "PaymentService",
    "PeriodRegistry",
    "PricingEngine",
    "PropertyService",
    "RefundPolicyService",
    "RefundRequestService",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "StripeService",
    "StripeServiceError",
    "get_stripe_service",
    "WebhookHandler",
]
