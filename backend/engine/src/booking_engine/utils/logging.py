"""Structured logging with correlation ID support.

Usage:
    from booking_engine.utils.logging import get_logger, set_correlation_id

    # In middleware:
    set_correlation_id(request.headers.get("X-Correlation-ID"))

    # In service code:
    logger = get_logger(__name__)
    log_booking_operation(logger, "create_booking", booking_id="BKG-123")
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

NO_CORRELATION_ID = "no-correlation-id"


def generate_correlation_id() -> str:
    """Generate a new UUID-based correlation ID."""
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current request context.

    Args:
        correlation_id: Existing correlation ID. If None, generates a new one.

    Returns:
        The correlation ID that was set
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Prefixes each line with the correlation ID for grep/filtering."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return f"[{record.correlation_id}] {super().format(record)}"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Install the structured formatter on the root logger once."""
    root = logging.getLogger()
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def _emit(
    logger: logging.Logger,
    prefix: str,
    context: dict[str, Any],
    *,
    level: int,
) -> None:
    parts = [prefix]
    parts.extend(f"{key}={value}" for key, value in context.items() if key != "operation")
    logger.log(level, " | ".join(parts), extra=context)


def log_booking_operation(
    logger: logging.Logger,
    operation: str,
    *,
    booking_id: str | None = None,
    property_id: str | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a booking lifecycle operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g. "create_booking", "cancel_booking")
        booking_id: Booking ID if available
        property_id: Property ID if available
        status: Resulting booking status
        error: Error message if the operation failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"operation": operation}
    if booking_id:
        context["booking_id"] = booking_id
    if property_id:
        context["property_id"] = property_id
    if status:
        context["status"] = status
    if error:
        context["error"] = error
    context.update(extra)

    _emit(
        logger,
        f"Booking operation: {operation}",
        context,
        level=logging.ERROR if error else logging.INFO,
    )


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    booking_id: str | None = None,
    refund_id: str | None = None,
    amount_cents: int | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a payment operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g. "create_checkout_session", "submit_refund")
        booking_id: Booking ID if available
        refund_id: Refund record ID if available
        amount_cents: Amount in cents if relevant
        status: Payment/refund status
        error: Error message if the operation failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"operation": operation}
    if booking_id:
        context["booking_id"] = booking_id
    if refund_id:
        context["refund_id"] = refund_id
    if amount_cents is not None:
        context["amount_cents"] = amount_cents
    if status:
        context["status"] = status
    if error:
        context["error"] = error
    context.update(extra)

    _emit(
        logger,
        f"Payment operation: {operation}",
        context,
        level=logging.ERROR if error else logging.INFO,
    )


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    booking_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a webhook event with structured context.

    Args:
        logger: Logger instance
        event_type: Gateway event type (e.g. "checkout.session.completed")
        event_id: Gateway event ID
        booking_id: Associated booking ID if available
        result: Processing result (success, duplicate, skipped, error)
        error: Error message if processing failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"event_type": event_type, "event_id": event_id}
    if booking_id:
        context["booking_id"] = booking_id
    if result:
        context["result"] = result
    if error:
        context["error"] = error
    context.update(extra)

    if result == "error":
        level = logging.ERROR
    elif result in ("duplicate", "skipped"):
        level = logging.WARNING
    else:
        level = logging.INFO

    msg_parts = [f"Webhook event: {event_type} ({event_id})"]
    if result:
        msg_parts.append(f"result={result}")
    if booking_id:
        msg_parts.append(f"booking={booking_id}")
    if error:
        msg_parts.append(f"error={error}")
    logger.log(level, " | ".join(msg_parts), extra=context)
