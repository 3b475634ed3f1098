"""Caller identity from API Gateway headers.

The gateway authorizer validates the token and forwards the subject and role
as ``x-user-sub`` and ``x-user-role``. Requests without a subject are
anonymous; the engine decides which operations allow that.
"""

from fastapi import Depends, Request

from booking_engine.models import BookingError, Caller, ErrorCode, Role

USER_SUB_HEADER = "x-user-sub"
USER_ROLE_HEADER = "x-user-role"


def get_caller(request: Request) -> Caller:
    """Resolve the caller of a request. Unknown roles fall back to customer."""
    sub = request.headers.get(USER_SUB_HEADER) or None
    role_header = (request.headers.get(USER_ROLE_HEADER) or "").upper()
    role = Role.ADMIN if role_header == Role.ADMIN.value else Role.CUSTOMER
    return Caller(customer_id=sub, role=role)


def require_customer(caller: Caller = Depends(get_caller)) -> Caller:
    """Dependency for customer-only endpoints.

    Raises:
        BookingError: AUTH_REQUIRED for anonymous callers
    """
    if not caller.customer_id:
        raise BookingError(ErrorCode.AUTH_REQUIRED)
    return caller


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    """Dependency for admin endpoints.

    Raises:
        BookingError: ADMIN_REQUIRED unless the caller has the admin role
    """
    if not caller.is_admin:
        raise BookingError(ErrorCode.ADMIN_REQUIRED)
    return caller
