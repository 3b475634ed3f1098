"""FastAPI application for the booking engine REST API.

Provides REST endpoints for:
- Health checks
- Property calendar and quotes (public / customer)
- Bookings, cancellations, refund requests and vouchers (customer)
- Periods, blocks, refunds and maintenance jobs (admin)
- Stripe webhooks (signature verified)
"""

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from booking_api.exceptions import register_exception_handlers
from booking_api.middleware.correlation import CorrelationIdMiddleware
from booking_api.routes.admin_blocks import router as admin_blocks_router
from booking_api.routes.admin_bookings import router as admin_bookings_router
from booking_api.routes.admin_catalog import router as admin_catalog_router
from booking_api.routes.admin_refunds import router as admin_refunds_router
from booking_api.routes.bookings import router as bookings_router
from booking_api.routes.cancellations import router as cancellations_router
from booking_api.routes.health import router as health_router
from booking_api.routes.properties import router as properties_router
from booking_api.routes.refund_requests import router as refund_requests_router
from booking_api.routes.vouchers import router as vouchers_router
from booking_api.routes.webhooks import router as webhooks_router
from booking_engine.utils.logging import configure_logging, get_logger

configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
logger = get_logger(__name__)

app = FastAPI(
    title="Booking Engine API",
    description="Availability, pricing, booking and refund operations",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        os.environ.get("APP_URL", "http://localhost:5173"),
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

# Include routers under /api prefix
# This matches CloudFront routing: /api/* → API Gateway
app.include_router(health_router, prefix="/api")
app.include_router(properties_router, prefix="/api")
app.include_router(bookings_router, prefix="/api")
app.include_router(cancellations_router, prefix="/api")
app.include_router(refund_requests_router, prefix="/api")
app.include_router(vouchers_router, prefix="/api")
app.include_router(admin_catalog_router, prefix="/api")
app.include_router(admin_blocks_router, prefix="/api")
app.include_router(admin_bookings_router, prefix="/api")
app.include_router(admin_refunds_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Root health check endpoint at /api/ping."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "booking-api",
    }


# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: 8080)
        reload: Enable hot reload for development (default: True)
    """
    import uvicorn

    if reload:
        # Use string reference for reload mode (uvicorn requirement)
        uvicorn.run(
            "booking_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["backend/api/src", "backend/engine/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
