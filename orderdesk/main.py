"""
FastAPI Application Entry Point

Order Desk - table-side ordering with a live admin feed.

Endpoints:
    - POST  /api/orders: Customer order submission
    - POST  /api/admin/login: Admin sign-in, returns a bearer token
    - GET   /api/admin/orders: All orders, newest first (bearer)
    - PATCH /api/admin/orders/{id}/status: Change an order's status (bearer)
    - GET   /api/admin/orders/stream: Server-Sent Events feed (?token=)
    - GET   /api/health: Liveness check

The stream takes its token from the query string because browser
EventSource cannot send an Authorization header. Query strings can end up in
proxy logs, so tokens are short-lived and never renewed.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from functools import lru_cache
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from orderdesk.core.config import get_settings, setup_logging
from orderdesk.core.exceptions import OrderDeskError
from orderdesk.database import async_session_maker, engine, init_db, seed_admin
from orderdesk.schemas import (
    AdminInfo,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    LoginResponse,
    OrderCreateResponse,
    OrderListResponse,
    OrderSubmission,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from orderdesk.services.auth import AuthService, require_admin
from orderdesk.services.events import (
    EventHub,
    StreamConnection,
    get_event_hub,
    new_connection,
    now_ms,
)
from orderdesk.services.orders import OrderRepository, sanitize_text
from orderdesk.services.sessions import Session, get_session_store
from orderdesk.tasks import export_order_to_excel

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

STREAM_TOKEN_MAX = 200


# =============================================================================
# SERVICE PROVIDERS
# =============================================================================

@lru_cache()
def get_order_repository() -> OrderRepository:
    return OrderRepository(async_session_maker, get_event_hub())


@lru_cache()
def get_auth_service() -> AuthService:
    return AuthService(async_session_maker, get_session_store())


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    await seed_admin(settings.admin_username, settings.admin_password)
    logger.info("✅ Database initialized")

    hub = get_event_hub()
    heartbeat = asyncio.create_task(hub.heartbeat_loop(settings.heartbeat_interval_seconds))
    logger.info(f"✅ Heartbeat every {settings.heartbeat_interval_seconds:g}s")

    if settings.export_enabled:
        logger.info("✅ Excel export enabled (Celery)")

    logger.info("✅ Application ready!")

    yield

    logger.info("Shutting down...")
    heartbeat.cancel()
    with suppress(asyncio.CancelledError):
        await heartbeat
    hub.shutdown()
    get_session_store().clear()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Customer ordering with a real-time admin order feed.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍜 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/api/health",
    }


@app.get("/api/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    return HealthResponse(ok=True, now=now_ms())


# =============================================================================
# CUSTOMER ENDPOINTS
# =============================================================================

def queue_export(order: dict) -> None:
    """Hand the order to the Excel export worker. Never fails the request."""
    try:
        export_order_to_excel.delay(order)
    except Exception:
        logger.exception(f"Could not queue Excel export for order #{order.get('id')}")


@app.post(
    "/api/orders",
    status_code=201,
    response_model=OrderCreateResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Submit Order",
)
async def create_order(
    submission: Optional[OrderSubmission] = None,
    repository: OrderRepository = Depends(get_order_repository),
) -> OrderCreateResponse:
    """
    Create a new order from the customer menu page.

    Items without a name are dropped; prices and quantities are clamped.
    """
    submission = submission or OrderSubmission()
    order = await repository.create_order(
        submission.customer_name,
        submission.table_no,
        submission.note,
        submission.items,
    )

    if settings.export_enabled:
        queue_export(order.to_payload())

    return OrderCreateResponse(
        message="Order placed successfully",
        order_id=order.id,
        total=order.total,
    )


# =============================================================================
# ADMIN ENDPOINTS
# =============================================================================

@app.post(
    "/api/admin/login",
    response_model=LoginResponse,
    responses=ERROR_RESPONSES,
    tags=["Admin"],
)
async def admin_login(
    credentials: Optional[LoginRequest] = None,
    auth: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Sign in and receive a bearer token."""
    credentials = credentials or LoginRequest()
    result = await auth.login(credentials.username, credentials.password)
    return LoginResponse(
        message="Signed in",
        token=result.token,
        admin=AdminInfo(id=result.admin_id, username=result.username),
        expires_in_ms=result.expires_in_ms,
    )


@app.get(
    "/api/admin/orders",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Admin"],
)
async def admin_list_orders(
    admin: Session = Depends(require_admin),
    repository: OrderRepository = Depends(get_order_repository),
) -> OrderListResponse:
    """All orders, newest first."""
    return OrderListResponse(orders=await repository.list_orders())


@app.patch(
    "/api/admin/orders/{order_id}/status",
    response_model=StatusUpdateResponse,
    responses=ERROR_RESPONSES,
    tags=["Admin"],
)
async def admin_update_status(
    order_id: str,
    body: Optional[StatusUpdateRequest] = None,
    admin: Session = Depends(require_admin),
    repository: OrderRepository = Depends(get_order_repository),
) -> StatusUpdateResponse:
    """Set an order's status (pending, preparing, served, cancelled)."""
    body = body or StatusUpdateRequest()
    order = await repository.update_status(order_id, body.status)
    logger.info(f"{admin.username} set order #{order.id} to {order.status.value}")
    return StatusUpdateResponse(message="Status updated", order=order)


async def stream_events(hub: EventHub, connection: StreamConnection) -> AsyncIterator[str]:
    """Relay queued frames to the client, unregistering when the stream ends."""
    try:
        async for frame in connection.frames():
            yield frame
    finally:
        hub.unregister(connection)


@app.get(
    "/api/admin/orders/stream",
    responses={401: {"model": ErrorResponse}},
    tags=["Admin"],
)
async def admin_order_stream(
    token: str = Query(""),
    hub: EventHub = Depends(get_event_hub),
) -> StreamingResponse:
    """Server-Sent Events feed of order changes."""
    connection = new_connection()
    await hub.register(connection, sanitize_text(token, STREAM_TOKEN_MAX))

    return StreamingResponse(
        stream_events(hub, connection),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        background=BackgroundTask(hub.unregister, connection),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderDeskError)
async def order_desk_exception_handler(request: Request, exc: OrderDeskError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Unparseable request bodies get the same 400 shape as other bad input."""
    logger.debug(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"message": "Invalid request body"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    content = {"message": "Internal server error"}
    if settings.debug:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("orderdesk.main:app", host=settings.api_host, port=settings.api_port)
