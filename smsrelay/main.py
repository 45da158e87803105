import logging
import secrets
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from smsrelay.accounts import AccountRecord, AccountStore
from smsrelay.config import GatewayConfig, Settings, settings
from smsrelay.errors import ErrorKind, ServiceError, add_exception_handlers, error_response
from smsrelay.gateway import build_gateway
from smsrelay.identity import ACCOUNT_SESSION_KEY, OwnerResolver, build_owner_resolver
from smsrelay.logging_utils import setup_logging, RequestLoggingMiddleware, log_submission_data
from smsrelay.metrics import get_metrics, get_metrics_content_type
from smsrelay.schemas import (
    CredentialsRequest,
    ErrorResponse,
    HealthResponse,
    MessageCreateRequest,
    MessageResponse,
    StatusMessageResponse,
    UserEnvelope,
    UserResponse,
)
from smsrelay.services import MessageQueryService, MessageSubmissionService
from smsrelay.storage import SqlMessageStore, check_db_health, get_db, init_db


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

AUTH_SESSION_COOKIE = "sms_auth_session"

router = APIRouter()
auth_router = APIRouter(prefix="/auth")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    """
    init_db()
    yield


# =============================================================================
# Dependencies
# =============================================================================

def get_submission_service(request: Request, db: Session = Depends(get_db)) -> MessageSubmissionService:
    return MessageSubmissionService(SqlMessageStore(db), request.app.state.gateway)


def get_query_service(db: Session = Depends(get_db)) -> MessageQueryService:
    return MessageQueryService(SqlMessageStore(db))


def get_account_store(db: Session = Depends(get_db)) -> AccountStore:
    return AccountStore(db)


def serialize_message(record, resolver: OwnerResolver) -> MessageResponse:
    return MessageResponse(
        id=record.id,
        phone_number=record.phone_number,
        content=record.content,
        created_at=record.created_at,
        **{resolver.field_name: record.owner_id},
    )


def serialize_user(account: AccountRecord) -> dict:
    return UserEnvelope(user=UserResponse(id=account.id, username=account.username)).model_dump()


def with_cookies(target: JSONResponse, source: Response) -> JSONResponse:
    """Carry cookies set on the injected response over to a returned one."""
    for value in source.headers.getlist("set-cookie"):
        target.headers.append("set-cookie", value)
    return target


# =============================================================================
# Health Check Routes
# =============================================================================

@router.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=HealthResponse)
async def health_ready(request: Request, response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if:
    1. DB is reachable and schema is applied
    2. The SMS gateway has its credentials

    Otherwise returns 503 (Service Unavailable).
    """
    gateway_config = request.app.state.gateway_config
    if not gateway_config.is_complete:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="SMS gateway not configured"
        )

    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Messages Routes
# =============================================================================

@router.post(
    "/messages",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
    response_model_exclude_none=True,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        422: {"model": ErrorResponse, "description": "Validation or persistence error"},
    }
)
def create_message(
    body: MessageCreateRequest,
    request: Request,
    response: Response,
    service: MessageSubmissionService = Depends(get_submission_service),
):
    """
    Store a message for the current caller and relay it as an SMS.

    The message is stored before the gateway is called. If the gateway
    fails, the stored message is still returned with 201.
    """
    resolver = request.app.state.owner_resolver
    identity = resolver.resolve(request, response, create=True)
    if identity.error is not None:
        log_submission_data(request, result=identity.error.kind.value)
        return error_response(identity.error)

    result = service.submit(identity.owner_id, body.phone_number, body.content)
    if not result.ok:
        logger.info(f"Message submission failed: {result.error.message}")
        log_submission_data(request, result=result.error.kind.value)
        return with_cookies(error_response(result.error), response)

    log_submission_data(
        request,
        message_id=result.message.id,
        dispatched=result.delivery.success,
        result="created"
    )
    return serialize_message(result.message, resolver)


@router.get(
    "/messages",
    response_model=List[MessageResponse],
    response_model_exclude_none=True,
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
def list_messages(
    request: Request,
    response: Response,
    service: MessageQueryService = Depends(get_query_service),
):
    """
    List the current caller's messages, newest first.

    An anonymous caller without a session has no messages yet and gets [].
    """
    resolver = request.app.state.owner_resolver
    identity = resolver.resolve(request, response, create=False)
    if identity.error is not None:
        return error_response(identity.error)
    if identity.owner_id is None:
        return []

    messages = service.list(identity.owner_id)
    logger.info(f"GET /messages: returned {len(messages)} messages")
    return [serialize_message(m, resolver) for m in messages]


# =============================================================================
# Auth Routes (account scope only)
# =============================================================================

def _unauthorized(message: str) -> JSONResponse:
    return error_response(ServiceError(ErrorKind.AUTH, message))


def _missing_credentials() -> JSONResponse:
    return error_response(ServiceError(ErrorKind.VALIDATION, "username and password are required"))


@auth_router.post("/register", status_code=status.HTTP_201_CREATED, response_model=UserEnvelope)
def register(body: CredentialsRequest, request: Request, accounts: AccountStore = Depends(get_account_store)):
    if not body.username or not body.password:
        return _missing_credentials()

    account, error = accounts.register(body.username, body.password)
    if error is not None:
        return error_response(error)

    request.session[ACCOUNT_SESSION_KEY] = account.id
    return serialize_user(account)


@auth_router.post("/login", response_model=UserEnvelope)
def login(body: CredentialsRequest, request: Request, accounts: AccountStore = Depends(get_account_store)):
    if not body.username or not body.password:
        return _missing_credentials()

    account = accounts.authenticate(body.username, body.password)
    if account is None:
        return _unauthorized("Invalid username or password")

    request.session[ACCOUNT_SESSION_KEY] = account.id
    return serialize_user(account)


@auth_router.post("/logout", response_model=StatusMessageResponse)
def logout(request: Request):
    if not request.session.get(ACCOUNT_SESSION_KEY):
        return _unauthorized("Not logged in")

    request.session.clear()
    return StatusMessageResponse(message="Logged out successfully")


@auth_router.get("/current_user", response_model=UserEnvelope)
def current_user(request: Request, accounts: AccountStore = Depends(get_account_store)):
    account_id = request.session.get(ACCOUNT_SESSION_KEY)
    account = accounts.get(account_id) if account_id else None
    if account is None:
        request.session.clear()
        return _unauthorized("Not authenticated")
    return serialize_user(account)


# =============================================================================
# Metrics Route
# =============================================================================

@router.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application for one owner scope and gateway mode.

    Only the owner scope, gateway, session and CORS settings are per app.
    The database engine and logging are process-wide and always follow the
    environment (see storage.py and setup_logging above); a DATABASE_URL or
    LOG_LEVEL in app_settings that differs from it is ignored with a warning.

    The gateway and owner resolver are created here, once, and shared by
    every request through app.state.
    """
    app_settings = app_settings or settings

    for name in ("DATABASE_URL", "LOG_LEVEL"):
        if getattr(app_settings, name) != getattr(settings, name):
            logger.warning(f"{name} is process-wide; ignoring the value passed to create_app")

    app = FastAPI(
        title="SMS Relay API",
        description="Stores submitted messages and relays them through an SMS gateway",
        version="1.0.0",
        lifespan=lifespan,
    )

    gateway_config = GatewayConfig.from_settings(app_settings)
    app.state.settings = app_settings
    app.state.gateway_config = gateway_config
    app.state.gateway = build_gateway(gateway_config)
    app.state.owner_resolver = build_owner_resolver(app_settings)

    add_exception_handlers(app)

    if app_settings.OWNER_SCOPE == "account":
        session_secret = app_settings.SESSION_SECRET or secrets.token_hex(32)
        if not app_settings.SESSION_SECRET:
            logger.warning(
                "SESSION_SECRET not set - using generated key "
                "(sessions won't persist across restarts)"
            )
        app.add_middleware(
            SessionMiddleware,
            secret_key=session_secret,
            session_cookie=AUTH_SESSION_COOKIE,
            same_site="lax",
            https_only=app_settings.is_production,
        )

    frontend_origin = app_settings.FRONTEND_ORIGIN
    restricted = bool(frontend_origin) and frontend_origin != "*"
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[frontend_origin] if restricted else ["*"],
        allow_credentials=restricted,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(router)
    if app_settings.OWNER_SCOPE == "account":
        app.include_router(auth_router)

    logger.info(
        f"Application configured: scope={app_settings.OWNER_SCOPE}, gateway={gateway_config.mode}"
    )
    return app


app = create_app()
