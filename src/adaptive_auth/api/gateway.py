"""API Gateway - FastAPI application for the authentication core."""

import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adaptive_auth.api.schemas import (
    CleanupResponse,
    ErrorResponse,
    EvaluateLoginResponse,
    RevokeOtherSessionsRequest,
    RevokeOtherSessionsResponse,
    RevokeSessionRequest,
    RevokeSessionResponse,
    SessionValidationResponse,
    SuspiciousActivityResponse,
    ValidateSessionRequest,
)
from adaptive_auth.api.service import AuthenticationService
from adaptive_auth.common.config.settings import get_config
from adaptive_auth.common.exceptions import (
    AdaptiveAuthException,
    ConcurrencyConflictError,
    DeliveryError,
    PersistenceError,
)
from adaptive_auth.common.logging import configure_logging
from adaptive_auth.core.results import AuthFailure, ErrorKind
from adaptive_auth.data.schemas import LoginAttemptData
from adaptive_auth.mfa.schemas import (
    ResendCodeRequest,
    SendCodeRequest,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)

configure_logging(get_config().log_level.value)
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHORIZATION: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STATE_CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.COOLDOWN_ACTIVE: 429,
}


class ServiceManager:
    """Thread-safe service singleton manager."""

    _instance: Optional[AuthenticationService] = None
    _lock = threading.Lock()
    _initialized = False

    @classmethod
    def get_service(cls) -> AuthenticationService:
        """Get or create the authentication service instance (thread-safe)."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = AuthenticationService.from_config(get_config())
                    cls._initialized = True
                    logger.info("AuthenticationService initialized")
        return cls._instance

    @classmethod
    def set_service(cls, service: AuthenticationService) -> None:
        """Install a pre-built service (tests, embedding)."""
        with cls._lock:
            cls._instance = service
            cls._initialized = True

    @classmethod
    def shutdown(cls) -> None:
        """Shutdown the service and release resources."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.shutdown()
                cls._instance = None
                cls._initialized = False
                logger.info("AuthenticationService shutdown complete")


def get_service() -> AuthenticationService:
    """Get the authentication service instance."""
    return ServiceManager.get_service()


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def failure_response(failure: AuthFailure, body) -> JSONResponse:
    """Render a failed business outcome with the status for its kind."""
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(failure.kind, 400),
        content=body.model_dump(mode="json"),
    )


# =============================================================================
# CORS CONFIGURATION
# =============================================================================

def get_cors_origins() -> List[str]:
    """Get allowed CORS origins from configuration.

    In production, set AUTH_CORS_ORIGINS to a comma-separated list of
    allowed origins.

    Example: AUTH_CORS_ORIGINS="https://app.example.com,https://admin.example.com"
    """
    config = get_config()
    if config.cors_origins:
        return config.cors_origins

    if config.is_production:
        logger.warning(
            "AUTH_CORS_ORIGINS not set in production. "
            "CORS will be disabled. Set AUTH_CORS_ORIGINS for cross-origin access."
        )
        return []

    logger.warning("Running in development mode with permissive CORS (allow_origins=['*'])")
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Adaptive auth API starting up...")
    get_service()
    logger.info("Adaptive auth API ready")

    yield

    logger.info("Adaptive auth API shutting down...")
    ServiceManager.shutdown()


app = FastAPI(
    title="Adaptive Auth API",
    description="Risk-adaptive login evaluation, one-time codes and session management.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if get_config().is_production else "/docs",
    redoc_url=None,
)

cors_origins = get_cors_origins()
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["POST", "GET"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _error(request: Request, status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(),
    )


@app.exception_handler(ConcurrencyConflictError)
async def conflict_handler(request: Request, exc: ConcurrencyConflictError) -> JSONResponse:
    """A concurrent request for the same user won the race."""
    logger.warning(f"Concurrency conflict: {exc.message}")
    return _error(request, 409, "concurrency_conflict", "Concurrent request in progress, retry")


@app.exception_handler(DeliveryError)
async def delivery_error_handler(request: Request, exc: DeliveryError) -> JSONResponse:
    logger.error(f"Delivery error: {exc.message}")
    return _error(request, 502, "delivery_error", "Verification code could not be delivered")


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error(f"Persistence error: {exc.message}")
    return _error(request, 503, "storage_unavailable", "Storage is temporarily unavailable")


@app.exception_handler(AdaptiveAuthException)
async def auth_exception_handler(request: Request, exc: AdaptiveAuthException) -> JSONResponse:
    logger.error(f"Unhandled {exc.code}: {exc.message}")
    return _error(request, 500, "processing_error", "An error occurred while processing the request")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors.

    Logs full exception for debugging but returns sanitized message to client.
    """
    logger.exception(f"Unexpected error: {type(exc).__name__}")
    return _error(request, 500, "internal_error", "An unexpected error occurred")


# =============================================================================
# MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to each request for tracing."""
    request_id = f"req_{uuid4().hex[:12]}"
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# =============================================================================
# LOGIN EVALUATION
# =============================================================================

@app.post(
    "/evaluate-login",
    response_model=EvaluateLoginResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Evaluate a login attempt",
)
def evaluate_login(data: LoginAttemptData) -> EvaluateLoginResponse:
    """Score a login attempt; challenge it with a code or issue a session."""
    response = get_service().evaluate_login(data)
    logger.info(
        f"Login evaluated for {data.user_id}: decision={response.decision}, "
        f"score={response.assessment.risk_score}"
    )
    return response


# =============================================================================
# MFA
# =============================================================================

@app.post("/mfa/send", response_model=SendCodeResponse)
def send_code(body: SendCodeRequest, request: Request):
    result = get_service().mfa.send_code(
        body, client_ip=client_ip(request), user_agent=request.headers.get("user-agent", "")
    )
    return failure_response(result.error, result) if result.error else result


@app.post("/mfa/verify", response_model=VerifyCodeResponse)
def verify_code(body: VerifyCodeRequest, request: Request):
    result = get_service().mfa.verify_code(
        body, client_ip=client_ip(request), user_agent=request.headers.get("user-agent", "")
    )
    return failure_response(result.error, result) if result.error else result


@app.post("/mfa/resend", response_model=SendCodeResponse)
def resend_code(body: ResendCodeRequest, request: Request):
    result = get_service().mfa.resend_code(body.session_id, client_ip=client_ip(request))
    return failure_response(result.error, result) if result.error else result


# =============================================================================
# SESSIONS
# =============================================================================

@app.post("/sessions/validate", response_model=SessionValidationResponse)
def validate_session(body: ValidateSessionRequest):
    """Validate a token and slide its inactivity window."""
    sessions = get_service().sessions
    validation = sessions.validate_session(body.token)
    if not validation.is_valid:
        return JSONResponse(
            status_code=401,
            content=SessionValidationResponse(is_valid=False, reason=validation.reason).model_dump(mode="json"),
        )

    sessions.update_activity(body.token)
    session = validation.session
    return SessionValidationResponse(
        is_valid=True,
        user_id=session.user_id,
        expires_at=session.expires_at,
        last_activity_at=session.last_activity_at,
    )


@app.post("/sessions/revoke", response_model=RevokeSessionResponse)
def revoke_session(body: RevokeSessionRequest) -> RevokeSessionResponse:
    if not get_service().sessions.revoke_session(body.token, body.reason):
        raise HTTPException(status_code=404, detail="session_not_found")
    return RevokeSessionResponse(revoked=True)


@app.post("/sessions/revoke-others", response_model=RevokeOtherSessionsResponse)
def revoke_other_sessions(body: RevokeOtherSessionsRequest) -> RevokeOtherSessionsResponse:
    count = get_service().sessions.revoke_all_other_sessions(body.user_id, body.except_token)
    return RevokeOtherSessionsResponse(revoked_count=count)


@app.get("/sessions/{user_id}/suspicious", response_model=SuspiciousActivityResponse)
def detect_suspicious(user_id: str) -> SuspiciousActivityResponse:
    suspicious = get_service().sessions.detect_suspicious_activity(user_id)
    return SuspiciousActivityResponse(user_id=user_id, suspicious=suspicious)


# =============================================================================
# OPERATIONS
# =============================================================================

@app.post("/maintenance/cleanup", response_model=CleanupResponse)
def cleanup() -> CleanupResponse:
    return get_service().run_maintenance()


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "service": "adaptive-auth"}


@app.get("/ready")
async def readiness_check() -> dict:
    """Readiness check endpoint.

    Returns 503 until the service is initialized and storage answers.
    """
    if not ServiceManager._initialized or not get_service().is_ready():
        raise HTTPException(status_code=503, detail="not_ready")
    return {"status": "ready", "service": "adaptive-auth"}


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "adaptive_auth.api.gateway:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.is_development,
        log_level="info",
    )
