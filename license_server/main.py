from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import Optional
import logging

from .config.settings import Settings, settings as default_settings
from .api.deps import get_key_material
from .api.routes import admin, license
from .database import create_session_factory, init_db
from .middleware.logging import log_requests
from .middleware.rate_limiter import RateLimiter
from .services.authentication import AuthenticationVerifier
from .services.encryptor import PayloadEncryptor, SCHEME_LEGACY
from .services.signer import LicenseSigner
from .services.store import InMemoryLicenseStore, LicenseStore, SqlAlchemyLicenseStore
from .services.validation import LicenseValidationService
from .utils.exceptions import (
    LicenseServerException,
    RateLimitExceededException,
    http_exception_handler,
    license_server_exception_handler,
    request_validation_exception_handler
)
from .utils.security import KeyMaterial, load_key_material

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT
    )


def build_store(settings: Settings) -> LicenseStore:
    if settings.STORE_BACKEND == "memory":
        return InMemoryLicenseStore()
    session_factory = create_session_factory(settings.DATABASE_URL)
    init_db(session_factory)
    return SqlAlchemyLicenseStore(session_factory)


def init_license_services(app: FastAPI) -> None:
    """Load key material once and wire the validation flow onto app.state"""
    settings: Settings = app.state.settings
    key_material = load_key_material(settings)

    if app.state.license_store is None:
        app.state.license_store = build_store(settings)

    app.state.key_material = key_material
    app.state.validation_service = LicenseValidationService(
        verifier=AuthenticationVerifier(
            key_material.hmac_secret,
            tolerance_seconds=settings.TIMESTAMP_TOLERANCE_SECONDS
        ),
        store=app.state.license_store,
        signer=LicenseSigner(key_material.private_key),
        encryptor=PayloadEncryptor(key_material.hmac_secret, settings.PAYLOAD_ENCRYPTION),
    )

    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} starting ({settings.ENVIRONMENT})")
    logger.info(f"HMAC_SECRET length: {len(key_material.hmac_secret)}")
    logger.info(f"Payload encryption: {settings.PAYLOAD_ENCRYPTION}")
    if settings.PAYLOAD_ENCRYPTION == SCHEME_LEGACY:
        logger.warning("Legacy payload encryption reuses a fixed key and zero nonce")
    logger.info(f"License store: {settings.STORE_BACKEND}, {len(app.state.license_store.list_records())} licenses")
    if not settings.admin_enabled:
        logger.warning("ADMIN_API_KEY is not set; admin endpoints will reject every request")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[LicenseStore] = None
) -> FastAPI:
    settings = settings or default_settings
    settings.validate_for_environment()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs" if settings.ENABLE_DOCS else None,
        redoc_url="/redoc" if settings.ENABLE_DOCS else None,
    )
    app.state.settings = settings
    app.state.license_store = store

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=settings.ALLOWED_METHODS,
        allow_headers=settings.ALLOWED_HEADERS,
    )

    # Add rate limiting middleware (registered first so request logging wraps it)
    rate_limiter = RateLimiter(settings.RATE_LIMIT_PER_MINUTE)
    app.state.rate_limiter = rate_limiter

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if not settings.DISABLE_RATE_LIMIT:
            try:
                await rate_limiter.check_rate_limit(request)
            except RateLimitExceededException as exc:
                return await license_server_exception_handler(request, exc)
        return await call_next(request)

    # Add logging middleware
    app.middleware("http")(log_requests)

    # Exception handlers
    app.add_exception_handler(LicenseServerException, license_server_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

    # Include routers
    app.include_router(license.router, prefix=settings.API_PREFIX, tags=["license"])
    app.include_router(admin.router, prefix=settings.API_PREFIX, tags=["admin"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.VERSION
        }

    @app.get("/public-key", response_class=PlainTextResponse)
    async def public_key(key_material: KeyMaterial = Depends(get_key_material)):
        """PEM public key clients use to verify license strings"""
        return key_material.public_key_pem

    @app.on_event("startup")
    async def startup_event():
        """Initialize services on startup"""
        init_license_services(app)

    return app


configure_logging(default_settings)
app = create_app()
