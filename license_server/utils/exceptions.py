from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from typing import Any, Dict, Optional

class LicenseServerException(HTTPException):
    """Base exception for the license server"""
    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or str(status_code)

    def to_content(self) -> Dict[str, Any]:
        return {
            "error": self.detail,
            "error_code": self.error_code,
        }

class LicenseValidationException(LicenseServerException):
    """Exception for failures of the device validation flow"""
    def to_content(self) -> Dict[str, Any]:
        content = {"valid": False}
        content.update(super().to_content())
        return content

class AdminException(LicenseServerException):
    """Exception for administrative endpoint errors"""
    pass

async def license_server_exception_handler(request: Request, exc: LicenseServerException):
    """Handler for license server exceptions"""
    content = exc.to_content()
    content.update({
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": str(request.url.path),
    })
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handler for standard HTTP exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": str(request.url.path),
            "error": exc.detail,
            "status_code": exc.status_code
        },
        headers=getattr(exc, "headers", None)
    )

async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Malformed validate bodies are reported like a missing field.
    Other routes get a generic 400 that does not name the fields.
    """
    validate_path = f"{request.app.state.settings.API_PREFIX}/validate"
    if request.url.path != validate_path:
        error = AdminException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid request",
            error_code="INVALID_REQUEST"
        )
        return await license_server_exception_handler(request, error)

    fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()]
    names = ", ".join(f for f in fields if f)
    if names:
        error = MissingFieldException(f"Missing or invalid fields: {names}")
    else:
        error = MissingFieldException()
    return await license_server_exception_handler(request, error)

# Validation flow
class MissingFieldException(LicenseValidationException):
    def __init__(self, detail: str = "Missing required fields"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="MISSING_FIELD"
        )

class TimestampOutOfWindowException(LicenseValidationException):
    def __init__(self, detail: str = "Invalid or expired timestamp"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="TIMESTAMP_OUT_OF_WINDOW"
        )

class SignatureMismatchException(LicenseValidationException):
    def __init__(self, detail: str = "Invalid authentication signature"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="SIGNATURE_MISMATCH"
        )

class LicenseNotFoundException(LicenseValidationException):
    def __init__(self, detail: str = "License not found"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="LICENSE_NOT_FOUND"
        )

class LicenseInactiveException(LicenseValidationException):
    def __init__(self, detail: str = "License has been deactivated"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="LICENSE_INACTIVE"
        )

class LicenseExpiredException(LicenseValidationException):
    def __init__(self, detail: str = "License has expired"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="LICENSE_EXPIRED"
        )

    def to_content(self) -> Dict[str, Any]:
        content = super().to_content()
        content["expired"] = True
        return content

class StoreUnavailableException(LicenseValidationException):
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="STORE_UNAVAILABLE"
        )

class InternalCryptoException(LicenseValidationException):
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="INTERNAL_CRYPTO_ERROR"
        )

# Administration
class InvalidAdminKeyException(AdminException):
    def __init__(self, detail: str = "Invalid API key"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="INVALID_API_KEY"
        )

class RecordNotFoundException(AdminException):
    def __init__(self, detail: str = "License not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND"
        )

class RateLimitExceededException(LicenseServerException):
    def __init__(self, detail: str = "Too many requests"):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            error_code="RATE_LIMIT_EXCEEDED",
            headers={"Retry-After": "60"}
        )

# Startup
class KeyMaterialError(RuntimeError):
    """Signing keys or the shared secret could not be loaded"""
    pass
