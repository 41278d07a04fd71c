from fastapi import APIRouter, Depends

from ...schemas.license import ValidationRequest, ValidationResponse
from ...services.validation import LicenseValidationService
from ..deps import get_validation_service

router = APIRouter()

@router.post(
    "/validate",
    response_model=ValidationResponse,
    response_model_exclude_none=True
)
def validate_license(
    request: ValidationRequest,
    service: LicenseValidationService = Depends(get_validation_service)
):
    """Authenticate a device and issue its signed license and encrypted profile"""
    result = service.validate(request)
    return ValidationResponse(
        license_string=result.license_string,
        encrypted_data=result.encrypted_data,
        nonce=result.nonce,
        encryption_scheme=result.encryption_scheme,
        expires_at=result.expires_at,
        features=result.features,
    )
