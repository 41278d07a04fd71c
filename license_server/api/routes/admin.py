from fastapi import APIRouter, Depends
import logging

from ...config.settings import Settings
from ...schemas.license import (
    LicenseListResponse,
    LicenseRecord,
    LicenseStats,
    LicenseSummary,
    RegisterRequest,
    RegisterResponse,
    RevokeRequest,
    RevokeResponse
)
from ...services.store import LicenseStore
from ...utils.exceptions import RecordNotFoundException
from ...utils.security import format_iso_utc
from ..deps import check_admin_key, get_license_store, get_settings, require_admin_query_key

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/register", response_model=RegisterResponse)
def register_license(
    request: RegisterRequest,
    store: LicenseStore = Depends(get_license_store),
    settings: Settings = Depends(get_settings)
):
    """Create or replace the license for a device"""
    check_admin_key(request.api_key, settings)

    features = request.features if request.features is not None else settings.DEFAULT_FEATURES
    store.save(LicenseRecord(
        hardware_id=request.device_id,
        company_profile=request.company_profile,
        expiration_date=request.expiration_date,
        features=features,
        active=True,
    ))

    logger.info(f"License registered: {request.device_id}")
    return RegisterResponse(
        message="License registered successfully",
        device_id=request.device_id
    )

@router.post("/revoke", response_model=RevokeResponse)
def revoke_license(
    request: RevokeRequest,
    store: LicenseStore = Depends(get_license_store),
    settings: Settings = Depends(get_settings)
):
    """Deactivate a device license; records are never deleted"""
    check_admin_key(request.api_key, settings)

    if not store.deactivate(request.device_id):
        raise RecordNotFoundException()

    logger.warning(f"License revoked: {request.device_id}")
    return RevokeResponse(message="License revoked")

@router.get(
    "/licenses",
    response_model=LicenseListResponse,
    dependencies=[Depends(require_admin_query_key)]
)
def list_licenses(store: LicenseStore = Depends(get_license_store)):
    """List licenses without exposing company profiles beyond the legal name"""
    summaries = [
        LicenseSummary(
            hardware_id=record.hardware_id,
            company=record.company_profile.legal_name,
            active=record.active,
            expiration_date=format_iso_utc(record.expiration_date) or None,
            created_at=format_iso_utc(record.created_at) or None,
        )
        for record in store.list_records()
    ]
    return LicenseListResponse(licenses=summaries)

@router.get(
    "/stats",
    response_model=LicenseStats,
    dependencies=[Depends(require_admin_query_key)]
)
def license_stats(store: LicenseStore = Depends(get_license_store)):
    """Aggregate license counts"""
    return store.stats()
