from fastapi import Depends, Query, Request
from typing import Optional

from ..config.settings import Settings
from ..services.store import LicenseStore
from ..services.validation import LicenseValidationService
from ..utils.exceptions import InvalidAdminKeyException
from ..utils.security import KeyMaterial, verify_admin_key

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_key_material(request: Request) -> KeyMaterial:
    return request.app.state.key_material

def get_license_store(request: Request) -> LicenseStore:
    return request.app.state.license_store

def get_validation_service(request: Request) -> LicenseValidationService:
    return request.app.state.validation_service

def check_admin_key(api_key: Optional[str], settings: Settings) -> None:
    """Raise unless ``api_key`` matches the configured admin key"""
    if not verify_admin_key(api_key, settings.ADMIN_API_KEY):
        raise InvalidAdminKeyException()

async def require_admin_query_key(
    api_key: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings)
) -> None:
    check_admin_key(api_key, settings)
