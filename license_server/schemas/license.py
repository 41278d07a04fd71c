from pydantic import BaseModel, Field, field_validator
from typing import Iterable, List, Optional
from datetime import datetime

FIELD_SEPARATOR = "|"
FEATURE_SEPARATOR = ","


def normalize_features(features: Iterable[str]) -> List[str]:
    """Strip, de-duplicate and sort feature tags so signing never depends on input order"""
    tags = set()
    for tag in features:
        tag = tag.strip()
        if not tag:
            continue
        if FIELD_SEPARATOR in tag or FEATURE_SEPARATOR in tag:
            raise ValueError(f"Feature tag may not contain '|' or ',': {tag!r}")
        tags.add(tag)
    return sorted(tags)


def check_device_id(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("device_id must not be empty")
    if FIELD_SEPARATOR in value:
        raise ValueError("device_id may not contain '|'")
    return value


class CompanyProfile(BaseModel):
    """Licensee business identity, serialized with the keys deployed clients decode"""
    company_code: Optional[str] = Field(None, alias="codigoEmpresa")
    legal_name: Optional[str] = Field(None, alias="razonSocial")
    tax_id: Optional[str] = Field(None, alias="nit")
    trade_name: Optional[str] = Field(None, alias="nombreComercial")
    fiscal_address: Optional[str] = Field(None, alias="direccionFiscal")
    commercial_address: Optional[str] = Field(None, alias="direccionComercial")
    representative_name: Optional[str] = Field(None, alias="nombreRepresentante")

    class Config:
        populate_by_name = True
        extra = "allow"

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


class LicenseRecord(BaseModel):
    hardware_id: str
    company_profile: CompanyProfile = Field(default_factory=CompanyProfile)
    expiration_date: Optional[datetime] = None
    features: List[str] = Field(default_factory=list)
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("features")
    @classmethod
    def normalize_feature_tags(cls, value):
        return normalize_features(value)


# Validation flow
class ValidationRequest(BaseModel):
    # Optional so an absent field is reported as MISSING_FIELD, not a schema error
    device_id: Optional[str] = None
    timestamp: Optional[int] = None
    signature: Optional[str] = None
    app_version: Optional[str] = None


class ValidationResponse(BaseModel):
    valid: bool = True
    license_string: str = Field(alias="licenseString")
    encrypted_data: str = Field(alias="encryptedData")
    nonce: Optional[str] = None
    encryption_scheme: str = Field(alias="encryptionScheme")
    expires_at: Optional[str] = Field(None, alias="expiresAt")
    features: List[str]

    class Config:
        populate_by_name = True


# Administration
class RegisterRequest(BaseModel):
    api_key: Optional[str] = None
    device_id: str
    company_profile: CompanyProfile = Field(alias="empresa")
    expiration_date: Optional[datetime] = Field(None, alias="expirationDate")
    features: Optional[List[str]] = None

    class Config:
        populate_by_name = True

    @field_validator("device_id")
    @classmethod
    def validate_device_id(cls, value):
        return check_device_id(value)

    @field_validator("features")
    @classmethod
    def normalize_feature_tags(cls, value):
        if value is None:
            return None
        return normalize_features(value)


class RegisterResponse(BaseModel):
    success: bool = True
    message: str
    device_id: str


class RevokeRequest(BaseModel):
    api_key: Optional[str] = None
    device_id: str


class RevokeResponse(BaseModel):
    success: bool = True
    message: str


class LicenseSummary(BaseModel):
    hardware_id: str = Field(alias="hardwareID")
    company: Optional[str] = Field(None, alias="empresa")
    active: bool = Field(alias="activa")
    expiration_date: Optional[str] = Field(None, alias="expirationDate")
    created_at: Optional[str] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True


class LicenseListResponse(BaseModel):
    licenses: List[LicenseSummary]


class LicenseStats(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    expired: int = 0
    perpetual: int = 0
