"""
Database initialization script for the license server
Creates the licenses table and optional sample device licenses
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List

from ..schemas.license import CompanyProfile, LicenseRecord
from ..services.store import LicenseStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Sample licenses configuration
SAMPLE_LICENSES = [
    {
        "hardware_id": "38E48E43-6299-434E-BB5F-07E1619E2220",
        "company_profile": {
            "codigoEmpresa": "CDE-123",
            "razonSocial": "MiEmpresa, S.A.",
            "nit": "123456-7",
            "nombreComercial": "MiComercio",
            "direccionFiscal": "Calle A, Zona 10",
            "direccionComercial": "Centro Comercial",
            "nombreRepresentante": "Juan Pérez"
        },
        "valid_days": 365,
        "features": ["export", "import", "reports"]
    },
    # Licenses with special states
    {
        "hardware_id": "SAMPLE-EXPIRED-0001",
        "company_profile": {"razonSocial": "Expired Company, S.A.", "nit": "765432-1"},
        "valid_days": -1,
        "features": ["export"]
    },
    {
        "hardware_id": "SAMPLE-PERPETUAL-0001",
        "company_profile": {"razonSocial": "Perpetual Company, S.A.", "nit": "111111-1"},
        "valid_days": None,
        "features": ["export", "import"]
    },
    {
        "hardware_id": "SAMPLE-REVOKED-0001",
        "company_profile": {"razonSocial": "Revoked Company, S.A.", "nit": "222222-2"},
        "valid_days": 365,
        "features": ["reports"],
        "active": False
    }
]

def build_sample_record(data: dict, now: datetime) -> LicenseRecord:
    """Create a sample record with the configured state"""
    valid_days = data.get("valid_days")
    expiration = None if valid_days is None else now + timedelta(days=valid_days)
    return LicenseRecord(
        hardware_id=data["hardware_id"],
        company_profile=CompanyProfile.model_validate(data["company_profile"]),
        expiration_date=expiration,
        features=data["features"],
        active=data.get("active", True)
    )

def seed_licenses(store: LicenseStore) -> List[LicenseRecord]:
    """Insert sample licenses that are not stored yet"""
    now = datetime.now(timezone.utc)
    created = []
    for data in SAMPLE_LICENSES:
        if store.lookup(data["hardware_id"]) is not None:
            logger.info(f"License {data['hardware_id']} already exists")
            continue
        record = store.save(build_sample_record(data, now))
        created.append(record)
        logger.info(f"Created license: {record.hardware_id} (active={record.active})")

    logger.info(f"Successfully created {len(created)} sample licenses")
    return created
