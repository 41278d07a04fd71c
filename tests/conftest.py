# conftest.py

import time
from datetime import datetime, timezone

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from license_server.config.settings import Settings
from license_server.main import create_app
from license_server.schemas.license import CompanyProfile, LicenseRecord
from license_server.services.authentication import compute_request_signature
from license_server.services.store import InMemoryLicenseStore

TEST_SECRET = "s3cr3t-shared-secret-for-license-tests"
ADMIN_KEY = "test-admin-key"

@pytest.fixture(scope="session")
def rsa_private_key():
    """One RSA key pair for the whole session, generation is slow"""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)

@pytest.fixture(scope="session")
def private_pem(rsa_private_key):
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode("ascii")

@pytest.fixture(scope="session")
def public_pem(rsa_private_key):
    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode("ascii")

@pytest.fixture
def settings(private_pem, public_pem):
    """Settings that never read the developer's environment files"""
    return Settings(
        _env_file=None,
        HMAC_SECRET=TEST_SECRET,
        PRIVATE_KEY=private_pem,
        PUBLIC_KEY=public_pem,
        ADMIN_API_KEY=ADMIN_KEY,
        DATABASE_URL="sqlite://",
        DISABLE_RATE_LIMIT=True,
        ENVIRONMENT="test",
    )

@pytest.fixture
def company_profile():
    return CompanyProfile(
        company_code="CDE-123",
        legal_name="MiEmpresa, S.A.",
        tax_id="123456-7",
        trade_name="MiComercio",
        fiscal_address="Calle A, Zona 10",
        commercial_address="Centro Comercial",
        representative_name="Juan Pérez",
    )

@pytest.fixture
def dev1_record(company_profile):
    return LicenseRecord(
        hardware_id="DEV-1",
        company_profile=company_profile,
        expiration_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
        features=["import", "export"],
        active=True,
    )

@pytest.fixture
def store(dev1_record):
    return InMemoryLicenseStore([dev1_record])

@pytest.fixture
def client(settings, store):
    """Test client with startup events run"""
    app = create_app(settings, store=store)
    with TestClient(app) as test_client:
        yield test_client

@pytest.fixture
def make_proof():
    """Build a validation request body signed with the test secret"""
    def _make_proof(device_id="DEV-1", timestamp=None, secret=TEST_SECRET):
        timestamp = int(time.time()) if timestamp is None else timestamp
        return {
            "device_id": device_id,
            "timestamp": timestamp,
            "signature": compute_request_signature(secret, device_id, timestamp),
            "app_version": "1.0",
        }
    return _make_proof
