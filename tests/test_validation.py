"""
Tests for the end-to-end validation flow
"""
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from license_server.schemas.license import LicenseRecord, ValidationRequest
from license_server.services.authentication import AuthenticationVerifier, compute_request_signature
from license_server.services.encryptor import PayloadEncryptor
from license_server.services.signer import LicenseSigner, parse_license_string
from license_server.services.store import InMemoryLicenseStore
from license_server.services.validation import LicenseValidationService
from license_server.utils.exceptions import (
    InternalCryptoException,
    LicenseExpiredException,
    LicenseInactiveException,
    LicenseNotFoundException,
    MissingFieldException,
    SignatureMismatchException,
    StoreUnavailableException,
    TimestampOutOfWindowException
)

from conftest import TEST_SECRET

@pytest.fixture
def service(rsa_private_key, store):
    return LicenseValidationService(
        verifier=AuthenticationVerifier(TEST_SECRET),
        store=store,
        signer=LicenseSigner(rsa_private_key),
        encryptor=PayloadEncryptor(TEST_SECRET, "hkdf"),
    )

def signed_request(device_id="DEV-1", timestamp=None):
    timestamp = int(time.time()) if timestamp is None else timestamp
    return ValidationRequest(
        device_id=device_id,
        timestamp=timestamp,
        signature=compute_request_signature(TEST_SECRET, device_id, timestamp),
    )

def test_valid_request_issues_license(service, rsa_private_key, company_profile):
    result = service.validate(signed_request())

    assert result.license_string.startswith("DEV-1|2030-01-01T00:00:00.000Z|export,import|")
    assert LicenseSigner.verify(result.license_string, rsa_private_key.public_key())
    assert result.expires_at == "2030-01-01T00:00:00.000Z"
    assert result.features == ["export", "import"]
    assert result.encryption_scheme == "hkdf"

    plaintext = PayloadEncryptor(TEST_SECRET, "hkdf").decrypt(result.encrypted_data, result.nonce)
    assert plaintext == company_profile.to_json_bytes()

def test_repeated_validation_keeps_canonical_part(service):
    first = parse_license_string(service.validate(signed_request()).license_string)
    second = parse_license_string(service.validate(signed_request()).license_string)
    assert first.canonical == second.canonical

def test_missing_field(service):
    with pytest.raises(MissingFieldException):
        service.validate(ValidationRequest(device_id="DEV-1", timestamp=int(time.time())))

def test_stale_timestamp(service):
    with pytest.raises(TimestampOutOfWindowException):
        service.validate(signed_request(timestamp=int(time.time()) - 301))

def test_bad_signature_even_when_record_exists(service):
    request = signed_request()
    request.signature = compute_request_signature("wrong-secret", "DEV-1", request.timestamp)
    with pytest.raises(SignatureMismatchException):
        service.validate(request)

def test_unknown_device(service):
    with pytest.raises(LicenseNotFoundException):
        service.validate(signed_request(device_id="DEV-404"))

def test_inactive_license(service, store):
    store.deactivate("DEV-1")
    with pytest.raises(LicenseInactiveException):
        service.validate(signed_request())

def test_expired_license(service, store, dev1_record):
    store.save(dev1_record.model_copy(update={
        "expiration_date": datetime.now(timezone.utc) - timedelta(days=1)
    }))
    with pytest.raises(LicenseExpiredException) as exc_info:
        service.validate(signed_request())
    assert exc_info.value.to_content()["expired"] is True

def test_inactive_is_checked_before_expiry(service, store, dev1_record):
    store.save(dev1_record.model_copy(update={
        "active": False,
        "expiration_date": datetime.now(timezone.utc) - timedelta(days=1)
    }))
    with pytest.raises(LicenseInactiveException):
        service.validate(signed_request())

def test_perpetual_license(service, store):
    store.save(LicenseRecord(hardware_id="DEV-P", features=["reports"]))
    result = service.validate(signed_request(device_id="DEV-P"))
    assert result.license_string.startswith("DEV-P||reports|")
    assert result.expires_at is None

def test_auth_failure_skips_store_lookup(rsa_private_key):
    store = Mock()
    service = LicenseValidationService(
        verifier=AuthenticationVerifier(TEST_SECRET),
        store=store,
        signer=LicenseSigner(rsa_private_key),
        encryptor=PayloadEncryptor(TEST_SECRET),
    )
    request = signed_request()
    request.signature = "00" * 32
    with pytest.raises(SignatureMismatchException):
        service.validate(request)
    store.lookup.assert_not_called()

def test_store_failure_propagates(rsa_private_key):
    store = Mock()
    store.lookup.side_effect = StoreUnavailableException()
    service = LicenseValidationService(
        verifier=AuthenticationVerifier(TEST_SECRET),
        store=store,
        signer=LicenseSigner(rsa_private_key),
        encryptor=PayloadEncryptor(TEST_SECRET),
    )
    with pytest.raises(StoreUnavailableException):
        service.validate(signed_request())
    store.lookup.assert_called_once_with("DEV-1")

def test_signing_failure_is_internal_crypto_error(store):
    signer = Mock()
    signer.sign.side_effect = ValueError("bad key")
    service = LicenseValidationService(
        verifier=AuthenticationVerifier(TEST_SECRET),
        store=store,
        signer=signer,
        encryptor=PayloadEncryptor(TEST_SECRET),
    )
    with pytest.raises(InternalCryptoException):
        service.validate(signed_request())

def test_clock_drives_expiry(rsa_private_key, store):
    after_expiry = datetime(2030, 1, 2, tzinfo=timezone.utc).timestamp()
    service = LicenseValidationService(
        verifier=AuthenticationVerifier(TEST_SECRET, clock=lambda: after_expiry),
        store=store,
        signer=LicenseSigner(rsa_private_key),
        encryptor=PayloadEncryptor(TEST_SECRET),
        clock=lambda: after_expiry,
    )
    with pytest.raises(LicenseExpiredException):
        service.validate(signed_request(timestamp=int(after_expiry)))
