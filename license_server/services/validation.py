"""
End-to-end license validation for a device request.

Stages run strictly in order and stop at the first failure:
fields, authentication, lookup, active flag, expiry, then issuance.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional
import logging
import time

from cryptography.exceptions import UnsupportedAlgorithm

from ..schemas.license import LicenseRecord, ValidationRequest
from ..utils.exceptions import (
    InternalCryptoException,
    LicenseExpiredException,
    LicenseInactiveException,
    LicenseNotFoundException,
    MissingFieldException
)
from ..utils.security import ensure_utc, format_iso_utc
from .authentication import AuthenticationVerifier
from .encryptor import PayloadEncryptor
from .signer import LicenseSigner
from .store import LicenseStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    license_string: str
    encrypted_data: str
    nonce: Optional[str]
    encryption_scheme: str
    expires_at: Optional[str]
    features: List[str]


class LicenseValidationService:
    def __init__(
        self,
        verifier: AuthenticationVerifier,
        store: LicenseStore,
        signer: LicenseSigner,
        encryptor: PayloadEncryptor,
        clock: Callable[[], float] = time.time
    ):
        self.verifier = verifier
        self.store = store
        self.signer = signer
        self.encryptor = encryptor
        self._clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _check_record(self, device_id: str, record: Optional[LicenseRecord]) -> LicenseRecord:
        if record is None:
            logger.info(f"License not found for device: {device_id}")
            raise LicenseNotFoundException()

        if not record.active:
            logger.info(f"License deactivated for device: {device_id}")
            raise LicenseInactiveException()

        expiration = ensure_utc(record.expiration_date)
        if expiration is not None and expiration < self._now():
            logger.info(f"License expired for device: {device_id}")
            raise LicenseExpiredException()

        return record

    def _issue(self, record: LicenseRecord) -> ValidationResult:
        try:
            license_string = self.signer.sign(record)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            logger.exception(f"Signing failed for device: {record.hardware_id}")
            raise InternalCryptoException() from e

        payload = self.encryptor.encrypt(record.company_profile.to_json_bytes())

        return ValidationResult(
            license_string=license_string,
            encrypted_data=payload.data,
            nonce=payload.nonce,
            encryption_scheme=payload.scheme,
            expires_at=format_iso_utc(record.expiration_date) or None,
            features=sorted(record.features),
        )

    def validate(self, request: ValidationRequest) -> ValidationResult:
        device_id = request.device_id
        logger.info(f"Validation request for device: {device_id}")

        if not device_id or request.timestamp is None or not request.signature:
            raise MissingFieldException()

        self.verifier.verify(device_id, request.timestamp, request.signature)

        record = self._check_record(device_id, self.store.lookup(device_id))
        result = self._issue(record)

        logger.info(f"License validated for device: {device_id}")
        return result
