"""
License token signing.

A token is ``hardwareID|expiration|features|signature`` where the first three
fields are the canonical string and the signature is base64 RSA PKCS#1 v1.5
over its UTF-8 bytes with SHA-256. PKCS#1 v1.5 is deterministic, so signing the
same record twice yields the same token.
"""
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from typing import NamedTuple
import base64
import binascii

from ..schemas.license import FEATURE_SEPARATOR, FIELD_SEPARATOR, LicenseRecord
from ..utils.security import format_iso_utc


class LicenseToken(NamedTuple):
    hardware_id: str
    expiration: str
    features: str
    signature: str

    @property
    def canonical(self) -> str:
        return FIELD_SEPARATOR.join((self.hardware_id, self.expiration, self.features))

    @property
    def feature_list(self):
        return self.features.split(FEATURE_SEPARATOR) if self.features else []


def canonical_license_string(record: LicenseRecord) -> str:
    if FIELD_SEPARATOR in record.hardware_id:
        raise ValueError("hardware_id may not contain '|'")
    for tag in record.features:
        if FIELD_SEPARATOR in tag or FEATURE_SEPARATOR in tag:
            raise ValueError(f"Feature tag may not contain '|' or ',': {tag!r}")
    return FIELD_SEPARATOR.join((
        record.hardware_id,
        format_iso_utc(record.expiration_date),
        FEATURE_SEPARATOR.join(sorted(record.features)),
    ))


def parse_license_string(license_string: str) -> LicenseToken:
    """Split a token into its four fields"""
    parts = license_string.split(FIELD_SEPARATOR)
    if len(parts) != 4:
        raise ValueError(f"License string must have 4 fields, got {len(parts)}")
    return LicenseToken(*parts)


class LicenseSigner:
    def __init__(self, private_key: rsa.RSAPrivateKey):
        self._private_key = private_key

    def sign(self, record: LicenseRecord) -> str:
        canonical = canonical_license_string(record)
        signature = self._private_key.sign(
            canonical.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256()
        )
        return f"{canonical}{FIELD_SEPARATOR}{base64.b64encode(signature).decode('ascii')}"

    @staticmethod
    def verify(license_string: str, public_key: rsa.RSAPublicKey) -> bool:
        """Check a token the way a client does"""
        try:
            token = parse_license_string(license_string)
            signature = base64.b64decode(token.signature, validate=True)
            public_key.verify(
                signature,
                token.canonical.encode("utf-8"),
                padding.PKCS1v15(),
                hashes.SHA256()
            )
        except (ValueError, binascii.Error, InvalidSignature):
            return False
        return True
