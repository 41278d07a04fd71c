"""
Company profile encryption (AES-256-GCM, no associated data).

``encryptedData`` is always base64(ciphertext || 16-byte tag). The ``hkdf``
scheme derives the key with HKDF-SHA256 and uses a fresh random nonce that is
returned next to the ciphertext. The ``legacy`` scheme reproduces what deployed
clients expect: the secret right-padded with "0" and cut to 32 bytes, and an
all-zero nonce. Key and nonce never change under ``legacy``, so equal profiles
produce equal ciphertexts; only enable it for those clients.
"""
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from typing import NamedTuple, Optional
import base64
import binascii
import logging
import os

from ..utils.exceptions import InternalCryptoException

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
HKDF_INFO = b"license-server payload v2"
LEGACY_NONCE = bytes(NONCE_SIZE)

SCHEME_HKDF = "hkdf"
SCHEME_LEGACY = "legacy"
SCHEMES = (SCHEME_HKDF, SCHEME_LEGACY)


class EncryptedPayload(NamedTuple):
    data: str  # base64(ciphertext || tag)
    nonce: Optional[str]  # base64 nonce, None when the client already knows it
    scheme: str


def derive_legacy_key(secret: str) -> bytes:
    return secret.encode("utf-8").ljust(KEY_SIZE, b"0")[:KEY_SIZE]


def derive_hkdf_key(secret: str) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=HKDF_INFO,
    ).derive(secret.encode("utf-8"))


def derive_key(secret: str, scheme: str = SCHEME_HKDF) -> bytes:
    if scheme == SCHEME_HKDF:
        return derive_hkdf_key(secret)
    if scheme == SCHEME_LEGACY:
        return derive_legacy_key(secret)
    raise ValueError(f"Unknown payload encryption scheme: {scheme}")


class PayloadEncryptor:
    def __init__(self, secret: str, scheme: str = SCHEME_HKDF):
        self.scheme = scheme
        self._aesgcm = AESGCM(derive_key(secret, scheme))

    def _next_nonce(self) -> bytes:
        if self.scheme == SCHEME_LEGACY:
            return LEGACY_NONCE
        return os.urandom(NONCE_SIZE)

    def encrypt(self, plaintext: bytes) -> EncryptedPayload:
        nonce = self._next_nonce()
        try:
            # AESGCM appends the tag to the ciphertext
            sealed = self._aesgcm.encrypt(nonce, plaintext, None)
        except (ValueError, TypeError, OverflowError) as e:
            logger.exception("Payload encryption failed")
            raise InternalCryptoException() from e
        return EncryptedPayload(
            data=base64.b64encode(sealed).decode("ascii"),
            nonce=None if self.scheme == SCHEME_LEGACY else base64.b64encode(nonce).decode("ascii"),
            scheme=self.scheme,
        )

    def decrypt(self, data: str, nonce: Optional[str] = None) -> bytes:
        """Reverse ``encrypt``; raises ValueError on malformed or forged input"""
        if self.scheme == SCHEME_LEGACY:
            nonce_bytes = LEGACY_NONCE
        elif nonce is None:
            raise ValueError("A nonce is required for the hkdf scheme")
        else:
            nonce_bytes = base64.b64decode(nonce, validate=True)
        try:
            sealed = base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise ValueError(f"encryptedData is not valid base64: {e}") from e
        if len(sealed) < TAG_SIZE:
            raise ValueError("encryptedData is shorter than the authentication tag")
        try:
            return self._aesgcm.decrypt(nonce_bytes, sealed, None)
        except InvalidTag as e:
            raise ValueError("Authentication tag does not match") from e
