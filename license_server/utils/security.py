from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import hmac
import logging

from ..config.settings import Settings
from .exceptions import KeyMaterialError

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 32


@dataclass(frozen=True)
class KeyMaterial:
    """Process-wide signing keys and shared secret, read-only after startup"""
    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey
    public_key_pem: str
    hmac_secret: str


def _read_pem(inline: Optional[str], path: str, label: str) -> bytes:
    if inline:
        # Platform env vars often carry PEM newlines as literal "\n"
        return inline.replace("\\n", "\n").encode("utf-8")
    key_file = Path(path)
    try:
        return key_file.read_bytes()
    except OSError as e:
        raise KeyMaterialError(f"Cannot read {label} from {key_file}: {e}") from e


def _public_numbers_match(private_key: rsa.RSAPrivateKey, public_key: rsa.RSAPublicKey) -> bool:
    return private_key.public_key().public_numbers() == public_key.public_numbers()


def load_key_material(settings: Settings) -> KeyMaterial:
    """Load and check the RSA key pair and HMAC secret.

    Any problem here is fatal for the process, never a per-request error.
    """
    if not settings.HMAC_SECRET:
        raise KeyMaterialError("HMAC_SECRET is not configured")
    if len(settings.HMAC_SECRET) < MIN_SECRET_LENGTH:
        logger.warning(
            f"HMAC_SECRET is shorter than {MIN_SECRET_LENGTH} characters; "
            "payload keys will be padded"
        )

    private_pem = _read_pem(settings.PRIVATE_KEY, settings.PRIVATE_KEY_PATH, "private key")
    public_pem = _read_pem(settings.PUBLIC_KEY, settings.PUBLIC_KEY_PATH, "public key")

    try:
        private_key = serialization.load_pem_private_key(private_pem, password=None)
        public_key = serialization.load_pem_public_key(public_pem)
    except (ValueError, TypeError) as e:
        raise KeyMaterialError(f"Invalid PEM key material: {e}") from e

    if not isinstance(private_key, rsa.RSAPrivateKey) or not isinstance(public_key, rsa.RSAPublicKey):
        raise KeyMaterialError("Signing keys must be RSA keys")
    if not _public_numbers_match(private_key, public_key):
        raise KeyMaterialError("Public key does not belong to the configured private key")

    return KeyMaterial(
        private_key=private_key,
        public_key=public_key,
        public_key_pem=public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode("ascii"),
        hmac_secret=settings.HMAC_SECRET,
    )


def verify_admin_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time admin key check; an unset key never matches"""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalize others"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_iso_utc(value: Optional[datetime]) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2030-01-01T00:00:00.000Z"""
    if value is None:
        return ""
    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
