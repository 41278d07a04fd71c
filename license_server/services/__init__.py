from .authentication import AuthenticationVerifier, compute_request_signature
from .encryptor import EncryptedPayload, PayloadEncryptor
from .signer import LicenseSigner, canonical_license_string, parse_license_string
from .store import InMemoryLicenseStore, LicenseStore, SqlAlchemyLicenseStore
from .validation import LicenseValidationService, ValidationResult
