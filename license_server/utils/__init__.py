# Import security functions
from .security import (
    KeyMaterial,
    load_key_material,
    verify_admin_key,
    ensure_utc,
    format_iso_utc
)

# Import exceptions
from .exceptions import (
    LicenseServerException,
    LicenseValidationException,
    KeyMaterialError
)
