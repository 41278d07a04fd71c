from .license import (
    CompanyProfile,
    LicenseRecord,
    ValidationRequest,
    ValidationResponse,
    RegisterRequest,
    RegisterResponse,
    RevokeRequest,
    RevokeResponse,
    LicenseSummary,
    LicenseListResponse,
    LicenseStats,
    normalize_features
)
