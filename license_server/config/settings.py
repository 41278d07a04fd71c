import os
from typing import List, Literal, Optional
from pydantic_settings import BaseSettings
from pathlib import Path
SRC_DIR = Path(__file__).parent.parent.absolute()


class Settings(BaseSettings):
    # Basic API settings
    PROJECT_NAME: str = "Device License Server"
    VERSION: str = "1.0.1"
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Shared secret used for HMAC device authentication and payload keys
    HMAC_SECRET: Optional[str] = None
    TIMESTAMP_TOLERANCE_SECONDS: int = 300

    # RSA signing keys: inline PEM wins over the key file
    PRIVATE_KEY: Optional[str] = None
    PUBLIC_KEY: Optional[str] = None
    PRIVATE_KEY_PATH: str = "private_key.pem"
    PUBLIC_KEY_PATH: str = "public_key.pem"

    # "hkdf" uses a derived key and a random nonce per response,
    # "legacy" keeps the padded-secret key and zero nonce of deployed clients
    PAYLOAD_ENCRYPTION: Literal["hkdf", "legacy"] = "hkdf"

    # Admin endpoints are disabled while this is unset
    ADMIN_API_KEY: Optional[str] = None
    DEFAULT_FEATURES: List[str] = ["export", "import", "reports"]

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 60
    DISABLE_RATE_LIMIT: bool = False

    # Storage
    STORE_BACKEND: Literal["sqlalchemy", "memory"] = "sqlalchemy"
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        f"sqlite:///{SRC_DIR}/licenses.db"
    )

    # CORS settings
    ALLOWED_ORIGINS: List[str] = ["*"]  # Change in production
    ALLOWED_METHODS: List[str] = ["*"]
    ALLOWED_HEADERS: List[str] = ["*"]

    # Documentation
    ENABLE_DOCS: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def admin_enabled(self) -> bool:
        return bool(self.ADMIN_API_KEY)

    def validate_for_environment(self) -> None:
        """Validate critical settings"""
        if self.ENVIRONMENT == "production":
            assert self.ALLOWED_ORIGINS != ["*"], \
                "Production environment must specify explicit CORS origins"


# Create settings instance
settings = Settings()
