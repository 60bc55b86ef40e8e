"""Application configuration."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "Bridgestore"
    version: str = "0.1.0"
    api_prefix: str = "/api/v1"

    # CORS Settings
    cors_origins: list[str] = ["*"]  # Default to allow all in development
    cors_allow_credentials: bool = False

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./bridgestore.db"
    MAX_CONNECTIONS: int = 10

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Settlement Settings
    SETTLEMENT_API_URL: str = "http://localhost:8545"
    SETTLEMENT_REQUEST_TIMEOUT: float = Field(default=10.0, gt=0)
    SETTLEMENT_WAIT_TIMEOUT: float = Field(default=300.0, gt=0)  # 5 minutes
    SETTLEMENT_POLL_INTERVAL: float = Field(default=5.0, gt=0)
    SETTLEMENT_ACCEPT_EXECUTED: bool = False
    SETTLEMENT_MAX_CONCURRENT_WAITS: int = Field(default=100, ge=1)
    REQUIRE_TRANSFER_REF: bool = True

    # Storage Settings
    STORAGE_BACKEND: str = "local"  # "local" | "http"
    STORAGE_PATH: str = "./content_store"
    STORAGE_GATEWAY_URL: str = "http://localhost:3001"
    STORAGE_REQUEST_TIMEOUT: float = Field(default=120.0, gt=0)
    STORAGE_CAPACITY_BYTES: int | None = Field(default=None, ge=0)
    MAX_PAYLOAD_BYTES: int = Field(default=200 * 1024 * 1024, ge=1)  # 200 MiB
    VERIFY_ON_RETRIEVE: bool = False

    # Reconciliation Settings
    RECONCILE_GRACE_SECONDS: int = Field(default=900, ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @model_validator(mode="after")
    def validate_origins(self) -> "Settings":
        """Validate CORS origins."""
        if self.cors_origins == ["*"]:
            self.cors_origins = [
                "http://localhost",
                "http://localhost:8000",
                "http://localhost:3000",
            ]
        return self

    @model_validator(mode="after")
    def validate_storage_backend(self) -> "Settings":
        """Reject unknown storage backends early."""
        if self.STORAGE_BACKEND not in ("local", "http"):
            raise ValueError(
                f"Unsupported STORAGE_BACKEND: {self.STORAGE_BACKEND}. "
                "Supported backends: local, http"
            )
        return self

    @model_validator(mode="after")
    def use_test_configs_for_testing(self) -> "Settings":
        """Use the test database for tests to ensure isolation."""
        import os

        if os.getenv("TESTING") == "true":
            test_database_url = os.getenv("TEST_DATABASE_URL")
            if test_database_url:
                self.DATABASE_URL = test_database_url
        return self


# Create settings instance
settings = Settings()
