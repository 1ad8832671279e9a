"""
Application settings loaded from the environment and .env file
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "your-secret-key-change-in-production"
DEFAULT_CATALOG_PATH = str(Path(__file__).parent / "data" / "products.json")


class Settings(BaseSettings):
    """Runtime configuration, built once at startup and injected where needed"""

    # Application
    app_name: str = Field(default="Enrollment Payments API")
    app_env: str = Field(default="development", description="development / production / test")
    debug: bool = Field(default=False, description="Include error details in responses")
    log_level: str = Field(default="INFO")
    api_prefix: str = Field(default="/api/v1")

    # Database
    database_url: str = Field(default="sqlite:///./enrollments.db")

    # Authentication
    secret_key: str = Field(default=DEFAULT_SECRET_KEY)
    access_token_expire_minutes: int = Field(default=30, ge=1)
    refresh_token_expire_days: int = Field(default=7, ge=1)
    password_reset_expire_minutes: int = Field(default=30, ge=1)
    email_verification_expire_minutes: int = Field(default=24 * 60, ge=1)
    initial_admin_username: str = Field(default="", description="Admin account created at startup when missing")
    initial_admin_email: str = Field(default="")
    initial_admin_password: str = Field(default="")

    # Razorpay
    razorpay_key_id: str = Field(default="")
    razorpay_key_secret: str = Field(default="")
    razorpay_base_url: str = Field(default="https://api.razorpay.com")
    gateway_timeout_seconds: float = Field(default=15.0, gt=0)
    currency: str = Field(default="INR")

    # Pricing
    gst_rate: float = Field(default=18.0, ge=0, le=50, description="GST percentage contained in catalog prices")
    catalog_path: str = Field(default=DEFAULT_CATALOG_PATH)

    # Email
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=587)
    smtp_username: str = Field(default="")
    smtp_password: str = Field(default="")
    smtp_from: str = Field(default="payments@example.com")
    smtp_use_tls: bool = Field(default=True)
    smtp_timeout_seconds: float = Field(default=10.0, gt=0)

    # Links and CORS
    frontend_url: str = Field(default="http://localhost:3000")
    allowed_origins: str = Field(default="http://localhost:3000")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a 3-letter ISO code")
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from a comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def invoice_url(self, invoice_link: str) -> str:
        """Public URL where the frontend renders an invoice"""
        return f"{self.frontend_url.rstrip('/')}/invoice/{invoice_link}"

    def account_link(self, action: str, token: str) -> str:
        """Frontend URL carrying an emailed account token, e.g. reset-password"""
        return f"{self.frontend_url.rstrip('/')}/{action}/{token}"

    def check_production_secrets(self) -> None:
        """Refuse to boot production with development secrets"""
        if not self.is_production:
            return
        if self.secret_key == DEFAULT_SECRET_KEY:
            raise ValueError("SECRET_KEY must be set in production")
        if not self.razorpay_key_id or not self.razorpay_key_secret:
            raise ValueError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set in production")


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance, used as a FastAPI dependency"""
    return Settings()
