from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
from pathlib import Path
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=True,
    )

    API_V1_STR: str = "/api/v1"

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'regpay.db'}"

    # Paystack webhook handling
    PAYSTACK_SECRET_KEY: str = ""
    # Signature enforcement is opt-in; the gateway callback is trusted by default
    PAYSTACK_VERIFY_SIGNATURE: bool = False
    # Re-send receipts when a webhook arrives for an already confirmed reference
    RESEND_ON_DUPLICATE_WEBHOOK: bool = False

    # WASender WhatsApp gateway
    WASENDER_BASE_URL: str = "https://www.wasenderapi.com/api"
    WASENDER_API_KEY: str = ""
    WASENDER_TIMEOUT_SECONDS: float = 30.0

    # R2 / S3-compatible storage configuration (Cloudflare R2)
    R2_ACCOUNT_ID: str = ""
    R2_ACCESS_KEY_ID: str = ""
    R2_SECRET_ACCESS_KEY: str = ""
    R2_BUCKET: str = ""
    # Example: https://<account_id>.r2.cloudflarestorage.com or EU endpoint
    R2_S3_ENDPOINT: str = ""
    # Public custom domain for reads (e.g., https://receipts.gosa.events)
    R2_PUBLIC_BASE_URL: str = ""

    # Receipt content
    EVENT_NAME: str = "GOSA 2025 Convention"
    EVENT_MOTTO: str = "For Light and Truth"
    RECEIPT_SCAN_BASE_URL: str = "https://gosa.events/scan"
    CURRENCY_SYMBOL: str = "NGN"

    # Phone numbers without an international prefix are assumed to be Nigerian
    DEFAULT_COUNTRY_CODE: str = "234"

    # SMTP email settings
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "no-reply@localhost"

    # Recipient for urgent delivery alerts; empty disables alert emails
    DELIVERY_ALERT_EMAIL: str = ""

    # Static token guarding the operator endpoints (resend, delivery summary)
    ADMIN_API_TOKEN: str = ""

    LOG_LEVEL: str = "INFO"

    @field_validator(
        "PAYSTACK_SECRET_KEY",
        "WASENDER_BASE_URL",
        "WASENDER_API_KEY",
        "R2_PUBLIC_BASE_URL",
        "RECEIPT_SCAN_BASE_URL",
        "DELIVERY_ALERT_EMAIL",
        "ADMIN_API_TOKEN",
        mode="before",
    )
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("DEFAULT_COUNTRY_CODE", mode="before")
    def strip_plus(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lstrip("+")
        return v

    @model_validator(mode="after")
    def trim_base_urls(cls, values: "Settings") -> "Settings":
        values.WASENDER_BASE_URL = values.WASENDER_BASE_URL.rstrip("/")
        values.R2_PUBLIC_BASE_URL = values.R2_PUBLIC_BASE_URL.rstrip("/")
        return values


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
