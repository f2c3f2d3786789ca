"""
Configuration settings for the exam portal, loaded from the environment (.env supported).
"""

import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_list(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    """Application settings loaded from environment."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://localhost:5432/examvault")
    SCHEMA_SEARCH_PATH: Optional[str] = os.getenv("SCHEMA_SEARCH_PATH")
    SQL_ECHO: bool = _as_bool(os.getenv("SQL_ECHO"), False)

    # Auth
    SECRET: str = os.getenv("SECRET", "change-me")
    JWT_LIFETIME_SECONDS: int = int(os.getenv("JWT_LIFETIME_SECONDS", 3600))

    # Content store (Pinata pinning service + public IPFS gateways)
    PINATA_JWT: str = os.getenv("PINATA_JWT", "")
    PINATA_API_URL: str = os.getenv("PINATA_API_URL", "https://api.pinata.cloud")
    IPFS_GATEWAYS: List[str] = _as_list(
        os.getenv("IPFS_GATEWAYS"),
        [
            "https://gateway.pinata.cloud",
            "https://ipfs.io",
            "https://cloudflare-ipfs.com",
        ],
    )
    CONTENT_STORE_TIMEOUT: float = float(os.getenv("CONTENT_STORE_TIMEOUT", 10))

    # Mail
    EMAIL_HOST: str = os.getenv("EMAIL_HOST", "smtp.gmail.com")
    EMAIL_PORT: int = int(os.getenv("EMAIL_PORT", 587))
    EMAIL_USER: str = os.getenv("EMAIL_USER", "")
    EMAIL_PASS: str = os.getenv("EMAIL_PASS", "")
    EMAIL_FROM_NAME: str = os.getenv("EMAIL_FROM_NAME", "Exam Portal")
    EMAIL_MAX_RETRIES: int = int(os.getenv("EMAIL_MAX_RETRIES", 3))
    SMTP_HEALTHCHECK_SECONDS: int = int(os.getenv("SMTP_HEALTHCHECK_SECONDS", 300))
    # concurrent SMTP connections used while e-mailing released results
    SMTP_POOL_SIZE: int = int(os.getenv("SMTP_POOL_SIZE", 5))
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Exams
    DEFAULT_TIME_LIMIT_MINUTES: int = int(os.getenv("DEFAULT_TIME_LIMIT_MINUTES", 60))
    MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", 5))
    RESULTS_EMAIL_BATCH_SIZE: int = int(os.getenv("RESULTS_EMAIL_BATCH_SIZE", 50))

    # false disables the server-side deadline and the approval check on exam mode
    ENFORCE_SUBMISSION_DEADLINE: bool = _as_bool(os.getenv("ENFORCE_SUBMISSION_DEADLINE"), True)
    SUBMISSION_GRACE_SECONDS: int = int(os.getenv("SUBMISSION_GRACE_SECONDS", 30))
    REQUIRE_APPROVAL_FOR_EXAM_MODE: bool = _as_bool(os.getenv("REQUIRE_APPROVAL_FOR_EXAM_MODE"), True)

    # Server
    CORS_ORIGINS: List[str] = _as_list(
        os.getenv("CORS_ORIGINS"),
        [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
    )
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def mail_enabled(self) -> bool:
        return bool(self.EMAIL_USER and self.EMAIL_PASS)


# Global settings instance
settings = Settings()
