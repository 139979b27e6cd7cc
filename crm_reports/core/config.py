import os
import logging
from dotenv import load_dotenv
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings
from typing import ClassVar, List, Optional

# Load environment variables from .env file
load_dotenv(".env", override=False)
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Class to store all the settings of the CRM reporting service."""

    # ------------------------------
    # Database - Required
    # ------------------------------
    DATABASE_URL: str = Field(env="DATABASE_URL")
    DB_ECHO: bool = Field(default=False, env="DB_ECHO")

    # ------------------------------
    # Auth - Required
    # ------------------------------
    SECRET_KEY: str = Field(env="SECRET_KEY")
    ALGORITHM: str = Field(default="HS256", env="ALGORITHM")
    AUTH_COOKIE_NAME: str = Field(default="auth_token", env="AUTH_COOKIE_NAME")

    # ------------------------------
    # Object storage - Optional (S3 or an S3-compatible endpoint)
    # ------------------------------
    AWS_ACCESS_KEY_ID: str = Field(default="", env="AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY: str = Field(default="", env="AWS_SECRET_ACCESS_KEY")
    AWS_REGION: str = Field(default="us-east-1", env="AWS_REGION")
    AWS_S3_ENDPOINT_URL: Optional[str] = Field(default=None, env="AWS_S3_ENDPOINT_URL")
    AWS_S3_BASE_URL: str = Field(default="", env="AWS_S3_BASE_URL")
    # S3 bucket names allow no underscores; "report_attachments" is spelled with a hyphen here
    REPORT_ATTACHMENTS_BUCKET: str = Field(default="report-attachments", env="REPORT_ATTACHMENTS_BUCKET")

    # ------------------------------
    # Reporting limits
    # ------------------------------
    HISTORY_LIMIT: int = Field(default=200, env="HISTORY_LIMIT")
    PENDING_LIMIT: int = Field(default=50, env="PENDING_LIMIT")
    SUPER_ADMIN_REPORT_LIMIT: int = Field(default=500, env="SUPER_ADMIN_REPORT_LIMIT")
    RECENT_CASES_LIMIT: int = Field(default=200, env="RECENT_CASES_LIMIT")
    ATTENDANCE_WINDOW_DAYS: int = Field(default=30, env="ATTENDANCE_WINDOW_DAYS")
    RATE_LIMIT_SUBMIT: str = Field(default="30/minute", env="RATE_LIMIT_SUBMIT")

    # ------------------------------
    # URLs - Optional with defaults
    # ------------------------------
    FRONTEND_URL: str = Field(default="http://localhost:3000", env="FRONTEND_URL")

    # ------------------------------
    # Environment
    # ------------------------------
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # ------------------------------
    # Database models
    # ------------------------------
    DB_MODELS: ClassVar[List[str]] = [
        "crm_reports.models.user",
        "crm_reports.models.report",
        "crm_reports.models.case",
        "crm_reports.models.student",
        "crm_reports.models.teacher",
        "crm_reports.models.attendance",
        "crm_reports.models.voucher",
    ]

    # ------------------------------
    # Computed Fields
    # ------------------------------
    @computed_field
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """Computed field for CORS origins based on environment."""
        if self.ENVIRONMENT == "production":
            return [self.FRONTEND_URL]
        return ["http://localhost:3000", "http://localhost:5173", self.FRONTEND_URL]

    class Config:
        """Configuration for the settings class."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Instantiate the settings
settings = Settings()
