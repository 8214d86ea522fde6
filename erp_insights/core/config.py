"""Application configuration from environment variables."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "ERP Insights"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Database
    DATABASE_URL: str = "sqlite:///./erp_insights.db"

    # Auth
    JWT_SECRET: str = "super-secret-jwt-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 480

    # Admin seed
    ADMIN_EMAIL: str = "admin@erp.local"
    ADMIN_PASSWORD: str = "changeme123"

    # Authorization
    DEFAULT_ROLE: str = "Sales Manager"
    ROLE_POLICY_FILE: Optional[str] = None

    # SAP OData gateway
    SAP_ODATA_ROOT_URL: str = "http://localhost:8000/sap/opu/odata"
    SAP_ODATA_NAMESPACE: str = "sap"
    SAP_ODATA_TIMEOUT_SECONDS: float = 30.0
    SERVICE_REGISTRY_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def sap_service_root(self) -> str:
        """Root under which the named-module services live."""
        root = self.SAP_ODATA_ROOT_URL.rstrip("/")
        if not self.SAP_ODATA_NAMESPACE:
            return root
        return f"{root}/{self.SAP_ODATA_NAMESPACE.strip('/')}"


class SapCredentialSettings(BaseSettings):
    """SAP Basic-auth credentials.

    Instantiated per request, never cached on the module-level settings.
    """

    SAP_ODATA_USERNAME: Optional[str] = None
    SAP_ODATA_PASSWORD: Optional[SecretStr] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
