from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Dict, List
import json


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Workflow Auth Portal"
    APP_PORT: int = 3000
    DEBUG: bool = False
    BASE_URL: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Session cookie
    SESSION_SECRET: str = "portal-session-secret-change-in-production"
    SESSION_MAX_AGE: int = 24 * 60 * 60  # 24 hours
    SESSION_HTTPS_ONLY: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./data/customers.db"

    # Google OAuth
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_CALLBACK_URL: str = "http://localhost:3000/auth/google/callback"
    GOOGLE_VALIDATE_TIMEOUT: float = 10.0

    # Facebook OAuth
    FB_APP_ID: str = ""
    FB_APP_SECRET: str = ""
    FB_CALLBACK_URL: str = "http://localhost:3000/auth/facebook/callback"

    # QuickBooks (Intuit) OAuth
    QB_ENVIRONMENT: str = "production"  # production, sandbox
    QB_CLIENT_ID_PROD: str = ""
    QB_CLIENT_SECRET_PROD: str = ""
    QB_CLIENT_ID_SANDBOX: str = ""
    QB_CLIENT_SECRET_SANDBOX: str = ""
    QB_CALLBACK_URL: str = "http://localhost:3000/auth/quickbooks/callback"
    QB_VALIDATE_TIMEOUT: float = 5.0

    # TikTok OAuth
    TIKTOK_CLIENT_ID: str = ""
    TIKTOK_CLIENT_SECRET: str = ""
    TIKTOK_REDIRECT_URI: str = "http://localhost:3000/auth/tiktok/callback"

    # Access control
    ADMIN_EMAILS: str = ""
    BASIC_AUTH_USERS: str = "{}"  # JSON: {email: {password_hash, name, role}}

    @property
    def QB_CLIENT_ID(self) -> str:
        if self.QB_ENVIRONMENT == "production":
            return self.QB_CLIENT_ID_PROD
        return self.QB_CLIENT_ID_SANDBOX

    @property
    def QB_CLIENT_SECRET(self) -> str:
        if self.QB_ENVIRONMENT == "production":
            return self.QB_CLIENT_SECRET_PROD
        return self.QB_CLIENT_SECRET_SANDBOX

    @property
    def admin_emails(self) -> List[str]:
        return [e.strip() for e in self.ADMIN_EMAILS.split(",") if e.strip()]

    @property
    def basic_auth_users(self) -> Dict[str, dict]:
        try:
            users = json.loads(self.BASIC_AUTH_USERS or "{}")
        except ValueError:
            return {}
        return users if isinstance(users, dict) else {}

    def auth_url(self, path: str) -> str:
        """Absolute URL for a local auth entry point, e.g. /auth/google"""
        return f"{self.BASE_URL.rstrip('/')}{path}"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
