from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    # One working day; staff stay logged in until they log out or the token lapses
    access_token_expire_minutes: int = Field(720, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, alias="LOG_FILE")

    # Attempts for a payment that keeps losing its optimistic version check
    payment_max_retries: int = Field(3, alias="PAYMENT_MAX_RETRIES", ge=1)

    # Department codes whose classes count as PG batches in strength summaries
    pg_department_codes: List[str] = Field(default_factory=lambda: ["MBA"], alias="PG_DEPARTMENT_CODES")

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    seed_admin_email: Optional[str] = Field(None, alias="SEED_ADMIN_EMAIL")
    seed_admin_password: Optional[str] = Field(None, alias="SEED_ADMIN_PASSWORD")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
