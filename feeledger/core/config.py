from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Serial numbers: PREFIX-0042 normally, PREFIX-<last N digits of epoch ms> when degraded
    serial_pad_width: int = Field(4, alias="SERIAL_PAD_WIDTH")
    serial_fallback_digits: int = Field(6, alias="SERIAL_FALLBACK_DIGITS")

    sqlite_busy_timeout: int = Field(30, alias="SQLITE_BUSY_TIMEOUT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    # Development convenience; production databases are created by migrations
    auto_create_tables: bool = Field(False, alias="AUTO_CREATE_TABLES")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
