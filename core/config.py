from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env")

    ENV: str = "development"

    DATABASE_URL: str
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_HOURS: int = 24
    MAIL_SERVER: str = "smtp.gmail.com"
    MAIL_PORT: int = 587
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_FROM: str = ""
    ALERT_RECIPIENT: str = ""
    MAIL_USE_TLS: bool = True
    MAIL_TIMEOUT_SECONDS: float = 10
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("ENV")
    @classmethod
    def validate_env(cls, value):
        value = value.lower()
        if value not in {"development", "production", "testing"}:
            raise ValueError(f"Unknown environment: {value}")
        return value

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, value):
        if not value or not value.strip():
            raise ValueError("SECRET_KEY cannot be empty")
        return value

    @field_validator("ACCESS_TOKEN_EXPIRE_MINUTES", "REFRESH_TOKEN_EXPIRE_HOURS")
    @classmethod
    def validate_ttl(cls, value):
        if value <= 0:
            raise ValueError("Token lifetimes must be positive")
        return value

    @property
    def alert_recipient(self) -> str:
        return self.ALERT_RECIPIENT or self.MAIL_FROM


settings = Settings()
