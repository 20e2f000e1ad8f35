from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="gymnex", alias="POSTGRES_DB")
    postgres_user: str = Field(default="gymnex", alias="POSTGRES_USER")
    postgres_password: str = Field(default="gymnex", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=43200, alias="JWT_EXPIRE_MIN")
    # Shared with the member app; sent as X-Service-Token
    service_api_token: str = Field(default="", alias="SERVICE_API_TOKEN")

    default_admin_login: str = Field(default="admin", alias="DEFAULT_ADMIN_LOGIN")
    default_admin_password: str = Field(default="admin123", alias="DEFAULT_ADMIN_PASSWORD")

    sms_api_url: str = Field(default="", alias="SMS_API_URL")
    sms_api_token: str = Field(default="", alias="SMS_API_TOKEN")
    sms_sender_id: str = Field(default="GymNex", alias="SMS_SENDER_ID")

    # One initial attempt plus retries on store contention
    enrollment_max_attempts: int = Field(default=4, alias="ENROLLMENT_MAX_ATTEMPTS")
    enrollment_backoff_max: float = Field(default=0.5, alias="ENROLLMENT_BACKOFF_MAX")

    reminder_hour: int = Field(default=18, alias="REMINDER_HOUR")

    class Config:
        populate_by_name = True

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
