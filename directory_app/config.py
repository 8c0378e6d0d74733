from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "DIR_", "env_file": ".env", "env_file_encoding": "utf-8"}

    auth_username: str = Field(default="admin")
    auth_password: str = Field(default="change-me", min_length=1)
    jwt_secret: str = Field(default="dev-secret-change-me-in-production-0000", min_length=32)
    jwt_expire_minutes: int = Field(default=1440)
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", pattern=r"^(json|console)$")
    db_path: str = Field(default="directory.db")
    cors_origins: str = Field(default="http://localhost:3000")

    # Object storage
    storage_dir: str = Field(default="storage")
    storage_bucket: str = Field(default="business-photos")
    public_base_url: str = Field(default="http://localhost:8000")

    # Logo fetching
    logo_fetch_timeout: float = Field(default=15.0, gt=0)
    logo_pause_seconds: float = Field(default=0.2, ge=0)
    logo_fetch_concurrency: int = Field(default=1, ge=1)
    logo_user_agent: str = Field(default="Mozilla/5.0 (compatible; BusinessDirectoryBot/1.0)")


settings = Settings()
