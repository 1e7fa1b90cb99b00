import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str = Field(default=os.getenv("DATABASE_URL", "sqlite:///./rackmap.db"))
    db_pool_size: int = Field(default=int(os.getenv("DB_POOL_SIZE", "5")))
    db_max_overflow: int = Field(default=int(os.getenv("DB_MAX_OVERFLOW", "10")))
    db_pool_recycle: int = Field(default=int(os.getenv("DB_POOL_RECYCLE", "1800")))

    # Session cookie / JWT
    secret_key: str = Field(default=os.getenv("SECRET_KEY", "change-me-rackmap-local"))
    jwt_algorithm: str = Field(default=os.getenv("JWT_ALGORITHM", "HS256"))
    access_token_expire_minutes: int = Field(
        default=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    )  # 24 hours
    secure_cookies: bool = Field(default=_env_bool("SECURE_COOKIES", "false"))

    # Seeded on first start
    default_tenant_name: str = Field(default=os.getenv("DEFAULT_TENANT_NAME", "Default"))
    default_admin_email: str = Field(default=os.getenv("DEFAULT_ADMIN_EMAIL", "admin@example.com"))
    default_admin_password: str = Field(default=os.getenv("DEFAULT_ADMIN_PASSWORD", "admin"))

    # Floor-plan uploads
    upload_dir: str = Field(default=os.getenv("UPLOAD_DIR", "uploads"))
    upload_url_prefix: str = Field(default=os.getenv("UPLOAD_URL_PREFIX", "/uploads"))
    max_upload_bytes: int = Field(
        default=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    )  # 10MB
    floorplan_webhook_url: Optional[str] = Field(default=os.getenv("FLOORPLAN_WEBHOOK_URL") or None)
    floorplan_webhook_timeout: float = Field(
        default=float(os.getenv("FLOORPLAN_WEBHOOK_TIMEOUT", "15"))
    )

    # Assistant (OpenAI-compatible chat completions API)
    llm_base_url: str = Field(default=os.getenv("LLM_BASE_URL", "https://api.openai.com/v1"))
    llm_api_key: Optional[str] = Field(default=os.getenv("LLM_API_KEY") or None)
    llm_model: str = Field(default=os.getenv("LLM_MODEL", "gpt-4o-mini"))
    llm_timeout: float = Field(default=float(os.getenv("LLM_TIMEOUT", "30")))

    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
