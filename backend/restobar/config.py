from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator, field_validator
import secrets

BASE_DIR = Path(__file__).resolve().parent.parent  # backend/

STORAGE_BACKENDS = ("sql", "memory")


class Settings(BaseSettings):
    # ===== ENTORNO =====
    environment: str = Field(default="development", env="ENVIRONMENT")
    debug: bool = Field(default=False, env="DEBUG")

    # ===== DATABASE =====
    database_url: str = Field(default="sqlite:///./data/restobar.db", env="DATABASE_URL")

    # ===== ALMACENAMIENTO =====
    # "sql" usa la base relacional; "memory" es el modo demo de un solo proceso
    storage_backend: str = Field(default="sql", env="STORAGE_BACKEND")

    # ===== SECURITY =====
    secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        env="SECRET_KEY"
    )
    access_token_expire_minutes: int = Field(default=120, env="ACCESS_TOKEN_EXPIRE_MINUTES")

    # ===== NEGOCIO =====
    local_currency: str = Field(default="MXN", env="LOCAL_CURRENCY")

    # ===== LOGS =====
    log_dir: str = Field(default="logs", env="LOG_DIR")

    # ===== CORS =====
    allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        env="ALLOWED_ORIGINS"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False

    @field_validator("storage_backend", mode="after")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        value = (v or "").strip().lower()
        if value not in STORAGE_BACKENDS:
            raise ValueError(f"STORAGE_BACKEND debe ser uno de: {', '.join(STORAGE_BACKENDS)}")
        return value

    @field_validator("local_currency", mode="after")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.strip().upper() if v and v.strip() else "MXN"

    @model_validator(mode="after")
    def validate_secret_key(self):
        if self.environment == "production" and len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY debe tener al menos 32 caracteres en producción.")
        return self

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def use_memory_storage(self) -> bool:
        return self.storage_backend == "memory"


settings = Settings()
