# crm/core/config.py
import os
from typing import ClassVar
from pydantic import BaseModel, Field

from dotenv import load_dotenv

load_dotenv()


def _default_database_url() -> str:
    data_dir = os.path.abspath(os.getenv("DATA_DIR", "./data"))
    os.makedirs(data_dir, exist_ok=True)
    return os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(data_dir, 'crm.db')}")


def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    # Constante (não vira campo Pydantic)
    DATA_DIR: ClassVar[str] = os.path.abspath(os.getenv("DATA_DIR", "./data"))

    # Banco / auth
    DATABASE_URL: str = Field(default_factory=_default_database_url)
    SECRET_KEY: str = Field(default_factory=lambda: os.getenv("SECRET_KEY", "CHANGE_ME_SUPER_SECRET"))
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default_factory=lambda: int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30")))
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default_factory=lambda: int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7")))
    TIMEZONE: str = Field(default_factory=lambda: os.getenv("TIMEZONE", "America/Sao_Paulo"))
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(default_factory=lambda: _flag("RUN_MIGRATIONS_ON_STARTUP"))

    # URLs públicas (links de RSVP / check-in / feedback e arquivos em /static)
    APP_URL: str = Field(default_factory=lambda: os.getenv("APP_URL", "http://localhost:5173").rstrip("/"))
    PUBLIC_BASE_URL: str = Field(default_factory=lambda: os.getenv("PUBLIC_BASE_URL", "").rstrip("/"))

    # Logging
    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    JSON_LOGS: bool = Field(default_factory=lambda: _flag("JSON_LOGS"))

    # Rotas internas (cron)
    CRON_SECRET: str = Field(default_factory=lambda: os.getenv("CRON_SECRET", "CHANGE_ME_CRON"))

    # Envio de lembretes
    RESEND_API_KEY: str = Field(default_factory=lambda: os.getenv("RESEND_API_KEY", ""))
    RESEND_API_URL: str = Field(default_factory=lambda: os.getenv("RESEND_API_URL", "https://api.resend.com/emails"))
    RESEND_FROM: str = Field(default_factory=lambda: os.getenv("RESEND_FROM", "CRM <noreply@example.com>"))
    REMINDER_DELAY_MIN_SECONDS: int = Field(default_factory=lambda: int(os.getenv("REMINDER_DELAY_MIN_SECONDS", "3")))
    REMINDER_DELAY_MAX_SECONDS: int = Field(default_factory=lambda: int(os.getenv("REMINDER_DELAY_MAX_SECONDS", "10")))
    NOTIFIER_TIMEOUT: float = Field(default_factory=lambda: float(os.getenv("NOTIFIER_TIMEOUT", "10")))

    # Integrações / sincronização em lote
    PIPEDRIVE_API_BASE: str = Field(default_factory=lambda: os.getenv("PIPEDRIVE_API_BASE", "https://api.pipedrive.com/v1"))
    OMIE_API_BASE: str = Field(default_factory=lambda: os.getenv("OMIE_API_BASE", "https://app.omie.com.br/api/v1"))
    SYNC_MAX_WORKERS: int = Field(default_factory=lambda: int(os.getenv("SYNC_MAX_WORKERS", "4")))
    SYNC_MAX_RETRIES: int = Field(default_factory=lambda: int(os.getenv("SYNC_MAX_RETRIES", "3")))

    # Contratos
    CONTRACT_EXPIRY_WARNING_DAYS: int = Field(default_factory=lambda: int(os.getenv("CONTRACT_EXPIRY_WARNING_DAYS", "30")))


settings = Settings()
