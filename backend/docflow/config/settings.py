"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017/?replicaSet=rs0"
    mongo_db: str = "docflow_dev"

    # "mongo" for production, "memory" for local demos and tests
    storage_backend: str = "mongo"

    # JWT validation (tokens are issued elsewhere)
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""
    jwt_issuer: str = ""

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Notifications - empty webhook URL means log-only delivery
    notification_webhook_url: str = ""
    notification_timeout_seconds: float = 5.0

    # SLA sweep (external timer for escalation checks)
    sla_scheduler_enabled: bool = False
    sla_check_interval_seconds: int = 60

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def uses_memory_storage(self) -> bool:
        """Check if the in-memory backend is selected"""
        return self.storage_backend.lower() == "memory"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
