from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Conducky Backend"
    api_prefix: str = "/api"
    environment: Literal["development", "test", "production"] = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./conducky.db"

    # Passphrase for field encryption; the Fernet key is derived from it
    encryption_key: Optional[str] = None

    cors_origin: str = "http://localhost:3001"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CONDUCKY_",
        extra="ignore",
    )


def validate_settings(cfg: Settings) -> List[str]:
    """Returns configuration problems; an empty list means the settings are usable."""
    errors: List[str] = []
    if cfg.environment == "production":
        if not cfg.encryption_key:
            errors.append("CONDUCKY_ENCRYPTION_KEY is required in production")
        elif "dev" in cfg.encryption_key.lower():
            errors.append("Production environments must not use development encryption keys")
        if cfg.database_url.startswith("sqlite"):
            errors.append("CONDUCKY_DATABASE_URL should point to a server database in production")
    return errors


settings = Settings()
