"""Unit tests for settings loading and validation."""

from conducky_backend.core.config import Settings, validate_settings


class TestLoadSettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CONDUCKY_APP_NAME", "Conducky Staging")
        monkeypatch.setenv("CONDUCKY_LOG_LEVEL", "DEBUG")
        cfg = Settings(_env_file=None)
        assert cfg.app_name == "Conducky Staging"
        assert cfg.log_level == "DEBUG"

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CONDUCKY_ENVIRONMENT", raising=False)
        monkeypatch.delenv("CONDUCKY_DATABASE_URL", raising=False)
        cfg = Settings(_env_file=None)
        assert cfg.environment == "development"
        assert cfg.api_prefix == "/api"
        assert cfg.database_url.startswith("sqlite")
        assert cfg.encryption_key is None


class TestValidateSettings:
    def test_development_needs_nothing(self):
        assert validate_settings(Settings(_env_file=None, environment="development")) == []

    def test_production_requires_encryption_key(self):
        cfg = Settings(_env_file=None, environment="production", database_url="postgresql://db/conducky")
        assert validate_settings(cfg) == ["CONDUCKY_ENCRYPTION_KEY is required in production"]

    def test_production_rejects_dev_key_and_sqlite(self):
        cfg = Settings(
            _env_file=None,
            environment="production",
            encryption_key="conducky-dev-encryption-key-change-in-production",
        )
        problems = validate_settings(cfg)
        assert len(problems) == 2
        assert "development encryption keys" in problems[0]
        assert "server database" in problems[1]
