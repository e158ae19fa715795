"""Tests for settings loading."""

from app.config import DEFAULT_DATABASE_URL, Settings


def test_test_environment_uses_test_database(monkeypatch):
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("TEST_DATABASE_URL", "sqlite:///./test-only.db")
    settings = Settings()
    assert settings.is_test
    assert settings.database_url == "sqlite:///./test-only.db"


def test_other_environments_use_database_url(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings()
    assert settings.is_production
    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.database_url_obj.get_backend_name() == "sqlite"


def test_environment_alias(monkeypatch):
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.setenv("ENVIRONMENT", "staging")
    assert Settings().environment == "staging"


def test_cors_origins_split(monkeypatch):
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "http://a.test, http://b.test")
    assert Settings().cors_origins == ["http://a.test", "http://b.test"]


def test_defaults():
    settings = Settings()
    assert settings.port == 3000
    assert settings.socketio_path == "socket.io"
    assert settings.session_code_max_attempts == 100
