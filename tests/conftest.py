"""
Shared test configuration.

Every test runs against its own SQLite files so the service apps can be driven
end to end without PostgreSQL or RabbitMQ.
"""

import pytest

from common.settings import get_settings

TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"


@pytest.fixture(autouse=True)
def service_env(monkeypatch, tmp_path):
    """Point every service at per-test SQLite databases and a known JWT secret."""

    values = {
        "LOG_LEVEL": "INFO",
        "JWT_SECRET_KEY": TEST_SECRET,
        "JWT_ISSUER": "storefront-users-service",
        "JWT_AUDIENCE": "storefront-clients",
        "JWT_EXPIRE_MINUTES": "60",
        "RABBITMQ_URL": "",
        "CORS_ORIGINS": "*",
    }
    for name in ("users", "products", "payments", "logs"):
        values[f"{name.upper()}_DATABASE_URL"] = f"sqlite+aiosqlite:///{tmp_path / name}.db"
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    for key in ("ADMIN_USERNAME", "ADMIN_EMAIL", "ADMIN_PASSWORD", "DB_ECHO"):
        monkeypatch.delenv(key, raising=False)

    get_settings.cache_clear()
    yield values
    get_settings.cache_clear()
