"""
OKR Ops Tracker
Tests — production configuration guards.
"""

import pytest

from okrops.config import ProductionConfig


@pytest.fixture()
def prod_env(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/okrops")
    monkeypatch.setenv("SECRET_KEY", "prod-secret")
    monkeypatch.delenv("REDIS_URL", raising=False)
    return monkeypatch


class TestProductionConfig:
    def test_requires_redis(self, prod_env):
        with pytest.raises(RuntimeError, match="REDIS_URL"):
            ProductionConfig()

    def test_rejects_in_process_cache(self, prod_env):
        prod_env.setenv("REDIS_URL", "memory://")
        with pytest.raises(RuntimeError, match="REDIS_URL"):
            ProductionConfig()

    def test_accepts_shared_redis(self, prod_env):
        prod_env.setenv("REDIS_URL", "redis://cache:6379/0")
        assert ProductionConfig().REDIS_URL == "redis://cache:6379/0"

    def test_requires_database_url(self, prod_env):
        prod_env.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
        prod_env.setenv("REDIS_URL", "redis://cache:6379/0")
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            ProductionConfig()
