"""Tests for settings."""

import pytest
from pydantic import ValidationError

from shadow.config import DENOMINATIONS, LAMPORTS_PER_SOL, MAX_DEPOSITS, ShadowSettings, get_settings


class TestSettings:
    """Tests for defaults, environment overrides and validation."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SHADOW_TREE_DEPTH", raising=False)
        settings = ShadowSettings(_env_file=None)
        assert settings.tree_depth == 20
        assert settings.root_history_size == 30
        assert settings.denomination == DENOMINATIONS["0.1"]
        assert settings.relayer_fee_percent == 1.0
        assert settings.proof_timeout is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SHADOW_TREE_DEPTH", "16")
        monkeypatch.setenv("SHADOW_DATABASE_URL", "sqlite:///other.db")
        settings = ShadowSettings(_env_file=None)
        assert settings.tree_depth == 16
        assert settings.database_url == "sqlite:///other.db"

    def test_tree_depth_bounds(self):
        with pytest.raises(ValidationError):
            ShadowSettings(tree_depth=9, _env_file=None)
        with pytest.raises(ValidationError):
            ShadowSettings(tree_depth=33, _env_file=None)

    def test_fee_bounds(self):
        with pytest.raises(ValidationError):
            ShadowSettings(relayer_fee_percent=10.5, _env_file=None)
        with pytest.raises(ValidationError):
            ShadowSettings(relayer_fee_percent=-1, _env_file=None)

    def test_max_relayer_fee(self):
        settings = ShadowSettings(denomination=LAMPORTS_PER_SOL, relayer_fee_percent=2.5, _env_file=None)
        assert settings.max_relayer_fee() == 25_000_000

    def test_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()


class TestConstants:
    def test_denominations(self):
        assert DENOMINATIONS == {
            "0.1": 100_000_000,
            "0.5": 500_000_000,
            "1": 1_000_000_000,
            "5": 5_000_000_000,
        }
        assert MAX_DEPOSITS == 2**20
