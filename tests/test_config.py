"""Tests for SLUICE configuration management."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from sluice.config import SluiceConfig


class TestSluiceConfigDefaults:
    """Test default configuration values."""

    def test_quota_defaults(self):
        """Quotas default to 100 per day in UTC."""
        config = SluiceConfig()

        assert config.daily_limit_per_identity == Decimal("100")
        assert config.daily_limit_per_destination is None
        assert config.destination_limit == Decimal("100")
        assert config.window_timezone == "UTC"

    def test_claim_defaults(self):
        """Claims need a score of 1 and pay 1 token by default."""
        config = SluiceConfig()

        assert config.min_identity_score == 1.0
        assert config.default_claim_amount == Decimal("1")
        assert config.max_claim_amount is None
        assert config.transfer_timeout_seconds == 120.0

    def test_service_defaults(self):
        """Storage and HTTP settings have correct defaults."""
        config = SluiceConfig()

        assert config.redis_url is None
        assert config.lock_timeout_seconds == 30.0
        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.log_level == "INFO"
        assert config.log_format == "json"

    def test_transfers_disabled_by_default(self):
        """Without RPC endpoint and wallet no transfers are made."""
        assert SluiceConfig().transfers_enabled is False


class TestSluiceConfigEnvVars:
    """Test environment variable loading."""

    def test_all_env_vars(self, monkeypatch):
        """Config loads all environment variables correctly."""
        monkeypatch.setenv("SLUICE_DAILY_LIMIT_PER_IDENTITY", "50")
        monkeypatch.setenv("SLUICE_DAILY_LIMIT_PER_DESTINATION", "75.5")
        monkeypatch.setenv("SLUICE_WINDOW_TIMEZONE", "Asia/Shanghai")
        monkeypatch.setenv("SLUICE_MIN_IDENTITY_SCORE", "2.5")
        monkeypatch.setenv("SLUICE_DEFAULT_CLAIM_AMOUNT", "5")
        monkeypatch.setenv("SLUICE_MAX_CLAIM_AMOUNT", "20")
        monkeypatch.setenv("SLUICE_RPC_ENDPOINT", "http://rpc.example.com:8545")
        monkeypatch.setenv("SLUICE_TOKEN_ADDRESS", "0x" + "ab" * 20)
        monkeypatch.setenv("SLUICE_WALLET_PRIVATE_KEY", "0xdeadbeef")
        monkeypatch.setenv("SLUICE_TRANSFER_TIMEOUT_SECONDS", "60")
        monkeypatch.setenv("REDIS_URL", "redis://redis:6379/1")
        monkeypatch.setenv("SLUICE_LOCK_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("SLUICE_HOST", "127.0.0.1")
        monkeypatch.setenv("SLUICE_PORT", "9090")
        monkeypatch.setenv("SLUICE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("SLUICE_LOG_FORMAT", "text")

        config = SluiceConfig()

        assert config.daily_limit_per_identity == Decimal("50")
        assert config.destination_limit == Decimal("75.5")
        assert config.window_timezone == "Asia/Shanghai"
        assert config.min_identity_score == 2.5
        assert config.default_claim_amount == Decimal("5")
        assert config.max_claim_amount == Decimal("20")
        assert config.rpc_endpoint == "http://rpc.example.com:8545"
        assert config.token_address == "0x" + "ab" * 20
        assert config.wallet_private_key.get_secret_value() == "0xdeadbeef"
        assert config.transfer_timeout_seconds == 60.0
        assert config.redis_url == "redis://redis:6379/1"
        assert config.lock_timeout_seconds == 5.0
        assert config.host == "127.0.0.1"
        assert config.port == 9090
        assert config.log_level == "DEBUG"
        assert config.log_format == "text"
        assert config.transfers_enabled is True

    def test_private_key_is_secret(self, monkeypatch):
        """The wallet key does not leak through repr."""
        monkeypatch.setenv("SLUICE_WALLET_PRIVATE_KEY", "0xdeadbeef")
        config = SluiceConfig()

        assert "deadbeef" not in repr(config)

    def test_key_file_enables_transfers(self, monkeypatch):
        """A key file is as good as an inline key."""
        monkeypatch.setenv("SLUICE_RPC_ENDPOINT", "http://localhost:8545")
        monkeypatch.setenv("SLUICE_WALLET_PRIVATE_KEY_FILE", "/secrets/key")

        assert SluiceConfig().transfers_enabled is True

    def test_endpoint_without_wallet_disables_transfers(self, monkeypatch):
        monkeypatch.setenv("SLUICE_RPC_ENDPOINT", "http://localhost:8545")

        assert SluiceConfig().transfers_enabled is False


class TestSluiceConfigValidation:
    """Test configuration validation."""

    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_identity_limit_must_be_positive(self, monkeypatch, value):
        monkeypatch.setenv("SLUICE_DAILY_LIMIT_PER_IDENTITY", value)
        with pytest.raises(ValidationError):
            SluiceConfig()

    def test_destination_limit_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("SLUICE_DAILY_LIMIT_PER_DESTINATION", "0")
        with pytest.raises(ValidationError):
            SluiceConfig()

    def test_unknown_timezone_rejected(self, monkeypatch):
        """Window timezone must be resolvable."""
        monkeypatch.setenv("SLUICE_WINDOW_TIMEZONE", "Mars/Olympus_Mons")
        with pytest.raises(ValidationError, match="Unknown timezone"):
            SluiceConfig()

    @pytest.mark.parametrize("value", ["+08:00", "-05:30", "local", "utc"])
    def test_timezone_formats_accepted(self, monkeypatch, value):
        monkeypatch.setenv("SLUICE_WINDOW_TIMEZONE", value)
        assert SluiceConfig().window_timezone == value

    def test_invalid_port_rejected(self, monkeypatch):
        monkeypatch.setenv("SLUICE_PORT", "70000")
        with pytest.raises(ValidationError):
            SluiceConfig()

    def test_negative_score_threshold_rejected(self, monkeypatch):
        monkeypatch.setenv("SLUICE_MIN_IDENTITY_SCORE", "-1")
        with pytest.raises(ValidationError):
            SluiceConfig()

    def test_unrelated_env_vars_ignored(self, monkeypatch):
        """Extra environment variables do not break config loading."""
        monkeypatch.setenv("SLUICE_SOMETHING_ELSE", "x")
        SluiceConfig()
