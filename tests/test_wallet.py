"""Tests for wallet provider module."""

import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest
from pydantic import SecretStr

from sluice.core.wallet import KeyWallet, WalletProvider

# Test private key (DO NOT USE IN PRODUCTION - this is a well-known test key)
TEST_PRIVATE_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_ADDRESS = "0xFCAd0B19bB29D4674531d6f115237E16AfCE377c"


@pytest.fixture
def key_file():
    with tempfile.NamedTemporaryFile(mode="w", suffix=".key", delete=False) as f:
        f.write(f"{TEST_PRIVATE_KEY}\n  \n")
        path = f.name
    yield path
    Path(path).unlink()


class TestWalletProvider:
    """Tests for WalletProvider abstract class."""

    def test_wallet_provider_is_abstract(self):
        """WalletProvider cannot be instantiated directly."""
        with pytest.raises(TypeError):
            WalletProvider()  # type: ignore


class TestKeyWallet:
    """Tests for KeyWallet."""

    def test_load_from_secret_str(self):
        """Load wallet from SecretStr (simulating env var)."""
        wallet = KeyWallet(private_key=SecretStr(TEST_PRIVATE_KEY))

        assert wallet.address == TEST_ADDRESS
        assert wallet.get_account().address == TEST_ADDRESS

    def test_load_from_file_with_whitespace(self, key_file):
        """Key file with trailing whitespace should work."""
        wallet = KeyWallet(private_key_file=key_file)

        assert wallet.address == TEST_ADDRESS

    def test_missing_key_raises_error(self):
        """Neither key nor file provided should raise ValueError."""
        with pytest.raises(ValueError, match="No wallet configured"):
            KeyWallet()

    def test_missing_file_raises_error(self):
        with pytest.raises(FileNotFoundError, match="not found"):
            KeyWallet(private_key_file="/nonexistent/sluice.key")

    def test_from_config_prefers_inline_key(self):
        config = SimpleNamespace(
            wallet_private_key=SecretStr(TEST_PRIVATE_KEY),
            wallet_private_key_file="/nonexistent/sluice.key",
        )

        assert KeyWallet.from_config(config).address == TEST_ADDRESS

    def test_from_config_key_file(self, key_file):
        config = SimpleNamespace(wallet_private_key=None, wallet_private_key_file=key_file)

        assert KeyWallet.from_config(config).address == TEST_ADDRESS
