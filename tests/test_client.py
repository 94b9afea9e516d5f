"""Tests for the chain client module."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from pydantic import SecretStr

from sluice.blockchain.client import NATIVE_TRANSFER_GAS, TOKEN_TRANSFER_GAS, ChainClient
from sluice.core.wallet import KeyWallet

# Test private key (DO NOT USE IN PRODUCTION - this is a well-known test key)
TEST_PRIVATE_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_ADDRESS = "0xFCAd0B19bB29D4674531d6f115237E16AfCE377c"
TEST_RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc9e7595f8fE00"
TEST_TOKEN = "0x" + "cd" * 20


@pytest.fixture
def wallet():
    """Create a real wallet for testing."""
    return KeyWallet(private_key=SecretStr(TEST_PRIVATE_KEY))


@pytest.fixture
def mock_web3():
    """Create a mock Web3 instance."""
    with patch("sluice.blockchain.client.Web3") as mock_w3_class:
        mock_w3 = MagicMock()
        mock_w3_class.return_value = mock_w3
        mock_w3_class.HTTPProvider = MagicMock()
        mock_w3_class.to_checksum_address = lambda x: x
        mock_w3.from_wei = lambda val, unit: Decimal(str(val)) / Decimal(10**18)
        mock_w3.to_wei = lambda val, unit: int(Decimal(str(val)) * 10**18)
        mock_w3.is_connected.return_value = True
        mock_w3.eth.chain_id = 65100000
        mock_w3.eth.gas_price = 1000000000
        mock_w3.eth.get_balance.return_value = 5000000000000000000
        mock_w3.eth.get_transaction_count.return_value = 3
        mock_w3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)
        yield mock_w3_class, mock_w3


@pytest.fixture
def mock_token(mock_web3):
    """ERC-20 contract mock with 6 decimals."""
    _, mock_w3 = mock_web3
    contract = MagicMock()
    contract.address = TEST_TOKEN
    contract.functions.decimals.return_value.call.return_value = 6
    contract.functions.balanceOf.return_value.call.return_value = 2_500_000
    contract.functions.transfer.return_value.build_transaction.return_value = {
        "to": TEST_TOKEN,
        "data": "0x",
        "value": 0,
        "gas": TOKEN_TRANSFER_GAS,
        "gasPrice": 1000000000,
        "nonce": 3,
        "chainId": 65100000,
    }
    mock_w3.eth.contract.return_value = contract
    return contract


class TestChainClientNative:
    """Tests for native coin payouts."""

    def test_client_initialization(self, wallet, mock_web3):
        """Client initializes with RPC endpoint and wallet."""
        mock_w3_class, _ = mock_web3

        client = ChainClient("http://localhost:8545", wallet)

        mock_w3_class.HTTPProvider.assert_called_once_with("http://localhost:8545")
        assert client.token_address is None
        assert client.wallet_address == TEST_ADDRESS

    def test_connected_and_chain_id(self, wallet, mock_web3):
        client = ChainClient("http://localhost:8545", wallet)

        assert client.connected is True
        assert client.chain_id == 65100000

    def test_get_balance(self, wallet, mock_web3):
        _, mock_w3 = mock_web3
        client = ChainClient("http://localhost:8545", wallet)

        balance = client.get_balance()

        assert balance == Decimal("5")
        mock_w3.eth.get_balance.assert_called_once_with(TEST_ADDRESS)

    def test_transfer_native(self, wallet, mock_web3):
        """Native transfers send value with fixed gas."""
        _, mock_w3 = mock_web3
        client = ChainClient("http://localhost:8545", wallet)

        with patch.object(wallet, "get_account") as mock_get_account:
            account = MagicMock()
            account.address = TEST_ADDRESS
            account.sign_transaction.return_value.raw_transaction = b"signed"
            mock_get_account.return_value = account

            tx_hash = client.transfer(TEST_RECIPIENT, Decimal("1.5"))

        tx = account.sign_transaction.call_args.args[0]
        assert tx["to"] == TEST_RECIPIENT
        assert tx["value"] == 1_500_000_000_000_000_000
        assert tx["gas"] == NATIVE_TRANSFER_GAS
        assert tx["nonce"] == 3
        mock_w3.eth.send_raw_transaction.assert_called_once_with(b"signed")
        assert tx_hash == "ab" * 32

    def test_wait_for_receipt(self, wallet, mock_web3):
        _, mock_w3 = mock_web3
        mock_w3.eth.wait_for_transaction_receipt.return_value = {"status": 1}
        client = ChainClient("http://localhost:8545", wallet)

        receipt = client.wait_for_receipt("0xabc", timeout=30)

        assert receipt == {"status": 1}
        mock_w3.eth.wait_for_transaction_receipt.assert_called_once_with("0xabc", timeout=30)


class TestChainClientToken:
    """Tests for ERC-20 payouts."""

    def test_token_address(self, wallet, mock_web3, mock_token):
        client = ChainClient("http://localhost:8545", wallet, token_address=TEST_TOKEN)

        assert client.token_address == TEST_TOKEN

    def test_get_balance_uses_decimals(self, wallet, mock_web3, mock_token):
        client = ChainClient("http://localhost:8545", wallet, token_address=TEST_TOKEN)

        assert client.get_balance(TEST_RECIPIENT) == Decimal("2.5")
        mock_token.functions.balanceOf.assert_called_once_with(TEST_RECIPIENT)

    def test_transfer_token(self, wallet, mock_web3, mock_token):
        """Token transfers call transfer() on the contract in base units."""
        client = ChainClient("http://localhost:8545", wallet, token_address=TEST_TOKEN)

        with patch.object(wallet, "get_account") as mock_get_account:
            account = MagicMock()
            account.address = TEST_ADDRESS
            account.sign_transaction.return_value.raw_transaction = b"signed"
            mock_get_account.return_value = account

            client.transfer(TEST_RECIPIENT, Decimal("2"))

        mock_token.functions.transfer.assert_called_once_with(TEST_RECIPIENT, 2_000_000)
        build_args = mock_token.functions.transfer.return_value.build_transaction.call_args
        assert build_args.args[0]["gas"] == TOKEN_TRANSFER_GAS
        assert build_args.args[0]["from"] == TEST_ADDRESS
