"""Faucet wallet used to sign payout transactions."""

from abc import ABC, abstractmethod
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from pydantic import SecretStr


class WalletProvider(ABC):
    """Abstract wallet provider for signing transactions."""

    @abstractmethod
    def get_account(self) -> LocalAccount:
        """Get the account used for transaction signing."""
        ...

    @property
    def address(self) -> str:
        """Checksummed wallet address."""
        return self.get_account().address


class KeyWallet(WalletProvider):
    """Wallet backed by a private key given inline or in a file.

    Parameters
    ----------
    private_key : SecretStr, optional
        The private key, e.g. from ``SLUICE_WALLET_PRIVATE_KEY``.
    private_key_file : str, optional
        Path to a file containing the private key. Used when ``private_key``
        is not given.

    Raises
    ------
    ValueError
        If neither private_key nor private_key_file is provided.
    FileNotFoundError
        If private_key_file does not exist.
    """

    def __init__(
        self,
        private_key: SecretStr | None = None,
        private_key_file: str | None = None,
    ):
        if private_key is not None:
            key = private_key.get_secret_value()
        elif private_key_file is not None:
            key_path = Path(private_key_file).expanduser()
            if not key_path.exists():
                raise FileNotFoundError(f"Private key file not found: {private_key_file}")
            key = key_path.read_text().strip()
        else:
            raise ValueError(
                "No wallet configured. "
                "Set SLUICE_WALLET_PRIVATE_KEY or SLUICE_WALLET_PRIVATE_KEY_FILE"
            )
        self._account = Account.from_key(key)

    @classmethod
    def from_config(cls, config) -> "KeyWallet":
        """Build the wallet from a SluiceConfig, preferring the inline key."""
        return cls(
            private_key=config.wallet_private_key,
            private_key_file=None if config.wallet_private_key else config.wallet_private_key_file,
        )

    def get_account(self) -> LocalAccount:
        return self._account
