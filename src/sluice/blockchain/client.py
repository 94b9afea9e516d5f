"""web3 client wrapper for SLUICE transfers."""

import logging
from decimal import Decimal

from web3 import Web3
from web3.types import TxReceipt

from sluice.core.wallet import WalletProvider

logger = logging.getLogger(__name__)

# Minimal ERC-20 ABI: balanceOf, decimals and transfer
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
]

NATIVE_TRANSFER_GAS = 21000
TOKEN_TRANSFER_GAS = 100000


class ChainClient:
    """Sends faucet payouts as native coin or as an ERC-20 token.

    Parameters
    ----------
    rpc_endpoint : str
        JSON-RPC endpoint URL.
    wallet : WalletProvider
        The wallet provider for signing transactions.
    token_address : str | None
        ERC-20 contract to pay out from. None pays out the native coin.
    """

    def __init__(
        self,
        rpc_endpoint: str,
        wallet: WalletProvider,
        token_address: str | None = None,
    ):
        self._w3 = Web3(Web3.HTTPProvider(rpc_endpoint))
        self._wallet = wallet
        self._token = None
        if token_address:
            self._token = self._w3.eth.contract(
                address=Web3.to_checksum_address(token_address), abi=ERC20_ABI
            )

    @property
    def connected(self) -> bool:
        """Check if connected to the RPC endpoint."""
        return self._w3.is_connected()

    @property
    def chain_id(self) -> int:
        return self._w3.eth.chain_id

    @property
    def wallet_address(self) -> str:
        return self._wallet.address

    @property
    def token_address(self) -> str | None:
        return self._token.address if self._token is not None else None

    def _to_base_units(self, amount: Decimal) -> int:
        if self._token is None:
            return self._w3.to_wei(amount, "ether")
        decimals = self._token.functions.decimals().call()
        return int(amount * (Decimal(10) ** decimals))

    def get_balance(self, address: str | None = None) -> Decimal:
        """Get the payout balance of ``address`` (the faucet wallet by default).

        Returns
        -------
        Decimal
            Balance in whole tokens.
        """
        checksum_address = Web3.to_checksum_address(address or self._wallet.address)
        if self._token is None:
            wei = self._w3.eth.get_balance(checksum_address)
            return Decimal(str(self._w3.from_wei(wei, "ether")))
        raw = self._token.functions.balanceOf(checksum_address).call()
        decimals = self._token.functions.decimals().call()
        return Decimal(raw) / (Decimal(10) ** decimals)

    def transfer(self, to: str, amount: Decimal) -> str:
        """Sign and submit a payout transaction.

        Parameters
        ----------
        to : str
            The recipient address.
        amount : Decimal
            Amount to transfer in whole tokens.

        Returns
        -------
        str
            The transaction hash.
        """
        checksum_to = Web3.to_checksum_address(to)
        value = self._to_base_units(amount)
        params = {
            "gasPrice": self._w3.eth.gas_price,
            "nonce": self._w3.eth.get_transaction_count(self._wallet.address),
            "chainId": self.chain_id,
        }

        if self._token is None:
            tx = {"to": checksum_to, "value": value, "gas": NATIVE_TRANSFER_GAS, **params}
        else:
            tx = self._token.functions.transfer(checksum_to, value).build_transaction(
                {"from": self._wallet.address, "gas": TOKEN_TRANSFER_GAS, **params}
            )

        signed = self._wallet.get_account().sign_transaction(tx)
        tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)

        logger.info(
            "Transfer submitted",
            extra={
                "tx_hash": tx_hash.hex(),
                "to": checksum_to,
                "amount": str(amount),
                "token": self.token_address or "native",
            },
        )

        return tx_hash.hex()

    def wait_for_receipt(self, tx_hash: str, timeout: int = 120) -> TxReceipt:
        """Wait for a transaction receipt.

        Raises
        ------
        web3.exceptions.TimeExhausted
            If the transaction is not mined within the timeout.
        """
        return self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
