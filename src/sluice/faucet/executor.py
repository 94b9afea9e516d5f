"""Transfer executors for SLUICE.

The gate hands an admitted claim to an executor, which moves the tokens
on-chain and returns the transaction hash once the transfer is confirmed.
Executors never retry; any failure surfaces as UpstreamTransferFailed.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal

from sluice.blockchain import ChainClient
from sluice.observability.metrics import TRANSFER_DURATION, TRANSFERS

from .errors import UpstreamTransferFailed

logger = logging.getLogger(__name__)


class TransferExecutor(ABC):
    """Abstract collaborator that moves tokens to a destination."""

    @abstractmethod
    async def transfer(self, destination_address: str, amount: Decimal) -> str:
        """Transfer ``amount`` to ``destination_address``.

        Returns
        -------
        str
            Hash of the confirmed transaction.

        Raises
        ------
        UpstreamTransferFailed
            If the transfer could not be submitted, reverted, or timed out.
        """
        ...

    async def check_connection(self) -> bool:
        """Whether the executor can currently reach its backend."""
        return True


class ChainTransferExecutor(TransferExecutor):
    """Sends tokens through a ChainClient and waits for the receipt.

    Blocking web3 calls run in a worker thread so the event loop keeps
    serving other requests.

    Parameters
    ----------
    client : ChainClient
        Blockchain client holding the faucet wallet.
    timeout : float
        Seconds allowed for submission plus confirmation.
    """

    def __init__(self, client: ChainClient, timeout: float = 120.0):
        self._client = client
        self._timeout = timeout

    async def transfer(self, destination_address: str, amount: Decimal) -> str:
        started = time.monotonic()
        try:
            tx_hash = await asyncio.wait_for(
                asyncio.to_thread(self._send_and_confirm, destination_address, amount),
                self._timeout,
            )
        except UpstreamTransferFailed as e:
            TRANSFERS.labels(status="reverted").inc()
            logger.error(
                "Transfer reverted",
                extra={"tx_hash": e.tx_hash, "recipient": destination_address},
            )
            raise
        except asyncio.TimeoutError:
            TRANSFERS.labels(status="timeout").inc()
            logger.error(
                "Transfer timed out",
                extra={"recipient": destination_address, "amount": str(amount)},
            )
            raise UpstreamTransferFailed(
                f"Transfer not confirmed within {self._timeout:g} seconds"
            ) from None
        except Exception as e:
            TRANSFERS.labels(status="failed").inc()
            logger.error(
                "Transfer failed",
                extra={"recipient": destination_address, "amount": str(amount), "error": str(e)},
                exc_info=True,
            )
            raise UpstreamTransferFailed(f"Transaction failed: {e}") from e
        finally:
            TRANSFER_DURATION.observe(time.monotonic() - started)

        TRANSFERS.labels(status="success").inc()
        logger.info(
            "Tokens transferred",
            extra={"tx_hash": tx_hash, "recipient": destination_address, "amount": str(amount)},
        )
        return tx_hash

    def _send_and_confirm(self, destination_address: str, amount: Decimal) -> str:
        tx_hash = self._client.transfer(destination_address, amount)
        receipt = self._client.wait_for_receipt(tx_hash, timeout=int(self._timeout))
        if receipt.get("status") != 1:
            raise UpstreamTransferFailed("Transaction reverted", tx_hash=tx_hash)
        return tx_hash

    async def check_connection(self) -> bool:
        return await asyncio.to_thread(lambda: self._client.connected)
