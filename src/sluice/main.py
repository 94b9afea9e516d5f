#!/usr/bin/env python3
"""SLUICE - faucet disbursement gate.

Entry point for the SLUICE service.
"""

import asyncio
import logging
import signal
import sys

from sluice.api import ApiServer
from sluice.blockchain import ChainClient
from sluice.cli import build_gate, build_store, create_parser, run_cli
from sluice.config import SluiceConfig
from sluice.core.wallet import KeyWallet
from sluice.faucet import ChainTransferExecutor, StorageUnavailable, TransferExecutor
from sluice.observability.health import ExecutorHealthCheck, StoreHealthCheck
from sluice.observability.logging import configure_logging


def parse_args(argv: list[str] | None = None):
    """Parse command line arguments."""
    return create_parser().parse_args(argv)


def build_executor(config: SluiceConfig) -> TransferExecutor | None:
    """Create the on-chain transfer executor, or None when transfers are not configured."""
    if not config.transfers_enabled:
        return None
    wallet = KeyWallet.from_config(config)
    client = ChainClient(config.rpc_endpoint, wallet, token_address=config.token_address)
    return ChainTransferExecutor(client, timeout=config.transfer_timeout_seconds)


async def run_service(config: SluiceConfig | None = None) -> None:
    """Run the SLUICE service (long-running mode).

    Wires up and starts all service components:
    - Record store (Redis when REDIS_URL is set, in-memory otherwise)
    - Wallet, chain client and transfer executor if transfers are configured
    - DisbursementGate with the configured quotas
    - ApiServer with readiness checks
    """
    config = config or SluiceConfig()
    configure_logging(level=config.log_level, log_format=config.log_format)

    logger = logging.getLogger(__name__)
    logger.info("SLUICE starting")
    logger.info(
        "Daily limits: identity=%s, destination=%s (%s)",
        config.daily_limit_per_identity,
        config.destination_limit,
        config.window_timezone,
    )

    try:
        store = build_store(config)
    except StorageUnavailable as e:
        logger.error("Record store unavailable: %s", e)
        sys.exit(1)
    logger.info("Record store: %s", "redis" if config.redis_url else "memory")

    try:
        executor = build_executor(config)
    except (ValueError, FileNotFoundError) as e:
        logger.error("Wallet configuration error: %s", e)
        await store.close()
        sys.exit(1)

    if executor is None:
        logger.info("Transfers disabled; /faucet/claim is unavailable")
    else:
        logger.info("Transfers enabled via %s", config.rpc_endpoint)

    gate = build_gate(config, store, executor)

    server = ApiServer(gate, host=config.host, port=config.port)
    server.add_check(StoreHealthCheck(store))
    if executor is not None:
        server.add_check(ExecutorHealthCheck(executor))

    # Create shutdown event
    shutdown_event = asyncio.Event()

    # Use asyncio signal handlers for event-loop-safe signal handling
    loop = asyncio.get_running_loop()

    def on_shutdown_signal(sig_name: str) -> None:
        logger.info("Received signal %s, initiating shutdown", sig_name)
        shutdown_event.set()

    loop.add_signal_handler(signal.SIGTERM, lambda: on_shutdown_signal("SIGTERM"))
    loop.add_signal_handler(signal.SIGINT, lambda: on_shutdown_signal("SIGINT"))

    await server.start()
    logger.info("SLUICE service ready on %s:%d", config.host, config.port)

    # Wait for shutdown signal
    await shutdown_event.wait()

    # Graceful shutdown
    logger.info("SLUICE shutting down...")
    await server.stop()
    await store.close()
    logger.info("SLUICE shutdown complete")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for SLUICE."""
    args = parse_args(argv)

    # CLI commands drive their own event loops
    if args.command and args.command != "run":
        exit_code = run_cli(args)
        if exit_code >= 0:
            sys.exit(exit_code)
        # exit_code < 0 means show help
        create_parser().print_help()
        sys.exit(0)

    # No subcommand or "run" - start service
    asyncio.run(run_service())


if __name__ == "__main__":
    main()
