"""CLI subcommands for SLUICE operations.

Provides command-line interface for:
- Eligibility checks against the configured store
- Manual disbursement records
- Usage and record inspection
- Wallet address and balance lookup
"""

import argparse
import asyncio
import json
import sys
from decimal import Decimal

from sluice.blockchain.client import ChainClient
from sluice.config import SluiceConfig
from sluice.core.wallet import KeyWallet
from sluice.faucet import (
    DayWindowPolicy,
    DisbursementGate,
    InvalidArgument,
    MemoryRecordStore,
    QuotaDimension,
    QuotaExceeded,
    QuotaLimits,
    RecordStore,
    RedisRecordStore,
    StorageUnavailable,
    parse_timezone,
)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="sluice",
        description="SLUICE - faucet disbursement gate",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("run", help="Start the SLUICE service")

    check_parser = subparsers.add_parser("check", help="Check a claim against today's quotas")
    check_parser.add_argument("identity", help="Identity (scored wallet) address")
    check_parser.add_argument("destination", help="Destination address")
    check_parser.add_argument("amount", help="Requested amount")

    add_parser = subparsers.add_parser("add", help="Record a completed disbursement")
    add_parser.add_argument("identity", help="Identity (scored wallet) address")
    add_parser.add_argument("destination", help="Destination address")
    add_parser.add_argument("amount", help="Disbursed amount")
    add_parser.add_argument("--timestamp", help="ISO-8601 time or epoch seconds (default: now)")
    add_parser.add_argument("--tx-hash", help="Transfer transaction hash")

    usage_parser = subparsers.add_parser("usage", help="Show today's usage for an address")
    usage_parser.add_argument("address", help="Identity or destination address")

    records_parser = subparsers.add_parser("records", help="List recent disbursement records")
    records_parser.add_argument("--address", help="Only records involving this address")
    records_parser.add_argument(
        "--dimension",
        choices=[d.value for d in QuotaDimension],
        help="Match --address as identity or destination only",
    )
    records_parser.add_argument("--limit", type=int, default=20, help="Maximum records")

    wallet_parser = subparsers.add_parser("wallet", help="Wallet operations")
    wallet_sub = wallet_parser.add_subparsers(dest="wallet_command")
    wallet_sub.add_parser("address", help="Show faucet wallet address")
    wallet_sub.add_parser("balance", help="Show faucet wallet payout balance")

    return parser


def build_store(config: SluiceConfig) -> RecordStore:
    """Create the record store the configuration asks for."""
    if config.redis_url:
        return RedisRecordStore.from_url(
            config.redis_url,
            lock_wait_seconds=config.lock_timeout_seconds,
            lock_lease_seconds=config.transfer_timeout_seconds + config.lock_timeout_seconds,
        )
    return MemoryRecordStore(lock_timeout=config.lock_timeout_seconds)


def build_gate(config: SluiceConfig, store: RecordStore, executor=None) -> DisbursementGate:
    """Create a gate from configuration."""
    return DisbursementGate(
        store=store,
        limits=QuotaLimits(
            identity=config.daily_limit_per_identity,
            destination=config.destination_limit,
        ),
        window_policy=DayWindowPolicy(tz=parse_timezone(config.window_timezone)),
        executor=executor,
        min_identity_score=config.min_identity_score,
        default_amount=config.default_claim_amount,
        max_amount=config.max_claim_amount,
    )


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(self, config: SluiceConfig, json_output: bool = False):
        self.config = config
        self.json_output = json_output
        self._gate: DisbursementGate | None = None

    @property
    def gate(self) -> DisbursementGate:
        """Get gate (lazy loaded)."""
        if self._gate is None:
            self._gate = build_gate(self.config, build_store(self.config))
        return self._gate

    def output(self, data: dict) -> None:
        """Output data in the appropriate format."""
        if self.json_output:

            def decimal_default(obj):
                if isinstance(obj, Decimal):
                    return str(obj)
                raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

            print(json.dumps(data, default=decimal_default, indent=2))
        else:
            self._print_formatted(data)

    def _print_formatted(self, data: dict, indent: int = 0) -> None:
        """Print data in human-readable format."""
        prefix = "  " * indent
        for key, value in data.items():
            if isinstance(value, dict):
                print(f"{prefix}{key}:")
                self._print_formatted(value, indent + 1)
            elif isinstance(value, list):
                print(f"{prefix}{key}:")
                for item in value:
                    self._print_formatted(item, indent + 1)
                    print()
            else:
                print(f"{prefix}{key}: {value}")


def cmd_check(ctx: CLIContext, identity: str, destination: str, amount: str) -> int:
    """Check eligibility without recording anything."""
    try:
        decision = asyncio.run(ctx.gate.check_eligibility(identity, destination, amount))
    except (InvalidArgument, StorageUnavailable) as e:
        ctx.output({"error": str(e)})
        return 1

    ctx.output({"success": decision.admitted, "message": decision.message, **decision.to_dict()})
    return 0 if decision.admitted else 1


def cmd_add(
    ctx: CLIContext,
    identity: str,
    destination: str,
    amount: str,
    timestamp: str | None = None,
    tx_hash: str | None = None,
) -> int:
    """Record a disbursement made outside the service."""
    try:
        record = asyncio.run(
            ctx.gate.record_disbursement(
                identity, destination, amount, timestamp=timestamp, tx_hash=tx_hash
            )
        )
    except (InvalidArgument, QuotaExceeded, StorageUnavailable) as e:
        ctx.output({"successful": False, "error": str(e)})
        return 1

    ctx.output({"successful": True, "added": record.to_dict()})
    return 0


def cmd_usage(ctx: CLIContext, address: str) -> int:
    """Show today's usage for an address."""
    try:
        usage = asyncio.run(ctx.gate.usage(address))
    except (InvalidArgument, StorageUnavailable) as e:
        ctx.output({"error": str(e)})
        return 1

    ctx.output(usage)
    return 0


def cmd_records(
    ctx: CLIContext,
    address: str | None = None,
    dimension: str | None = None,
    limit: int = 20,
) -> int:
    """List recent records."""
    try:
        records = asyncio.run(
            ctx.gate.list_records(
                address=address,
                dimension=QuotaDimension(dimension) if dimension else None,
                limit=limit,
            )
        )
    except (InvalidArgument, StorageUnavailable) as e:
        ctx.output({"error": str(e)})
        return 1

    ctx.output({"count": len(records), "records": [r.to_dict() for r in records]})
    return 0


def cmd_wallet_address(ctx: CLIContext) -> int:
    """Show the faucet wallet address."""
    try:
        wallet = KeyWallet.from_config(ctx.config)
    except (ValueError, FileNotFoundError) as e:
        ctx.output({"error": str(e)})
        return 1

    ctx.output({"address": wallet.address})
    return 0


def cmd_wallet_balance(ctx: CLIContext) -> int:
    """Show the faucet wallet's payout balance."""
    if not ctx.config.rpc_endpoint:
        ctx.output({"error": "No RPC endpoint configured. Set SLUICE_RPC_ENDPOINT."})
        return 1

    try:
        wallet = KeyWallet.from_config(ctx.config)
        client = ChainClient(
            ctx.config.rpc_endpoint, wallet, token_address=ctx.config.token_address
        )
        if not client.connected:
            ctx.output({"error": "Not connected to RPC endpoint"})
            return 1

        ctx.output(
            {
                "address": wallet.address,
                "balance": client.get_balance(),
                "token": client.token_address or "native",
                "rpc": ctx.config.rpc_endpoint,
                "chain_id": client.chain_id,
            }
        )
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def run_cli(args: argparse.Namespace) -> int:
    """Execute CLI command based on parsed arguments.

    Returns
    -------
    int
        Exit code: 0 for success, positive for error, -1 signals caller
        to show help (no CLI command specified).
    """
    try:
        config = SluiceConfig()
    except Exception as e:
        if args.json:
            print(json.dumps({"error": f"Configuration error: {e}"}))
        else:
            print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    ctx = CLIContext(config, json_output=args.json)

    try:
        if args.command == "check":
            return cmd_check(ctx, args.identity, args.destination, args.amount)
        elif args.command == "add":
            return cmd_add(
                ctx,
                args.identity,
                args.destination,
                args.amount,
                timestamp=args.timestamp,
                tx_hash=args.tx_hash,
            )
        elif args.command == "usage":
            return cmd_usage(ctx, args.address)
        elif args.command == "records":
            return cmd_records(ctx, args.address, args.dimension, args.limit)
        elif args.command == "wallet":
            if args.wallet_command == "address":
                return cmd_wallet_address(ctx)
            elif args.wallet_command == "balance":
                return cmd_wallet_balance(ctx)
            print("Usage: sluice wallet [address|balance]", file=sys.stderr)
            return 1
    except StorageUnavailable as e:
        ctx.output({"error": str(e)})
        return 1

    return -1
