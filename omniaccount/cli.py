"""Command-line front end for a multichain account.

    omniaccount addresses
    omniaccount balances --token USDC
    omniaccount transfer USDC 84532=0.3 421614=0.1 --fee-chain 84532 --wait
    omniaccount status 0x<aggregate hash>

The owner key is read from OWNER_PRIVATE_KEY (or .env).
"""

import argparse
import asyncio
import sys
from typing import Dict, List, Optional

from .config import settings
from .core.account.signer import LocalSigner
from .core.errors import RecoverableError, UnrecoverableError
from .core.execution.models import ExecutionHandle, ExecutionReport
from .logging_config import setup_logging
from .services.orchestrator import Orchestrator
from .services.unified_balance import AccountSnapshot


def parse_chain_amounts(pairs: List[str]) -> Dict[int, str]:
    """["84532=0.3", "421614=0.1"] -> {84532: "0.3", 421614: "0.1"}"""
    amounts: Dict[int, str] = {}
    for pair in pairs:
        chain, sep, amount = pair.partition("=")
        if not sep or not chain.strip().isdigit() or not amount.strip():
            raise argparse.ArgumentTypeError(f"Expected CHAIN_ID=AMOUNT, got {pair!r}")
        chain_id = int(chain)
        if chain_id in amounts:
            raise argparse.ArgumentTypeError(f"Chain {chain_id} given twice")
        amounts[chain_id] = amount.strip()
    return amounts


def print_snapshot(snapshot: AccountSnapshot, orchestrator: Orchestrator) -> None:
    print(f"\nOwner: {snapshot.owner}")
    print("=" * 50)
    for chain_id, address in snapshot.addresses.items():
        native = snapshot.native[chain_id]
        print(f"{orchestrator.registry.chain_name(chain_id):<20} {address}")
        print(f"{'':<20} {native.formatted} {native.symbol}")
        if snapshot.token is not None:
            print(f"{'':<20} {snapshot.token.formatted_on(chain_id)} {snapshot.token.token}")

    if snapshot.token is not None:
        print("-" * 50)
        print(f"Total {snapshot.token.token}: {snapshot.token.formatted}")


def print_report(report: ExecutionReport, orchestrator: Orchestrator) -> None:
    print(f"\nSupertransaction {report.aggregate_hash}")
    for chain_id, outcome in report.summary().items():
        line = f"  {orchestrator.registry.chain_name(chain_id):<20} {outcome}"
        tx_hash = report.per_chain[chain_id].tx_hash
        if tx_hash:
            line += f"  {tx_hash}"
        print(line)


async def cli_addresses(orchestrator: Orchestrator) -> None:
    print(f"Owner: {orchestrator.account.owner}")
    for chain_id in orchestrator.registry.chain_ids:
        address = orchestrator.account.address_on(chain_id)
        print(f"  {orchestrator.registry.chain_name(chain_id):<20} {address}")


async def cli_balances(orchestrator: Orchestrator, token: Optional[str], chains: Optional[List[int]]) -> None:
    snapshot = await orchestrator.refresh_view(chains=chains, token=token)
    print_snapshot(snapshot, orchestrator)


async def cli_transfer(
    orchestrator: Orchestrator,
    token: str,
    amounts: Dict[int, str],
    recipient: Optional[str],
    fee_chain: Optional[int],
    wait: bool,
) -> None:
    handle = await orchestrator.submit_transfer(token, amounts, recipient=recipient, fee_chain=fee_chain)
    print(f"Submitted: {handle.aggregate_hash}")
    if wait:
        report = await orchestrator.wait_for_completion(handle)
        print_report(report, orchestrator)


async def cli_status(orchestrator: Orchestrator, aggregate_hash: str, wait: bool) -> None:
    handle = ExecutionHandle(aggregate_hash=aggregate_hash)
    if wait:
        report = await orchestrator.wait_for_completion(handle)
    else:
        report = await orchestrator.execution_status(handle)
    print_report(report, orchestrator)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multichain smart account CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("addresses", help="Show the account address on every chain")

    balances_parser = subparsers.add_parser("balances", help="Native and token balances across chains")
    balances_parser.add_argument("--token", default=None, help="Logical token symbol, e.g. USDC")
    balances_parser.add_argument("--chain", type=int, action="append", dest="chains", help="Chain id (repeatable)")

    transfer_parser = subparsers.add_parser("transfer", help="Send a token on several chains in one signature")
    transfer_parser.add_argument("token", help="Logical token symbol, e.g. USDC")
    transfer_parser.add_argument("amounts", nargs="+", help="CHAIN_ID=AMOUNT pairs, e.g. 84532=0.3")
    transfer_parser.add_argument("--to", dest="recipient", default=None, help="Recipient (default: the account itself)")
    transfer_parser.add_argument("--fee-chain", type=int, default=None, help="Chain to pay the relay fee on")
    transfer_parser.add_argument("--wait", action="store_true", help="Wait for every chain to finish")

    status_parser = subparsers.add_parser("status", help="Per-chain status of a submitted supertransaction")
    status_parser.add_argument("hash", help="Aggregate hash returned by transfer")
    status_parser.add_argument("--wait", action="store_true", help="Poll until every chain is done")

    return parser


async def run(args: argparse.Namespace) -> int:
    if not settings.owner_private_key:
        print("❌ OWNER_PRIVATE_KEY is not set")
        return 2

    orchestrator = Orchestrator.from_settings(LocalSigner.from_key(settings.owner_private_key))
    try:
        if args.command == "addresses":
            await cli_addresses(orchestrator)
        elif args.command == "balances":
            await cli_balances(orchestrator, args.token, args.chains)
        elif args.command == "transfer":
            amounts = parse_chain_amounts(args.amounts)
            await cli_transfer(orchestrator, args.token, amounts, args.recipient, args.fee_chain, args.wait)
        elif args.command == "status":
            await cli_status(orchestrator, args.hash, args.wait)
    except (RecoverableError, UnrecoverableError, argparse.ArgumentTypeError) as e:
        print(f"❌ Error: {e}")
        return 1
    finally:
        await orchestrator.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
