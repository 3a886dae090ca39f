"""Command-line driver for the swap orchestrator.

Usage:
    zenithswap quote --amount 0.001 --destination tb1q...
    zenithswap confirm --watch
    zenithswap status --refresh
    zenithswap watch
    zenithswap reset

Environment variables:
    ZENITH_PRIVATE_KEY: EVM private key used to sign (required)
    RESOLVER_API_URL: Resolver backend URL (default: http://localhost:8080)
    STORAGE_PATH: Session file (default: ./data/session.json)
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from zenithswap.chains import BTC_CHAIN_ID, BTC_TOKEN_ADDRESS, NATIVE_TOKEN_ADDRESS, resolve_token
from zenithswap.config import Settings, get_settings
from zenithswap.errors import SwapError
from zenithswap.resolver.client import ExchangeAPIClient
from zenithswap.resolver.contracts import QuoteParams
from zenithswap.storage.base import JsonFileKeyValueStore
from zenithswap.storage.snapshot import PersistenceAdapter
from zenithswap.swap.formatting import to_base_units
from zenithswap.swap.orchestrator import SwapOrchestrator
from zenithswap.swap.state import SwapSession
from zenithswap.wallet.gateway import WalletGateway
from zenithswap.wallet.local import LocalAccountProvider

logger = logging.getLogger(__name__)

PRIVATE_KEY_ENV = "ZENITH_PRIVATE_KEY"


def configure_logging(settings: Settings) -> None:
    """Configure root logging."""
    if settings.debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def print_session(session: SwapSession) -> None:
    print(f"Status:        {session.status.value}")
    if session.status_message:
        print(f"Message:       {session.status_message}")
    if session.quote:
        quote = session.quote
        print(f"Quote:         {quote.quote_id}")
        print(f"  You send:    {quote.from_amount} {quote.from_token}")
        print(f"  You receive: {quote.to_amount} {quote.to_token}")
        print(f"  Rate:        {quote.rate}")
        print(f"  Fee:         {quote.fee} {quote.fee_token}")
        print(f"  Time:        {quote.estimated_time}")
    if session.btc_destination_address:
        print(f"Destination:   {session.btc_destination_address}")
    if session.swap_id:
        print(f"Swap ID:       {session.swap_id}")
        print(f"Deposit to:    {session.btc_deposit_address}")
        if session.deposit_expires_at:
            print(f"Expires at:    {session.deposit_expires_at.isoformat()}")
        print(f"Confirmations: {session.confirmation_count}")
    if session.evm_tx_hash:
        print(f"EVM tx:        {session.evm_tx_hash}")
    if session.btc_tx_hash:
        print(f"BTC tx:        {session.btc_tx_hash}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zenithswap", description="Drive a BTC <-> EVM atomic swap"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    quote = sub.add_parser("quote", help="Request a quote")
    quote.add_argument(
        "--amount",
        required=True,
        help="Amount in whole source units, e.g. 0.001",
    )
    quote.add_argument(
        "--destination",
        default=None,
        help="BTC address receiving the funds (kept from the last session if omitted)",
    )
    quote.add_argument("--from-chain", type=int, default=None, help="Source chain ID")
    quote.add_argument(
        "--from-token",
        default=NATIVE_TOKEN_ADDRESS,
        help="Source token address (default: native token)",
    )
    quote.add_argument(
        "--to-chain",
        type=int,
        default=BTC_CHAIN_ID,
        help="Destination chain ID (default: 0 = Bitcoin)",
    )
    quote.add_argument(
        "--to-token",
        default=BTC_TOKEN_ADDRESS,
        help="Destination token address (default: BTC)",
    )

    confirm = sub.add_parser("confirm", help="Confirm the held quote and start the swap")
    confirm.add_argument(
        "--watch",
        action="store_true",
        help="Keep polling until the swap finishes",
    )

    status = sub.add_parser("status", help="Show the current session")
    status.add_argument(
        "--refresh",
        action="store_true",
        help="Ask the resolver once before printing",
    )

    sub.add_parser("watch", help="Poll the active swap until it finishes")

    reset = sub.add_parser("reset", help="Drop the quote and any swap")
    reset.add_argument(
        "--all",
        action="store_true",
        help="Also forget the BTC destination address",
    )
    return parser


class SwapCLI:
    """Wires the orchestrator to a local key and the file-backed store."""

    def __init__(self, settings: Settings, private_key: str):
        self.settings = settings
        self.store = JsonFileKeyValueStore(settings.storage_path)
        self.provider = LocalAccountProvider(private_key, chain_id=settings.target_chain_id)
        self.wallet = WalletGateway(
            self.provider,
            self.store,
            network=settings.target_network,
            prompt_timeout=settings.wallet_prompt_timeout,
        )
        self.api = ExchangeAPIClient(settings.resolver_api_url, timeout=settings.api_timeout)
        self.orchestrator = SwapOrchestrator(
            wallet=self.wallet,
            api=self.api,
            persistence=PersistenceAdapter(self.store),
            settings=settings,
        )

    async def start(self) -> None:
        if not await self.wallet.restore_from_storage():
            await self.wallet.connect()
        self.orchestrator.restore()

    async def close(self) -> None:
        await self.orchestrator.close()
        self.wallet.close()
        await self.api.close()

    async def quote(self, args: argparse.Namespace) -> int:
        from_chain = args.from_chain if args.from_chain is not None else self.settings.target_chain_id
        source = resolve_token(from_chain, args.from_token)
        check = self.orchestrator.validate_amount(args.amount)
        if not check:
            print(f"Error: {check.error}")
            return 1

        params = QuoteParams(
            from_chain_id=from_chain,
            from_token_address=args.from_token,
            to_chain_id=args.to_chain,
            to_token_address=args.to_token,
            amount=to_base_units(args.amount, source.decimals),
        )
        quote = await self.orchestrator.request_quote(params, destination_address=args.destination)
        print_session(self.orchestrator.session)
        return 0 if quote else 1

    async def confirm(self, args: argparse.Namespace) -> int:
        if not await self.orchestrator.confirm_swap():
            print_session(self.orchestrator.session)
            return 1
        print_session(self.orchestrator.session)
        print("Send the exact BTC amount to the deposit address above.")
        if args.watch:
            return await self.watch(args)
        return 0

    async def status(self, args: argparse.Namespace) -> int:
        poller = self.orchestrator.poller
        if args.refresh and poller is not None:
            await poller.poll_once()
        print_session(self.orchestrator.session)
        return 0

    async def watch(self, args: argparse.Namespace) -> int:
        poller = self.orchestrator.poller
        if poller is None:
            print("No active swap to watch.")
            print_session(self.orchestrator.session)
            return 1

        def on_change(session: SwapSession) -> None:
            print(
                f"[{session.status.value}] {session.status_message} "
                f"(confirmations: {session.confirmation_count})"
            )

        unsubscribe = self.orchestrator.subscribe(on_change)
        try:
            await poller.join()
        finally:
            unsubscribe()
        print_session(self.orchestrator.session)
        return 0

    async def reset(self, args: argparse.Namespace) -> int:
        self.orchestrator.reset(clear_destination=args.all)
        print("Session reset.")
        return 0


async def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)

    private_key = os.environ.get(PRIVATE_KEY_ENV)
    if not private_key:
        parser.error(f"{PRIVATE_KEY_ENV} is not set")

    cli = SwapCLI(settings, private_key)
    handler = getattr(cli, args.command)
    try:
        await cli.start()
        return await handler(args)
    except SwapError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}")
        return 1
    finally:
        await cli.close()


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
