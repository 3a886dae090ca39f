"""Tests for the command-line driver."""

import httpx
import pytest

from zenithswap.cli import PRIVATE_KEY_ENV, SwapCLI, build_parser, main
from zenithswap.resolver.client import ExchangeAPIClient
from zenithswap.swap.state import SwapStatus

from .conftest import BTC_DEST, TEST_PRIVATE_KEY, make_settings


def make_cli(tmp_path, resolver) -> SwapCLI:
    cli = SwapCLI(make_settings(storage_path=str(tmp_path / "session.json")), TEST_PRIVATE_KEY)
    cli.api = ExchangeAPIClient("http://resolver.test", transport=httpx.MockTransport(resolver.handler))
    cli.orchestrator.api = cli.api
    return cli


class TestParser:
    """Tests for argument parsing."""

    def test_quote_defaults(self):
        """Test that quote defaults to native token -> BTC."""
        args = build_parser().parse_args(["quote", "--amount", "0.5"])

        assert args.command == "quote"
        assert args.amount == "0.5"
        assert args.to_chain == 0
        assert args.to_token == "BTC"
        assert args.from_chain is None
        assert args.destination is None

    def test_command_required(self):
        """Test that a sub-command is mandatory."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    @pytest.mark.asyncio
    async def test_private_key_required(self, monkeypatch):
        """Test that running without a key exits with a usage error."""
        monkeypatch.delenv(PRIVATE_KEY_ENV, raising=False)
        monkeypatch.setattr("zenithswap.cli.load_dotenv", lambda: False)

        with pytest.raises(SystemExit) as exc_info:
            await main(["status"])

        assert exc_info.value.code == 2


class TestCommands:
    """Tests for the sub-commands against the fake resolver."""

    @pytest.mark.asyncio
    async def test_quote_then_confirm_across_runs(self, tmp_path, resolver, capsys):
        """Test that a quote from one run can be confirmed in the next."""
        first = make_cli(tmp_path, resolver)
        await first.start()
        args = build_parser().parse_args(["quote", "--amount", "0.001", "--destination", BTC_DEST])

        assert await first.quote(args) == 0
        await first.close()
        assert "Quote:         q1" in capsys.readouterr().out

        second = make_cli(tmp_path, resolver)
        await second.start()
        assert second.orchestrator.session.status == SwapStatus.QUOTED

        assert await second.confirm(build_parser().parse_args(["confirm"])) == 0
        output = capsys.readouterr().out
        assert "Swap ID:       s1" in output
        assert second.orchestrator.session.status == SwapStatus.PENDING_DEPOSIT
        await second.close()

    @pytest.mark.asyncio
    async def test_quote_rejects_bad_amount(self, tmp_path, resolver, capsys):
        """Test that a bad amount is reported without calling the resolver."""
        cli = make_cli(tmp_path, resolver)
        await cli.start()

        args = build_parser().parse_args(["quote", "--amount", "50", "--destination", BTC_DEST])

        assert await cli.quote(args) == 1
        assert "Maximum amount is 10 (demo limit)" in capsys.readouterr().out
        assert resolver.count("/quote") == 0
        await cli.close()

    @pytest.mark.asyncio
    async def test_watch_without_swap(self, tmp_path, resolver, capsys):
        """Test that watch needs an active swap."""
        cli = make_cli(tmp_path, resolver)
        await cli.start()

        assert await cli.watch(build_parser().parse_args(["watch"])) == 1
        assert "No active swap" in capsys.readouterr().out
        await cli.close()

    @pytest.mark.asyncio
    async def test_reset(self, tmp_path, resolver):
        """Test that reset clears the stored session."""
        cli = make_cli(tmp_path, resolver)
        await cli.start()
        await cli.quote(
            build_parser().parse_args(["quote", "--amount", "0.001", "--destination", BTC_DEST])
        )

        assert await cli.reset(build_parser().parse_args(["reset", "--all"])) == 0
        assert cli.orchestrator.session.status == SwapStatus.IDLE
        assert cli.orchestrator.session.btc_destination_address is None
        await cli.close()
