"""
Tests for the omniaccount command line.
"""

import argparse

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from conftest import OWNER_KEY
from omniaccount import cli
from omniaccount.core.errors import QuoteError


def test_parse_chain_amounts() -> None:
    assert cli.parse_chain_amounts(["84532=0.3", "421614=0.1"]) == {84532: "0.3", 421614: "0.1"}


@pytest.mark.parametrize("pairs", [["84532"], ["x=1"], ["84532="], ["1=1", "1=2"]])
def test_parse_chain_amounts_rejects(pairs) -> None:
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_chain_amounts(pairs)


def test_transfer_arguments() -> None:
    args = cli.build_parser().parse_args(["transfer", "USDC", "84532=0.3", "--fee-chain", "84532", "--wait"])
    assert args.command == "transfer"
    assert args.amounts == ["84532=0.3"]
    assert args.fee_chain == 84532
    assert args.wait is True


def test_no_command_prints_help(capsys) -> None:
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_missing_key(capsys) -> None:
    with patch.object(cli.settings, "owner_private_key", ""), patch.object(cli, "setup_logging"):
        assert cli.main(["addresses"]) == 2
    assert "OWNER_PRIVATE_KEY" in capsys.readouterr().out


def test_relay_error_reported(capsys) -> None:
    orchestrator = MagicMock()
    orchestrator.submit_transfer = AsyncMock(side_effect=QuoteError("insufficient fee balance"))
    orchestrator.close = AsyncMock()

    with patch.object(cli.settings, "owner_private_key", OWNER_KEY), \
            patch.object(cli.Orchestrator, "from_settings", return_value=orchestrator), \
            patch.object(cli, "setup_logging"):
        assert cli.main(["transfer", "USDC", "84532=0.3"]) == 1

    assert "insufficient fee balance" in capsys.readouterr().out
    orchestrator.close.assert_awaited_once()
