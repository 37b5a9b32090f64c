"""
Tests for ERC-20 calldata builders.
"""

import pytest

from omniaccount.core.execution.calldata import (
    build_balance_of_call_data,
    build_decimals_call_data,
    build_transfer_call_data,
    decode_uint,
    selector_from_signature,
)

RECIPIENT = "0x1111111111111111111111111111111111111111"


def test_known_selectors() -> None:
    assert selector_from_signature("transfer(address,uint256)") == "0xa9059cbb"
    assert selector_from_signature("balanceOf(address)") == "0x70a08231"
    assert build_decimals_call_data() == "0x313ce567"


def test_transfer_call_data() -> None:
    call_data = build_transfer_call_data(RECIPIENT, 300_000)

    assert call_data.startswith("0xa9059cbb")
    assert len(call_data) == 10 + 64 * 2
    assert call_data[10:74] == "0" * 24 + "1" * 40
    assert int(call_data[74:], 16) == 300_000


def test_balance_of_call_data() -> None:
    call_data = build_balance_of_call_data(RECIPIENT.upper().replace("0X", "0x"))
    assert call_data == "0x70a08231" + "0" * 24 + "1" * 40


def test_transfer_rejects_negative_amount() -> None:
    with pytest.raises(ValueError):
        build_transfer_call_data(RECIPIENT, -1)


def test_transfer_rejects_overflow() -> None:
    with pytest.raises(ValueError):
        build_transfer_call_data(RECIPIENT, 2**256)


def test_decode_uint() -> None:
    assert decode_uint("0x" + hex(150_000)[2:].rjust(64, "0")) == 150_000


def test_decode_uint_short_data() -> None:
    with pytest.raises(ValueError):
        decode_uint("0x")
