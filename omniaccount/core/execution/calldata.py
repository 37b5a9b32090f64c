"""
ERC-20 calldata builders and return-data decoders.
"""

from __future__ import annotations

from functools import lru_cache

from eth_utils import keccak

TRANSFER_SIGNATURE = "transfer(address,uint256)"
BALANCE_OF_SIGNATURE = "balanceOf(address)"
DECIMALS_SIGNATURE = "decimals()"

_UINT256_MAX = 2**256 - 1


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def _encode_uint(value: int) -> str:
    if value < 0:
        raise ValueError("Value must be non-negative")
    if value > _UINT256_MAX:
        raise ValueError("Value does not fit in uint256")
    return hex(value)[2:].rjust(64, "0")


def _encode_address(address: str) -> str:
    addr = _strip_0x(address).lower()
    if len(addr) != 40:
        raise ValueError(f"Invalid address length: {address}")
    return addr.rjust(64, "0")


@lru_cache(maxsize=32)
def selector_from_signature(signature: str) -> str:
    selector = keccak(text=signature)[:4].hex()
    return f"0x{selector}"


def build_transfer_call_data(recipient: str, amount: int) -> str:
    """Calldata for ``transfer(address,uint256)``."""
    return selector_from_signature(TRANSFER_SIGNATURE) + _encode_address(recipient) + _encode_uint(amount)


def build_balance_of_call_data(account: str) -> str:
    return selector_from_signature(BALANCE_OF_SIGNATURE) + _encode_address(account)


def build_decimals_call_data() -> str:
    return selector_from_signature(DECIMALS_SIGNATURE)


def decode_uint(return_data: str) -> int:
    """Decode the first 32-byte word of ABI return data as an unsigned int."""
    hex_data = _strip_0x(return_data)
    if len(hex_data) < 64:
        raise ValueError(f"Return data too short for uint256: {return_data!r}")
    return int(hex_data[:64], 16)

