"""
Signer capability.

A signer exposes its public identity and signs a 32-byte digest. Key
material never leaves it; the account layer only holds a reference.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from ..errors import ValidationError


@runtime_checkable
class Signer(Protocol):
    """Anything that can authorize a supertransaction digest."""

    @property
    def address(self) -> str:
        ...

    async def sign(self, digest: bytes) -> str:
        """Return a 0x-prefixed signature over ``digest``."""
        ...


class LocalSigner:
    """
    Signs with an in-process private key.

    The digest is signed as an EIP-191 personal message over its raw bytes,
    which is how the relay verifies owner signatures.
    """

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> "LocalSigner":
        return cls(Account.from_key(private_key))

    @classmethod
    def generate(cls) -> "LocalSigner":
        return cls(Account.create())

    @property
    def address(self) -> str:
        return self._account.address

    async def sign(self, digest: bytes) -> str:
        if len(digest) != 32:
            raise ValidationError(f"Expected a 32-byte digest, got {len(digest)} bytes")
        signed = self._account.sign_message(encode_defunct(primitive=digest))
        return "0x" + bytes(signed.signature).hex()

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"
