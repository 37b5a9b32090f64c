"""Groups chain operations and a fee token into one Supertransaction."""

from __future__ import annotations

from typing import Iterable, Set

from eth_utils import is_address, to_checksum_address

from ..errors import DuplicateChainError, FeeChainNotIncluded, ValidationError
from .models import ChainOperation, FeeToken, Supertransaction


def assemble(operations: Iterable[ChainOperation], fee_token: FeeToken) -> Supertransaction:
    """
    Assemble a supertransaction, preserving operation order.

    Operations for the same chain are never merged or dropped here; the
    caller has to combine their calls first. No hashing happens at this
    stage, the relay returns the canonical digest with the quote.

    Raises:
        ValidationError: no operations, or an invalid fee token address
        DuplicateChainError: two operations share a chain id
        FeeChainNotIncluded: the fee token's chain has no operation
    """
    ops = tuple(operations)
    if not ops:
        raise ValidationError("A supertransaction needs at least one operation")

    seen: Set[int] = set()
    for op in ops:
        if op.chain_id in seen:
            raise DuplicateChainError(op.chain_id)
        seen.add(op.chain_id)

    if fee_token.chain_id not in seen:
        raise FeeChainNotIncluded(fee_token.chain_id, [op.chain_id for op in ops])

    if not is_address(fee_token.address):
        raise ValidationError(f"Invalid fee token address: {fee_token.address!r}", chain_id=fee_token.chain_id)

    return Supertransaction(
        operations=ops,
        fee_token=FeeToken(chain_id=fee_token.chain_id, address=to_checksum_address(fee_token.address)),
    )
