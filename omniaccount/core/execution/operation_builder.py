"""
Intent -> ChainOperation translation.

Pure data transformation: no signing, no network access.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from eth_utils import is_address, to_checksum_address

from ...config import settings
from ..errors import InvalidAmount, ValidationError
from ..tokens.mapping import TokenMappingTable
from .calldata import build_transfer_call_data
from .models import Call, ChainOperation


class IntentAction(str, Enum):
    TRANSFER = "transfer"


@dataclass(frozen=True)
class CallIntent:
    """
    "Send ``amount`` of ``token`` to ``recipient``".

    With ``token`` unset the amount is native currency sent straight to
    ``recipient``; otherwise it becomes an ERC-20 ``transfer`` on the
    token's contract for the target chain.
    """

    recipient: str
    amount: int
    token: Optional[str] = None
    action: IntentAction = IntentAction.TRANSFER
    gas_limit: Optional[int] = None


class OperationBuilder:
    """
    Builds one ChainOperation from an ordered list of intents.

    Usage:
        builder = OperationBuilder(token_table)
        op = builder.build_operation(84532, [CallIntent(recipient="0x...", amount=300_000, token="USDC")])
    """

    def __init__(
        self,
        token_table: TokenMappingTable,
        default_gas_limit: Optional[int] = None,
    ) -> None:
        self._tokens = token_table
        self._default_gas_limit = default_gas_limit or settings.default_gas_limit

    def build_operation(
        self,
        chain_id: int,
        intents: Iterable[CallIntent],
        sender: Optional[str] = None,
    ) -> ChainOperation:
        calls: List[Call] = [self._encode(chain_id, intent) for intent in intents]
        if not calls:
            raise ValidationError(f"Operation on chain {chain_id} has no calls", chain_id=chain_id)
        return ChainOperation(chain_id=chain_id, calls=tuple(calls), sender=sender)

    def _encode(self, chain_id: int, intent: CallIntent) -> Call:
        if isinstance(intent.amount, bool) or not isinstance(intent.amount, int) or intent.amount <= 0:
            raise InvalidAmount(intent.amount, chain_id=chain_id)
        if not is_address(intent.recipient):
            raise ValidationError(f"Invalid recipient address: {intent.recipient!r}", chain_id=chain_id)

        gas_limit = intent.gas_limit if intent.gas_limit is not None else self._default_gas_limit
        if gas_limit <= 0:
            raise ValidationError(f"Gas limit must be positive, got {gas_limit}", chain_id=chain_id)

        recipient = to_checksum_address(intent.recipient)

        if intent.action is not IntentAction.TRANSFER:
            raise ValidationError(f"Unsupported intent action: {intent.action}", chain_id=chain_id)

        if intent.token is None:
            return Call(to=recipient, value=intent.amount, data="0x", gas_limit=gas_limit)

        token_address = self._tokens.address_for(intent.token, chain_id)
        return Call(
            to=token_address,
            value=0,
            data=build_transfer_call_data(recipient, intent.amount),
            gas_limit=gas_limit,
        )
