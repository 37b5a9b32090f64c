"""
Supertransaction models.

Everything up to ``SignedExecution`` is immutable once built; each submit
cycle creates fresh values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import PartialExecutionFailure


@dataclass(frozen=True)
class Call:
    """One contract call inside a chain operation."""

    to: str
    data: str = "0x"
    value: int = 0
    gas_limit: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "to": self.to,
            "value": str(self.value),
            "data": self.data,
            "gasLimit": str(self.gas_limit),
        }


@dataclass(frozen=True)
class ChainOperation:
    """Ordered calls executed by the smart account on a single chain."""

    chain_id: int
    calls: Tuple[Call, ...]
    sender: Optional[str] = None

    @property
    def total_gas_limit(self) -> int:
        return sum(call.gas_limit for call in self.calls)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "chainId": self.chain_id,
            "calls": [call.to_payload() for call in self.calls],
        }
        if self.sender:
            payload["sender"] = self.sender
        return payload


@dataclass(frozen=True)
class FeeToken:
    chain_id: int
    address: str

    def to_payload(self) -> Dict[str, Any]:
        return {"chainId": self.chain_id, "address": self.address}


@dataclass(frozen=True)
class Supertransaction:
    """N chain operations (at most one per chain) plus how the fee is paid."""

    operations: Tuple[ChainOperation, ...]
    fee_token: FeeToken

    @property
    def chain_ids(self) -> List[int]:
        return [op.chain_id for op in self.operations]

    def operation_on(self, chain_id: int) -> Optional[ChainOperation]:
        for op in self.operations:
            if op.chain_id == chain_id:
                return op
        return None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "userOps": [op.to_payload() for op in self.operations],
            "feeToken": self.fee_token.to_payload(),
        }


@dataclass(frozen=True)
class FeeBreakdown:
    """What the relay charges, denominated in the fee token's raw units."""

    amount: int
    token_address: str
    chain_id: int
    per_chain: Mapping[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Quote:
    """Relay price for one supertransaction and the digest that authorizes it."""

    hash_to_sign: str
    fee: FeeBreakdown
    supertransaction: Supertransaction
    expires_at: Optional[datetime] = None
    echoed_operations: Optional[Tuple[ChainOperation, ...]] = field(default=None, compare=False, repr=False)

    @property
    def digest(self) -> bytes:
        return bytes.fromhex(self.hash_to_sign[2:] if self.hash_to_sign.startswith("0x") else self.hash_to_sign)


@dataclass(frozen=True)
class SignedExecution:
    """A quote plus its one signature. Resubmit this value as-is on retry."""

    quote: Quote
    signature: str = field(repr=False)
    execution_mode: str = "direct-to-mee"


@dataclass(frozen=True)
class ExecutionHandle:
    aggregate_hash: str


class SubmissionState(str, Enum):
    """Lifecycle of one quote/sign/submit attempt."""

    BUILT = "built"
    QUOTED = "quoted"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class ChainExecutionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ChainExecutionStatus.PENDING


_STATUS_SEVERITY = {
    ChainExecutionStatus.SUCCESS: 0,
    ChainExecutionStatus.PENDING: 1,
    ChainExecutionStatus.FAILED: 2,
}


@dataclass(frozen=True)
class ChainExecution:
    chain_id: int
    status: ChainExecutionStatus
    tx_hash: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ExecutionReport:
    """Per-chain outcome of a submitted supertransaction."""

    aggregate_hash: str
    per_chain: Mapping[int, ChainExecution]

    @classmethod
    def from_chains(
        cls,
        aggregate_hash: str,
        chains: List[ChainExecution],
        expected_chains: Optional[Sequence[int]] = None,
    ) -> "ExecutionReport":
        """
        Collapse relay entries into one outcome per chain.

        A chain may carry several entries (the fee payment next to the
        user's operation); the worst one wins. Chains in ``expected_chains``
        that the relay did not mention are reported as pending.
        """
        per_chain: Dict[int, ChainExecution] = {}
        for entry in chains:
            current = per_chain.get(entry.chain_id)
            if current is None or _STATUS_SEVERITY[entry.status] > _STATUS_SEVERITY[current.status]:
                per_chain[entry.chain_id] = entry

        for chain_id in expected_chains or ():
            if chain_id not in per_chain:
                per_chain[chain_id] = ChainExecution(chain_id=chain_id, status=ChainExecutionStatus.PENDING)

        return cls(aggregate_hash=aggregate_hash, per_chain=MappingProxyType(per_chain))

    @property
    def is_terminal(self) -> bool:
        return bool(self.per_chain) and all(c.status.is_terminal for c in self.per_chain.values())

    @property
    def failed_chains(self) -> List[int]:
        return [cid for cid, c in self.per_chain.items() if c.status is ChainExecutionStatus.FAILED]

    @property
    def state(self) -> SubmissionState:
        """FAILED if any chain failed, even when others succeeded."""
        if self.failed_chains:
            return SubmissionState.FAILED
        if self.is_terminal:
            return SubmissionState.CONFIRMED
        return SubmissionState.SUBMITTED

    def summary(self) -> Dict[int, str]:
        """``{chainId: "confirmed" | "failed" | "pending"}``"""
        labels = {
            ChainExecutionStatus.SUCCESS: "confirmed",
            ChainExecutionStatus.FAILED: "failed",
            ChainExecutionStatus.PENDING: "pending",
        }
        return {cid: labels[c.status] for cid, c in self.per_chain.items()}

    def raise_for_status(self) -> None:
        if self.failed_chains:
            raise PartialExecutionFailure(self)
