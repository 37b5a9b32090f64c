"""
Error Classification

Every failure the account layer can surface is either recoverable (the
orchestrator may retry it) or unrecoverable (it must reach the caller).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional

import httpx

if TYPE_CHECKING:
    from .execution.models import ExecutionReport


class ErrorCategory(str, Enum):
    """Categories of errors for retry decisions."""

    CONFIGURATION = "configuration"  # Missing chain / token / factory entry
    VALIDATION = "validation"        # Rejected before any network call
    NETWORK = "network"              # RPC or relay unreachable, timeout, 5xx
    CONTRACT = "contract"            # eth_call reverted or returned junk
    QUOTE = "quote"                  # Relay refused to price or execute
    STATE = "state"                  # Submission state machine misuse
    EXECUTION = "execution"          # On-chain outcome after submission
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    retry_after_seconds: Optional[float] = None
    chain_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


class RecoverableError(Exception):
    """Base class for transient errors that may be retried."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retry_after: Optional[float] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.retry_after = retry_after
        self.context = context or ErrorContext(
            category=category,
            recoverable=True,
            retry_after_seconds=retry_after,
        )


class UnrecoverableError(Exception):
    """Base class for errors that retrying cannot fix."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=False)


# Configuration errors: fatal, raised at construction or lookup time


class ConfigurationError(UnrecoverableError):
    """A chain, token or factory entry the request depends on is missing."""

    def __init__(self, message: str, chain_id: Optional[int] = None, **details: Any):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            context=ErrorContext(
                category=ErrorCategory.CONFIGURATION,
                recoverable=False,
                chain_id=chain_id,
                details=details,
            ),
        )
        self.chain_id = chain_id


class UnsupportedChain(ConfigurationError):
    """No factory (or registry) entry exists for the chain."""

    def __init__(self, chain_id: int, message: Optional[str] = None):
        super().__init__(message or f"Chain {chain_id} is not supported", chain_id=chain_id)


class UnknownMapping(ConfigurationError):
    """The (token, chain) pair was never registered."""

    def __init__(self, token: str, chain_id: Optional[int] = None):
        if chain_id is None:
            message = f"No mapping registered for token {token}"
        else:
            message = f"No mapping registered for token {token} on chain {chain_id}"
        super().__init__(message, chain_id=chain_id, token=token)
        self.token = token


# Validation errors: rejected before any network call


class ValidationError(UnrecoverableError):
    """Caller input that can never succeed."""

    def __init__(self, message: str, chain_id: Optional[int] = None, **details: Any):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                chain_id=chain_id,
                details=details,
            ),
        )
        self.chain_id = chain_id


class InvalidAmount(ValidationError):
    def __init__(self, amount: Any, chain_id: Optional[int] = None):
        super().__init__(f"Amount must be positive, got {amount!r}", chain_id=chain_id, amount=amount)
        self.amount = amount


class DuplicateChainError(ValidationError):
    """Two operations in one supertransaction target the same chain."""

    def __init__(self, chain_id: int):
        super().__init__(
            f"Chain {chain_id} appears more than once; merge its calls into one operation",
            chain_id=chain_id,
        )


class FeeChainNotIncluded(ValidationError):
    """The fee token lives on a chain none of the operations touch."""

    def __init__(self, fee_chain_id: int, operation_chain_ids: Iterable[int]):
        chains = list(operation_chain_ids)
        super().__init__(
            f"Fee token chain {fee_chain_id} is not among operation chains {chains}",
            chain_id=fee_chain_id,
            operation_chains=chains,
        )


# Network errors: retryable


class NetworkError(RecoverableError):
    """RPC or relay unreachable, timed out, or failing server-side."""

    def __init__(
        self,
        message: str = "Network error",
        provider: Optional[str] = None,
        chain_id: Optional[int] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            retry_after=None,
            context=ErrorContext(
                category=ErrorCategory.NETWORK,
                recoverable=True,
                chain_id=chain_id,
                details={"provider": provider} if provider else {},
            ),
        )
        self.provider = provider
        self.chain_id = chain_id


class BalanceAggregationError(RecoverableError):
    """At least one per-chain balance query failed; no snapshot is produced."""

    def __init__(self, failures: Mapping[int, Exception]):
        self.failures: Dict[int, Exception] = dict(failures)
        summary = ", ".join(f"{chain_id}: {exc}" for chain_id, exc in self.failures.items())
        super().__init__(
            f"Balance query failed on {len(self.failures)} chain(s): {summary}",
            category=ErrorCategory.NETWORK,
            context=ErrorContext(
                category=ErrorCategory.NETWORK,
                recoverable=all(not isinstance(e, UnrecoverableError) for e in self.failures.values()),
                details={"failed_chains": list(self.failures)},
            ),
        )


class ExecutionTimeoutError(RecoverableError):
    """Status polling gave up; the execution may still complete."""

    def __init__(self, aggregate_hash: str, timeout_s: float):
        super().__init__(
            f"Supertransaction {aggregate_hash} not terminal after {timeout_s}s",
            category=ErrorCategory.NETWORK,
        )
        self.aggregate_hash = aggregate_hash


class ContractCallError(UnrecoverableError):
    """A read-only contract call reverted or returned undecodable data."""

    def __init__(self, message: str, chain_id: Optional[int] = None, contract_address: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.CONTRACT,
            context=ErrorContext(
                category=ErrorCategory.CONTRACT,
                recoverable=False,
                chain_id=chain_id,
                details={"contract": contract_address},
            ),
        )
        self.chain_id = chain_id


# Relay errors


class QuoteError(UnrecoverableError):
    """The relay could not (or would not) price the supertransaction."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message,
            category=ErrorCategory.QUOTE,
            context=ErrorContext(category=ErrorCategory.QUOTE, recoverable=False, details=details),
        )


class RelayRejection(QuoteError):
    """Explicit 4xx refusal from the relay (e.g. insufficient fee balance)."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message, status_code=status_code, body=body)
        self.status_code = status_code
        self.body = body


class QuoteExpiredError(RelayRejection):
    """The quote is past the relay's validity window; request a new one."""


class InvalidTransitionError(UnrecoverableError):
    """Illegal move in the submission state machine."""

    def __init__(self, from_state: Any, to_state: Any, message: Optional[str] = None):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            message or f"Cannot transition from {from_state.value} to {to_state.value}",
            category=ErrorCategory.STATE,
        )


class PartialExecutionFailure(UnrecoverableError):
    """One or more chain operations failed after submission."""

    def __init__(self, report: "ExecutionReport"):
        self.report = report
        failed = report.failed_chains
        super().__init__(
            f"Supertransaction {report.aggregate_hash} failed on chain(s) {failed}",
            category=ErrorCategory.EXECUTION,
            context=ErrorContext(
                category=ErrorCategory.EXECUTION,
                recoverable=False,
                details={
                    "per_chain": {chain_id: s.status.value for chain_id, s in report.per_chain.items()},
                },
            ),
        )


def classify_error(error: Exception, provider: Optional[str] = None, chain_id: Optional[int] = None) -> Exception:
    """
    Map a raw transport exception onto the taxonomy.

    Already-classified errors are returned unchanged. Anything unrecognised
    is also returned unchanged so it propagates as-is.
    """
    if isinstance(error, (RecoverableError, UnrecoverableError)):
        return error

    if isinstance(error, httpx.TimeoutException):
        return NetworkError(f"Request timed out: {error}", provider=provider, chain_id=chain_id)

    if isinstance(error, httpx.RequestError):
        return NetworkError(f"Request failed: {error}", provider=provider, chain_id=chain_id)

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        if response.status_code >= 500 or response.status_code == 429:
            return NetworkError(
                f"{provider or 'upstream'} returned {response.status_code}",
                provider=provider,
                chain_id=chain_id,
            )
        body: Any
        try:
            body = response.json()
        except ValueError:
            body = response.text
        message = body.get("message") or body.get("error") if isinstance(body, dict) else body
        return RelayRejection(
            f"{provider or 'upstream'} rejected request ({response.status_code}): {message}",
            status_code=response.status_code,
            body=body,
        )

    return error
