"""
Quote / sign / submit state machine.

    BUILT -> QUOTED -> SIGNED -> SUBMITTED -> {CONFIRMED | FAILED}

One SubmissionAttempt tracks one supertransaction through the relay.
A quote failure leaves the attempt in BUILT. The digest is signed at most
once per quote. Submission retries resend the same SignedExecution. An
expired quote sends the attempt back to BUILT with its signature
discarded, so a later signature can only ever cover a freshly quoted
digest of the same content.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from ...config import settings
from ..account.signer import Signer
from ..errors import (
    ExecutionTimeoutError,
    InvalidTransitionError,
    QuoteError,
    QuoteExpiredError,
)
from ..recovery import RetryStrategy
from .models import (
    Call,
    ChainExecution,
    ChainOperation,
    ExecutionHandle,
    ExecutionReport,
    Quote,
    SignedExecution,
    SubmissionState,
    Supertransaction,
)
from .signature import validate_execution_mode


class RelayClient(Protocol):
    """What the state machine needs from the relay."""

    async def get_quote(self, supertransaction: Supertransaction) -> Quote:
        ...

    async def execute(self, signed: SignedExecution) -> ExecutionHandle:
        ...

    async def status(self, handle: ExecutionHandle) -> List[ChainExecution]:
        ...


@dataclass
class StateTransition:
    from_state: SubmissionState
    to_state: SubmissionState
    at: datetime
    reason: Optional[str] = None


@dataclass
class SubmissionAttempt:
    """Mutable progress record for one supertransaction."""

    supertransaction: Supertransaction
    state: SubmissionState = SubmissionState.BUILT
    quote: Optional[Quote] = None
    signed: Optional[SignedExecution] = field(default=None, repr=False)
    handle: Optional[ExecutionHandle] = None
    report: Optional[ExecutionReport] = None
    error: Optional[str] = None
    history: List[StateTransition] = field(default_factory=list)

    TRANSITIONS = {
        SubmissionState.BUILT: {SubmissionState.QUOTED},
        SubmissionState.QUOTED: {
            SubmissionState.SIGNED,
            SubmissionState.BUILT,   # Quote expired before signing
            SubmissionState.FAILED,  # Aborted
        },
        SubmissionState.SIGNED: {
            SubmissionState.SUBMITTED,
            SubmissionState.BUILT,   # Quote expired at the relay
            SubmissionState.FAILED,  # Aborted or rejected
        },
        SubmissionState.SUBMITTED: {
            SubmissionState.CONFIRMED,
            SubmissionState.FAILED,
        },
        SubmissionState.CONFIRMED: set(),
        SubmissionState.FAILED: set(),
    }

    @property
    def is_terminal(self) -> bool:
        return self.state in (SubmissionState.CONFIRMED, SubmissionState.FAILED)

    def can_transition_to(self, to_state: SubmissionState) -> bool:
        allowed: Set[SubmissionState] = self.TRANSITIONS.get(self.state, set())
        return to_state in allowed

    def transition(self, to_state: SubmissionState, reason: Optional[str] = None) -> None:
        if not self.can_transition_to(to_state):
            raise InvalidTransitionError(self.state, to_state)
        self.history.append(
            StateTransition(
                from_state=self.state,
                to_state=to_state,
                at=datetime.now(timezone.utc),
                reason=reason,
            )
        )
        self.state = to_state

    def require(self, state: SubmissionState, action: str) -> None:
        if self.state is not state:
            raise InvalidTransitionError(
                self.state,
                state,
                f"Cannot {action} while {self.state.value}; expected {state.value}",
            )

    def discard_authorization(self) -> None:
        """Forget the quote and any signature over it."""
        self.quote = None
        self.signed = None


def _call_key(call: Call) -> Tuple[str, str, int]:
    return (call.to.lower(), call.data.lower(), call.value)


def _contains_run(haystack: Sequence[Tuple], needle: Sequence[Tuple]) -> bool:
    if not needle:
        return True
    for start in range(len(haystack) - len(needle) + 1):
        if list(haystack[start:start + len(needle)]) == list(needle):
            return True
    return False


def verify_quote_binding(supertransaction: Supertransaction, quote: Quote) -> None:
    """
    Check that what the relay priced is what was asked for.

    Every chain must carry exactly the submitted calls, in order. The
    fee chain may additionally carry the relay's fee-payment call around
    them. Quotes that do not echo operations are accepted as-is.
    """
    echoed = quote.echoed_operations
    if echoed is None:
        return

    echoed_by_chain: Dict[int, ChainOperation] = {op.chain_id: op for op in echoed}
    if len(echoed_by_chain) != len(echoed) or set(echoed_by_chain) != set(supertransaction.chain_ids):
        raise QuoteError(
            "Relay quoted a different chain set",
            requested=supertransaction.chain_ids,
            quoted=[op.chain_id for op in echoed],
        )

    fee_chain = supertransaction.fee_token.chain_id
    for op in supertransaction.operations:
        wanted = [_call_key(c) for c in op.calls]
        got = [_call_key(c) for c in echoed_by_chain[op.chain_id].calls]
        matches = _contains_run(got, wanted) if op.chain_id == fee_chain else got == wanted
        if not matches:
            raise QuoteError(
                f"Relay quoted different calls on chain {op.chain_id}",
                chain_id=op.chain_id,
            )


class QuoteExecutionClient:
    """
    Drives SubmissionAttempts through the relay.

    Usage:
        client = QuoteExecutionClient(MeeClient(), signer)
        attempt = client.begin(supertransaction)
        await client.request_quote(attempt)
        await client.sign(attempt)
        handle = await client.submit(attempt)
        report = await client.wait_for_execution(attempt)
    """

    def __init__(
        self,
        relay: RelayClient,
        signer: Signer,
        *,
        execution_mode: Optional[str] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        poll_interval_s: Optional[float] = None,
        poll_timeout_s: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._relay = relay
        self._signer = signer
        self.execution_mode = validate_execution_mode(execution_mode or settings.execution_mode)
        self._retry = retry_strategy or RetryStrategy()
        self.poll_interval_s = poll_interval_s if poll_interval_s is not None else settings.status_poll_interval_seconds
        self.poll_timeout_s = poll_timeout_s if poll_timeout_s is not None else settings.status_poll_timeout_seconds
        self.logger = logger or logging.getLogger(__name__)

    def begin(self, supertransaction: Supertransaction) -> SubmissionAttempt:
        return SubmissionAttempt(supertransaction=supertransaction)

    async def request_quote(self, attempt: SubmissionAttempt) -> Quote:
        """BUILT -> QUOTED. On any error the attempt stays in BUILT."""
        attempt.require(SubmissionState.BUILT, "request a quote")

        quote = await self._relay.get_quote(attempt.supertransaction)
        if quote.supertransaction != attempt.supertransaction:
            raise QuoteError("Relay returned a quote for a different supertransaction")
        verify_quote_binding(attempt.supertransaction, quote)

        attempt.quote = quote
        attempt.transition(SubmissionState.QUOTED)
        self.logger.info(
            "Quoted supertransaction on chains %s: hash=%s fee=%s",
            attempt.supertransaction.chain_ids,
            quote.hash_to_sign,
            quote.fee.amount,
        )
        return quote

    async def sign(self, attempt: SubmissionAttempt) -> SignedExecution:
        """QUOTED -> SIGNED. The quote digest is signed exactly once."""
        attempt.require(SubmissionState.QUOTED, "sign")
        quote = attempt.quote
        if quote is None:
            raise InvalidTransitionError(attempt.state, SubmissionState.SIGNED, "Quoted attempt has no quote")

        if quote.expires_at is not None and quote.expires_at <= datetime.now(timezone.utc):
            attempt.discard_authorization()
            attempt.transition(SubmissionState.BUILT, reason="quote expired before signing")
            raise QuoteExpiredError(f"Quote {quote.hash_to_sign} expired at {quote.expires_at.isoformat()}")

        signature = await self._signer.sign(quote.digest)
        attempt.signed = SignedExecution(
            quote=quote,
            signature=signature,
            execution_mode=self.execution_mode,
        )
        attempt.transition(SubmissionState.SIGNED)
        self.logger.info("Signed supertransaction %s", quote.hash_to_sign)
        return attempt.signed

    async def submit(self, attempt: SubmissionAttempt) -> ExecutionHandle:
        """SIGNED -> SUBMITTED, resending the same SignedExecution on network errors."""
        attempt.require(SubmissionState.SIGNED, "submit")
        signed = attempt.signed
        if signed is None:
            raise InvalidTransitionError(attempt.state, SubmissionState.SUBMITTED, "Signed attempt has no signature")

        try:
            handle = await self._retry.execute(
                lambda: self._relay.execute(signed),
                "execute supertransaction",
            )
        except QuoteExpiredError:
            attempt.discard_authorization()
            attempt.transition(SubmissionState.BUILT, reason="quote expired at relay")
            raise
        except QuoteError as exc:
            attempt.discard_authorization()
            attempt.error = str(exc)
            attempt.transition(SubmissionState.FAILED, reason="relay rejected execution")
            raise

        attempt.handle = handle
        attempt.transition(SubmissionState.SUBMITTED)
        # The relay holds the authorization now; drop our copy.
        attempt.signed = None
        return handle

    def abort(self, attempt: SubmissionAttempt, reason: str = "aborted") -> None:
        """Explicitly abandon a quoted or signed attempt, wiping its signature."""
        if attempt.state not in (SubmissionState.QUOTED, SubmissionState.SIGNED):
            raise InvalidTransitionError(attempt.state, SubmissionState.FAILED, f"Cannot abort while {attempt.state.value}")
        attempt.discard_authorization()
        attempt.error = reason
        attempt.transition(SubmissionState.FAILED, reason=reason)

    async def poll_status(self, attempt: SubmissionAttempt) -> ExecutionReport:
        """One status read. Moves the attempt to its terminal state when all chains are."""
        attempt.require(SubmissionState.SUBMITTED, "poll status")
        handle = attempt.handle
        if handle is None:
            raise InvalidTransitionError(attempt.state, SubmissionState.CONFIRMED, "Submitted attempt has no handle")

        report = await self.read_status(handle, attempt.supertransaction.chain_ids)
        attempt.report = report

        if report.is_terminal:
            final = report.state
            if final is SubmissionState.FAILED:
                attempt.error = f"Failed on chain(s) {report.failed_chains}"
                self.logger.warning(
                    "Supertransaction %s finished with failures: %s",
                    handle.aggregate_hash,
                    report.summary(),
                )
            else:
                self.logger.info("Supertransaction %s confirmed on all chains", handle.aggregate_hash)
            attempt.transition(final)
        return report

    async def read_status(
        self,
        handle: ExecutionHandle,
        expected_chains: Optional[Sequence[int]] = None,
    ) -> ExecutionReport:
        """
        One status read for a handle, independent of any attempt.

        Chains in ``expected_chains`` missing from the relay response stay
        pending, so the report is not terminal until each one has an outcome.
        """
        chains = await self._retry.execute(lambda: self._relay.status(handle), "execution status")
        return ExecutionReport.from_chains(handle.aggregate_hash, chains, expected_chains)

    async def wait_for_execution(self, attempt: SubmissionAttempt) -> ExecutionReport:
        """
        Poll until every chain is terminal.

        Raises:
            ExecutionTimeoutError: still pending after ``poll_timeout_s``;
                the attempt stays SUBMITTED and can be polled again.
        """
        return await self._poll_until_terminal(lambda: self.poll_status(attempt))

    async def wait_for_handle(
        self,
        handle: ExecutionHandle,
        expected_chains: Optional[Sequence[int]] = None,
    ) -> ExecutionReport:
        return await self._poll_until_terminal(lambda: self.read_status(handle, expected_chains))

    async def _poll_until_terminal(
        self,
        read: Callable[[], Awaitable[ExecutionReport]],
    ) -> ExecutionReport:
        start_time = time.monotonic()
        while True:
            report = await read()
            if report.is_terminal:
                return report

            if time.monotonic() - start_time >= self.poll_timeout_s:
                raise ExecutionTimeoutError(report.aggregate_hash, self.poll_timeout_s)

            await asyncio.sleep(self.poll_interval_s)
