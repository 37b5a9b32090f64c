"""
Multichain Orchestrator

Top-level entry point for one signer's smart account. Owns the account,
the token table, the per-chain RPC clients and the relay client, and
exposes three flows:

- refresh_view: addresses plus native and token balances across chains
- submit_transfer: build, quote, sign once, and submit a supertransaction
- wait_for_completion: poll the relay until every chain reports a result

Nothing here signs more than once per quote, and validation always runs
before the first network call.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ..config import settings
from ..core.account.derivation import FactoryConfig
from ..core.account.multichain import MultichainAccount, build_account
from ..core.account.signer import Signer
from ..core.chains.constants import PRESET_CHAINS, PRESET_TOKENS
from ..core.chains.registry import ChainRegistry
from ..core.errors import (
    ConfigurationError,
    FeeChainNotIncluded,
    InvalidAmount,
    InvalidTransitionError,
    QuoteExpiredError,
    RecoverableError,
    UnrecoverableError,
    ValidationError,
)
from ..core.execution.assembler import assemble
from ..core.execution.models import (
    ExecutionHandle,
    ExecutionReport,
    FeeToken,
    SubmissionState,
    Supertransaction,
)
from ..core.execution.operation_builder import CallIntent, OperationBuilder
from ..core.execution.quote_client import QuoteExecutionClient, RelayClient, SubmissionAttempt
from ..core.recovery import RetryStrategy
from ..core.tokens.mapping import TokenMappingTable, preset_table
from ..core.tokens.units import parse_units
from ..providers.base import Provider
from ..providers.chain_rpc import ChainRpcClient, build_rpc_clients
from ..providers.mee import MeeClient
from .unified_balance import AccountSnapshot, BalanceAggregator

logger = logging.getLogger(__name__)

Amount = Union[int, str, Decimal]


class Orchestrator:
    """
    Usage:
        orchestrator = Orchestrator.from_settings(LocalSigner.from_key(key))
        view = await orchestrator.refresh_view(token="USDC")
        handle = await orchestrator.submit_transfer("USDC", {84532: "0.3", 421614: "0.1"}, fee_chain=84532)
        report = await orchestrator.wait_for_completion(handle)
    """

    def __init__(
        self,
        account: MultichainAccount,
        registry: ChainRegistry,
        token_table: TokenMappingTable,
        rpc_clients: Mapping[int, ChainRpcClient],
        relay: RelayClient,
        *,
        retry_strategy: Optional[RetryStrategy] = None,
        builder: Optional[OperationBuilder] = None,
        execution_mode: Optional[str] = None,
        poll_interval_s: Optional[float] = None,
        poll_timeout_s: Optional[float] = None,
        max_requotes: Optional[int] = None,
    ) -> None:
        self.account = account
        self.registry = registry
        self.token_table = token_table
        self.rpc_clients = rpc_clients
        self.relay = relay
        self._retry = retry_strategy or RetryStrategy()
        self.builder = builder or OperationBuilder(token_table)
        self.aggregator = BalanceAggregator(rpc_clients, registry)
        self.client = QuoteExecutionClient(
            relay,
            account.signer,
            execution_mode=execution_mode,
            retry_strategy=self._retry,
            poll_interval_s=poll_interval_s,
            poll_timeout_s=poll_timeout_s,
        )
        self.max_requotes = max_requotes if max_requotes is not None else settings.max_retries
        self.last_view: Optional[AccountSnapshot] = None
        self._attempts: Dict[str, SubmissionAttempt] = {}

    @classmethod
    def from_settings(
        cls,
        signer: Signer,
        *,
        factory_config: Optional[FactoryConfig] = None,
        relay: Optional[RelayClient] = None,
    ) -> "Orchestrator":
        """Wire everything from the preset chains/tokens and environment settings."""
        registry = ChainRegistry.with_overrides(PRESET_CHAINS.values(), settings.chain_rpc_overrides)
        token_table = preset_table(registry, PRESET_TOKENS)
        account = build_account(signer, registry, factory_config)
        return cls(
            account,
            registry,
            token_table,
            build_rpc_clients(registry),
            relay or MeeClient(),
        )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh_view(
        self,
        chains: Optional[Sequence[int]] = None,
        token: Optional[str] = None,
    ) -> AccountSnapshot:
        """
        Addresses and balances for ``chains``.

        Defaults to every chain the token is mapped on, or every registered
        chain when no token is given. A failure on any chain fails the
        whole refresh; ``last_view`` keeps the previous snapshot.
        """
        mapping = None
        if token is not None:
            chain_ids = list(chains) if chains is not None else sorted(self.token_table.all_chains(token))
            await self._retry.execute(
                lambda: self.token_table.resolve_decimals(token, self.rpc_clients),
                f"resolve {token} decimals",
            )
            mapping = self.token_table.get(token)
        else:
            chain_ids = list(chains) if chains is not None else self.registry.chain_ids

        snapshot = await self._retry.execute(
            lambda: self.aggregator.snapshot(self.account, chain_ids, mapping),
            "refresh view",
        )
        self.last_view = snapshot
        if snapshot.token is not None:
            logger.info(
                "Refreshed %s on chains %s: total=%s",
                snapshot.token.token,
                chain_ids,
                snapshot.token.formatted,
            )
        return snapshot

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit_transfer(
        self,
        token: str,
        amount_per_chain: Mapping[int, Amount],
        recipient: Optional[str] = None,
        fee_chain: Optional[int] = None,
    ) -> ExecutionHandle:
        """
        Transfer ``token`` on every chain in ``amount_per_chain`` as one
        supertransaction, paying the relay fee in the same token on
        ``fee_chain``.

        Amounts may be raw integers or decimal strings ("0.3"). Without a
        ``recipient`` each chain's transfer goes back to the account itself.

        Raises:
            ValidationError / InvalidAmount / FeeChainNotIncluded: before any network call
            UnsupportedChain / UnknownMapping: chain or token not configured
            QuoteError: relay refused to price; nothing was signed
        """
        supertransaction = await self.build_transfer(token, amount_per_chain, recipient, fee_chain)
        attempt = await self.execute(supertransaction)
        if attempt.handle is None:
            raise InvalidTransitionError(attempt.state, SubmissionState.SUBMITTED, "Submission returned no handle")
        return attempt.handle

    async def build_transfer(
        self,
        token: str,
        amount_per_chain: Mapping[int, Amount],
        recipient: Optional[str] = None,
        fee_chain: Optional[int] = None,
    ) -> Supertransaction:
        chain_ids = list(amount_per_chain)
        if not chain_ids:
            raise ValidationError("Transfer needs at least one chain")
        fee_chain_id = fee_chain if fee_chain is not None else chain_ids[0]
        if fee_chain_id not in amount_per_chain:
            raise FeeChainNotIncluded(fee_chain_id, chain_ids)

        for chain_id in chain_ids:
            self.registry.get(chain_id)
            self.token_table.address_for(token, chain_id)
            self._check_amount(amount_per_chain[chain_id], chain_id)

        if any(not isinstance(a, int) for a in amount_per_chain.values()):
            decimals = await self._retry.execute(
                lambda: self.token_table.resolve_decimals(token, self.rpc_clients),
                f"resolve {token} decimals",
            )
        else:
            decimals = None

        operations = []
        for chain_id in chain_ids:
            amount = self._to_raw(amount_per_chain[chain_id], decimals, chain_id)
            sender = self.account.address_on(chain_id)
            intent = CallIntent(recipient=recipient or sender, amount=amount, token=token)
            operations.append(self.builder.build_operation(chain_id, [intent], sender=sender))

        fee_token = FeeToken(
            chain_id=fee_chain_id,
            address=self.token_table.address_for(token, fee_chain_id),
        )
        return assemble(operations, fee_token)

    async def execute(self, supertransaction: Supertransaction) -> SubmissionAttempt:
        """
        Quote, sign and submit. An expired quote is re-quoted up to
        ``max_requotes`` times; the content being priced never changes.
        """
        attempt = self.client.begin(supertransaction)
        requotes = 0
        while True:
            await self._retry.execute(
                lambda: self.client.request_quote(attempt),
                "quote supertransaction",
            )
            try:
                await self.client.sign(attempt)
                handle = await self.client.submit(attempt)
            except QuoteExpiredError:
                requotes += 1
                if requotes > self.max_requotes:
                    logger.error("Quote kept expiring after %d re-quotes", self.max_requotes)
                    raise
                logger.warning("Quote expired; re-quoting (%d/%d)", requotes, self.max_requotes)
                continue
            except asyncio.CancelledError:
                if attempt.state in (SubmissionState.QUOTED, SubmissionState.SIGNED):
                    self.client.abort(attempt, "cancelled before submission")
                raise
            except (RecoverableError, UnrecoverableError) as exc:
                if attempt.state in (SubmissionState.QUOTED, SubmissionState.SIGNED):
                    # The POST may have landed; status is still readable by hash.
                    aggregate_hash = attempt.quote.hash_to_sign if attempt.quote else None
                    self.client.abort(attempt, f"submission failed: {exc}")
                    logger.error(
                        "Submission of %s failed; signature discarded: %s",
                        aggregate_hash,
                        exc,
                    )
                raise
            break

        self._attempts[handle.aggregate_hash] = attempt
        logger.info(
            "Submitted supertransaction %s on chains %s",
            handle.aggregate_hash,
            supertransaction.chain_ids,
        )
        return attempt

    # ------------------------------------------------------------------
    # Track
    # ------------------------------------------------------------------

    def attempt_for(self, handle: ExecutionHandle) -> Optional[SubmissionAttempt]:
        return self._attempts.get(handle.aggregate_hash)

    async def execution_status(self, handle: ExecutionHandle) -> ExecutionReport:
        """Single status read."""
        attempt = self.attempt_for(handle)
        if attempt is not None and attempt.state is SubmissionState.SUBMITTED:
            return await self.client.poll_status(attempt)
        return await self.client.read_status(handle)

    async def wait_for_completion(self, handle: ExecutionHandle) -> ExecutionReport:
        """
        Poll until every chain is confirmed or failed.

        A mixed outcome is returned, not raised; call
        ``report.raise_for_status()`` to turn it into PartialExecutionFailure.
        """
        attempt = self.attempt_for(handle)
        if attempt is None:
            return await self.client.wait_for_handle(handle)
        if attempt.state is SubmissionState.SUBMITTED:
            return await self.client.wait_for_execution(attempt)
        if attempt.report is not None:
            return attempt.report
        return await self.client.wait_for_handle(handle, attempt.supertransaction.chain_ids)

    async def close(self) -> None:
        providers: List[Provider] = list(self.rpc_clients.values())
        if isinstance(self.relay, Provider):
            providers.append(self.relay)
        for provider in providers:
            await provider.close()

    # ------------------------------------------------------------------

    @staticmethod
    def _check_amount(amount: Amount, chain_id: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, (int, str, Decimal)):
            raise InvalidAmount(amount, chain_id=chain_id)
        if isinstance(amount, int) and amount <= 0:
            raise InvalidAmount(amount, chain_id=chain_id)
        if isinstance(amount, (str, Decimal)):
            # Format check only; the scale check needs decimals.
            try:
                value = Decimal(str(amount).strip())
            except ArithmeticError as exc:
                raise InvalidAmount(amount, chain_id=chain_id) from exc
            if not value.is_finite() or value <= 0:
                raise InvalidAmount(amount, chain_id=chain_id)

    @staticmethod
    def _to_raw(amount: Amount, decimals: Optional[int], chain_id: int) -> int:
        if isinstance(amount, int):
            return amount
        if decimals is None:
            raise ConfigurationError(f"Decimals unresolved for amount {amount!r}", chain_id=chain_id)
        raw = parse_units(amount, decimals)
        if raw <= 0:
            raise InvalidAmount(amount, chain_id=chain_id)
        return raw
