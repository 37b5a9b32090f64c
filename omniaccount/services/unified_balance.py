"""
Unified Balance Service.

Folds one token's balance on every requested chain into a single
snapshot for a multichain account.

Features:
- One concurrent query per chain, joined with an all-or-nothing barrier
- Native currency balances alongside the token balance
- Integer arithmetic only; decimals come from the token mapping
- Per-chain entries keep the caller's chain order
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from ..core.account.multichain import MultichainAccount
from ..core.chains.registry import ChainRegistry
from ..core.errors import BalanceAggregationError, ConfigurationError, ValidationError
from ..core.tokens.mapping import TokenMapping
from ..core.tokens.units import format_units
from ..providers.chain_rpc import ChainRpcClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnifiedBalance:
    """One token across chains. ``total`` is always the exact sum of ``per_chain``."""

    token: str
    decimals: int
    per_chain: Mapping[int, int]
    total: int
    timestamp: int = 0

    @property
    def formatted(self) -> str:
        return format_units(self.total, self.decimals)

    def formatted_on(self, chain_id: int) -> str:
        return format_units(self.per_chain[chain_id], self.decimals)


@dataclass(frozen=True)
class NativeBalance:
    chain_id: int
    address: str
    balance: int
    decimals: int
    symbol: str = "ETH"

    @property
    def formatted(self) -> str:
        return format_units(self.balance, self.decimals)


@dataclass(frozen=True)
class AccountSnapshot:
    """Everything a refresh returns: addresses, native balances and one token."""

    owner: str
    addresses: Mapping[int, str]
    native: Mapping[int, NativeBalance]
    token: Optional[UnifiedBalance] = None
    timestamp: int = field(default_factory=lambda: int(time.time()))


class BalanceAggregator:
    """
    Usage:
        aggregator = BalanceAggregator(rpc_clients, registry)
        usdc = await aggregator.unified_balance(account, token_table.get("USDC"), [84532, 421614])
        usdc.total, usdc.formatted
    """

    def __init__(
        self,
        rpc_clients: Mapping[int, ChainRpcClient],
        registry: ChainRegistry,
    ) -> None:
        self._rpc = rpc_clients
        self._registry = registry

    async def unified_balance(
        self,
        account: MultichainAccount,
        token_mapping: TokenMapping,
        chains: Sequence[int],
    ) -> UnifiedBalance:
        """
        Token balance on every chain in ``chains`` plus the exact total.

        Raises:
            UnknownMapping: token not deployed on one of the chains
            ConfigurationError: decimals unresolved, or no RPC client for a chain
            BalanceAggregationError: any chain query failed
        """
        chain_ids = self._check_chains(chains)
        if token_mapping.decimals is None:
            raise ConfigurationError(
                f"Decimals for {token_mapping.symbol} must be resolved before aggregation",
            )
        targets = {chain_id: token_mapping.on(chain_id) for chain_id in chain_ids}
        addresses = account.addresses_for(chain_ids)

        def query(chain_id: int) -> Awaitable[int]:
            return self._rpc[chain_id].erc20_balance_of(targets[chain_id], addresses[chain_id])

        amounts = await self._fan_out(chain_ids, query, f"{token_mapping.symbol} balance")

        per_chain = MappingProxyType(dict(zip(chain_ids, amounts)))
        return UnifiedBalance(
            token=token_mapping.symbol,
            decimals=token_mapping.decimals,
            per_chain=per_chain,
            total=sum(amounts),
            timestamp=int(time.time()),
        )

    async def native_balances(
        self,
        account: MultichainAccount,
        chains: Sequence[int],
    ) -> Mapping[int, NativeBalance]:
        chain_ids = self._check_chains(chains)
        addresses = account.addresses_for(chain_ids)

        def query(chain_id: int) -> Awaitable[int]:
            return self._rpc[chain_id].get_native_balance(addresses[chain_id])

        amounts = await self._fan_out(chain_ids, query, "native balance")

        result: Dict[int, NativeBalance] = {}
        for chain_id, amount in zip(chain_ids, amounts):
            chain = self._registry.get(chain_id)
            result[chain_id] = NativeBalance(
                chain_id=chain_id,
                address=addresses[chain_id],
                balance=amount,
                decimals=chain.native_decimals,
                symbol=chain.native_symbol,
            )
        return MappingProxyType(result)

    async def snapshot(
        self,
        account: MultichainAccount,
        chains: Sequence[int],
        token_mapping: Optional[TokenMapping] = None,
    ) -> AccountSnapshot:
        """Native and token balances together; fails as a whole if either does."""
        chain_ids = self._check_chains(chains)
        addresses = account.addresses_for(chain_ids)

        if token_mapping is None:
            native = await self.native_balances(account, chain_ids)
            token = None
        else:
            native, token = await asyncio.gather(
                self.native_balances(account, chain_ids),
                self.unified_balance(account, token_mapping, chain_ids),
            )

        return AccountSnapshot(
            owner=account.owner,
            addresses=MappingProxyType(dict(addresses)),
            native=native,
            token=token,
        )

    def _check_chains(self, chains: Sequence[int]) -> List[int]:
        chain_ids = list(chains)
        if not chain_ids:
            raise ValidationError("At least one chain is required")
        if len(set(chain_ids)) != len(chain_ids):
            raise ValidationError(f"Duplicate chains in request: {chain_ids}")
        for chain_id in chain_ids:
            self._registry.get(chain_id)
            if chain_id not in self._rpc:
                raise ConfigurationError(f"No RPC client for chain {chain_id}", chain_id=chain_id)
        return chain_ids

    async def _fan_out(
        self,
        chain_ids: List[int],
        query: Callable[[int], Awaitable[int]],
        what: str,
    ) -> List[int]:
        # Each task writes only its own slot; gather is the single join point.
        slots: List[Any] = [None] * len(chain_ids)

        async def run(index: int, chain_id: int) -> None:
            slots[index] = await query(chain_id)

        outcomes = await asyncio.gather(
            *(run(i, chain_id) for i, chain_id in enumerate(chain_ids)),
            return_exceptions=True,
        )

        failures: Dict[int, Exception] = {}
        for chain_id, outcome in zip(chain_ids, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                failures[chain_id] = outcome

        if failures:
            logger.error("%s query failed on chains %s", what, list(failures))
            raise BalanceAggregationError(failures)

        logger.debug("%s fetched on chains %s", what, chain_ids)
        return slots
