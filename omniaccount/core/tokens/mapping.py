"""
Logical token -> per-chain contract address table.

Mappings are validated when registered: duplicate chain entries, empty
chain sets, entries outside the declared chain set and chains missing
from the registry all fail immediately instead of being overwritten or
skipped at request time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple

from eth_utils import is_address, to_checksum_address

from ..chains.registry import ChainRegistry
from ..errors import ConfigurationError, UnknownMapping

if TYPE_CHECKING:
    from ...providers.chain_rpc import ChainRpcClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenMapping:
    """One logical token's deployments. ``decimals`` is fixed per token."""

    symbol: str
    addresses: Mapping[int, str]
    decimals: Optional[int] = None

    def on(self, chain_id: int) -> str:
        address = self.addresses.get(chain_id)
        if address is None:
            raise UnknownMapping(self.symbol, chain_id)
        return address

    @property
    def chain_ids(self) -> FrozenSet[int]:
        return frozenset(self.addresses)


class TokenMappingTable:
    """
    Registry of TokenMappings keyed by upper-cased symbol.

    Usage:
        table = TokenMappingTable(registry)
        table.register("USDC", [(84532, "0x036C..."), (421614, "0xf3c3...")], decimals=6)
        table.address_for("USDC", 84532)
        table.all_chains("USDC")
    """

    def __init__(self, registry: ChainRegistry) -> None:
        self._registry = registry
        self._mappings: Dict[str, TokenMapping] = {}

    def register(
        self,
        token: str,
        entries: Iterable[Tuple[int, str]],
        *,
        chains: Optional[Iterable[int]] = None,
        decimals: Optional[int] = None,
    ) -> TokenMapping:
        """Register a token's deployments.

        Args:
            token: Logical token symbol, e.g. "USDC"
            entries: (chain_id, contract_address) pairs
            chains: Declared chain set the entries must cover exactly
                (defaults to the chains present in ``entries``)
            decimals: Fixed decimal precision, if known up front
        """
        key = token.upper()
        if key in self._mappings:
            raise ConfigurationError(f"Token {key} is already registered")

        addresses: Dict[int, str] = {}
        for chain_id, address in entries:
            if chain_id in addresses:
                raise ConfigurationError(
                    f"Duplicate mapping for {key} on chain {chain_id}",
                    chain_id=chain_id,
                    token=key,
                )
            if chain_id not in self._registry:
                raise ConfigurationError(
                    f"{key} mapped on chain {chain_id}, which is not in the chain registry",
                    chain_id=chain_id,
                    token=key,
                )
            if not is_address(address):
                raise ConfigurationError(
                    f"Invalid {key} contract address on chain {chain_id}: {address!r}",
                    chain_id=chain_id,
                    token=key,
                )
            addresses[chain_id] = to_checksum_address(address)

        declared = set(chains) if chains is not None else set(addresses)
        if not declared:
            raise ConfigurationError(f"Token {key} must be mapped on at least one chain", token=key)
        if declared != set(addresses):
            missing = sorted(declared - set(addresses))
            extra = sorted(set(addresses) - declared)
            raise ConfigurationError(
                f"Mapping for {key} does not match its declared chains (missing={missing}, extra={extra})",
                token=key,
            )

        if decimals is not None and decimals < 0:
            raise ConfigurationError(f"Decimals for {key} must be non-negative", token=key)

        mapping = TokenMapping(symbol=key, addresses=MappingProxyType(addresses), decimals=decimals)
        self._mappings[key] = mapping
        return mapping

    def get(self, token: str) -> TokenMapping:
        mapping = self._mappings.get(token.upper())
        if mapping is None:
            raise UnknownMapping(token.upper())
        return mapping

    def address_for(self, token: str, chain_id: int) -> str:
        return self.get(token).on(chain_id)

    def all_chains(self, token: str) -> FrozenSet[int]:
        return self.get(token).chain_ids

    def decimals_for(self, token: str) -> int:
        mapping = self.get(token)
        if mapping.decimals is None:
            raise ConfigurationError(
                f"Decimals for {mapping.symbol} are unresolved; call resolve_decimals first",
                token=mapping.symbol,
            )
        return mapping.decimals

    async def resolve_decimals(
        self,
        token: str,
        rpc_clients: Mapping[int, "ChainRpcClient"],
    ) -> int:
        """Read ``decimals()`` once and cache it with the mapping.

        Already-known precision is returned without a network call.
        """
        mapping = self.get(token)
        if mapping.decimals is not None:
            return mapping.decimals

        chain_id = next((c for c in sorted(mapping.chain_ids) if c in rpc_clients), None)
        if chain_id is None:
            raise ConfigurationError(f"No RPC client available to read decimals for {mapping.symbol}")

        decimals = await rpc_clients[chain_id].erc20_decimals(mapping.on(chain_id))
        logger.info("Resolved %s decimals=%d from chain %s", mapping.symbol, decimals, chain_id)

        resolved = TokenMapping(symbol=mapping.symbol, addresses=mapping.addresses, decimals=decimals)
        self._mappings[mapping.symbol] = resolved
        return decimals

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and token.upper() in self._mappings

    @property
    def symbols(self) -> Sequence[str]:
        return list(self._mappings)


def preset_table(registry: ChainRegistry, presets: Mapping[str, Mapping[str, object]]) -> TokenMappingTable:
    """Table over the preset tokens, limited to chains present in ``registry``."""
    table = TokenMappingTable(registry)
    for symbol, spec in presets.items():
        addresses: Mapping[int, str] = spec["addresses"]  # type: ignore[assignment]
        entries = [(chain_id, addr) for chain_id, addr in addresses.items() if chain_id in registry]
        if entries:
            table.register(symbol, entries, decimals=spec.get("decimals"))  # type: ignore[arg-type]
    return table
