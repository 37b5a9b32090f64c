"""Static registry of the chains a multichain account is deployed on."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from ..errors import ConfigurationError, UnsupportedChain


@dataclass(frozen=True)
class ChainDescriptor:
    """One participating chain. Identified uniquely by ``chain_id``."""

    chain_id: int
    rpc_endpoint: str
    native_decimals: int = 18
    name: str = ""
    native_symbol: str = "ETH"

    @property
    def display_name(self) -> str:
        return self.name or f"Chain {self.chain_id}"


class ChainRegistry:
    """Immutable lookup of ChainDescriptors keyed by chain id.

    Built once at startup from configuration data; any number of chains
    can be registered, so chain pairs are data rather than code paths.

    Usage:
        registry = ChainRegistry([BASE_SEPOLIA, ARBITRUM_SEPOLIA])
        registry.get(84532).rpc_endpoint
        registry.chain_name(421614)   # "Arbitrum Sepolia"
    """

    def __init__(
        self,
        chains: Iterable[ChainDescriptor],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._chains: Dict[int, ChainDescriptor] = {}

        for chain in chains:
            if chain.chain_id in self._chains:
                raise ConfigurationError(
                    f"Chain {chain.chain_id} registered twice",
                    chain_id=chain.chain_id,
                )
            if not chain.rpc_endpoint:
                raise ConfigurationError(
                    f"Chain {chain.chain_id} has no RPC endpoint",
                    chain_id=chain.chain_id,
                )
            self._chains[chain.chain_id] = chain

        if not self._chains:
            raise ConfigurationError("Chain registry needs at least one chain")

        self._logger.debug("Chain registry built: %s", list(self._chains))

    @classmethod
    def with_overrides(
        cls,
        chains: Iterable[ChainDescriptor],
        rpc_overrides: Mapping[int, str],
    ) -> "ChainRegistry":
        """Build a registry, swapping in configured RPC endpoints where given."""
        resolved: List[ChainDescriptor] = []
        for chain in chains:
            override = rpc_overrides.get(chain.chain_id)
            if override:
                chain = ChainDescriptor(
                    chain_id=chain.chain_id,
                    rpc_endpoint=override,
                    native_decimals=chain.native_decimals,
                    name=chain.name,
                    native_symbol=chain.native_symbol,
                )
            resolved.append(chain)
        return cls(resolved)

    def get(self, chain_id: int) -> ChainDescriptor:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise UnsupportedChain(chain_id, f"Chain {chain_id} is not in the registry")
        return chain

    def chain_name(self, chain_id: Optional[int]) -> str:
        """Human-readable chain name, tolerant of unknown ids."""
        if chain_id is None:
            return "Unknown Chain"
        chain = self._chains.get(chain_id)
        if chain is None:
            return f"Chain ID: {chain_id}"
        return chain.display_name

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._chains

    def __iter__(self) -> Iterator[ChainDescriptor]:
        return iter(self._chains.values())

    def __len__(self) -> int:
        return len(self._chains)

    @property
    def chain_ids(self) -> List[int]:
        return list(self._chains)
