"""A single signer's smart account across every registered chain."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional

from ...config import settings
from ..chains.registry import ChainRegistry
from ..errors import ConfigurationError
from .derivation import FactoryConfig, derive_address
from .signer import Signer

logger = logging.getLogger(__name__)


class MultichainAccount:
    """
    Holds the signer reference and caches per-chain account addresses.

    Addresses are derived on first access and kept for the account's
    lifetime. ``use_factory_config`` drops the cache only when the factory
    configuration actually changed.

    Usage:
        account = MultichainAccount(signer, registry, factory_config)
        account.address_on(84532)
        account.addresses_for([84532, 421614])
    """

    def __init__(
        self,
        signer: Signer,
        registry: ChainRegistry,
        factory_config: FactoryConfig,
    ) -> None:
        self._signer = signer
        self._registry = registry
        self._factory_config = factory_config
        self._addresses: Dict[int, str] = {}

    @property
    def signer(self) -> Signer:
        return self._signer

    @property
    def owner(self) -> str:
        return self._signer.address

    @property
    def factory_config(self) -> FactoryConfig:
        return self._factory_config

    def address_on(self, chain_id: int) -> str:
        address = self._addresses.get(chain_id)
        if address is None:
            chain = self._registry.get(chain_id)
            address = derive_address(self.owner, chain, self._factory_config)
            self._addresses[chain_id] = address
            logger.debug("Derived account %s on chain %s", address, chain_id)
        return address

    def addresses_for(self, chain_ids: Iterable[int]) -> Dict[int, str]:
        return {chain_id: self.address_on(chain_id) for chain_id in chain_ids}

    @property
    def per_chain_address(self) -> Mapping[int, str]:
        """Addresses derived so far (read-only view)."""
        return dict(self._addresses)

    def use_factory_config(self, factory_config: FactoryConfig) -> bool:
        """Swap the factory configuration. Returns True if the cache was dropped."""
        if factory_config.fingerprint() == self._factory_config.fingerprint():
            return False
        logger.info("Factory configuration changed; re-deriving account addresses")
        self._factory_config = factory_config
        self._addresses.clear()
        return True

    def __repr__(self) -> str:
        return f"MultichainAccount(owner={self.owner}, chains={sorted(self._addresses)})"


def build_account(
    signer: Signer,
    registry: ChainRegistry,
    factory_config: Optional[FactoryConfig] = None,
) -> MultichainAccount:
    """Build an account, falling back to the factory configured in settings."""
    if factory_config is None:
        if not settings.has_factory_config:
            raise ConfigurationError(
                "ACCOUNT_FACTORY_ADDRESS and ACCOUNT_INIT_CODE_HASH must be set"
            )
        factory_config = FactoryConfig.uniform(
            registry.chain_ids,
            settings.account_factory_address,
            settings.account_init_code_hash,
            settings.account_index,
        )
    return MultichainAccount(signer, registry, factory_config)
