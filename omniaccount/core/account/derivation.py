"""
Counterfactual smart-account address derivation.

The account address on a chain is the CREATE2 address the factory would
deploy it to:

    salt    = keccak256(owner (32 bytes) ++ index (uint256))
    address = keccak256(0xff ++ factory ++ salt ++ initCodeHash)[12:]

Nothing here touches the network; the account is deployed lazily by the
relay on first use. When two chains share the same factory address and
init code hash the derived addresses are identical on both. Whether that
happens is decided by the factory configuration, not assumed here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Tuple

from eth_utils import is_address, keccak, to_bytes, to_canonical_address, to_checksum_address

from ..chains.registry import ChainDescriptor
from ..errors import ConfigurationError, UnsupportedChain


@dataclass(frozen=True)
class FactoryDeployment:
    """Where (and with which proxy bytecode) the account factory lives on one chain."""

    factory_address: str
    init_code_hash: str

    def __post_init__(self) -> None:
        if not is_address(self.factory_address):
            raise ConfigurationError(f"Invalid factory address: {self.factory_address!r}")
        if len(to_bytes(hexstr=self.init_code_hash)) != 32:
            raise ConfigurationError(f"Init code hash must be 32 bytes: {self.init_code_hash!r}")


@dataclass(frozen=True)
class FactoryConfig:
    """Per-chain factory deployments plus the account index mixed into the salt."""

    deployments: Mapping[int, FactoryDeployment] = field(default_factory=dict)
    account_index: int = 0

    @classmethod
    def uniform(
        cls,
        chain_ids: Iterable[int],
        factory_address: str,
        init_code_hash: str,
        account_index: int = 0,
    ) -> "FactoryConfig":
        """Same factory on every chain, which yields the same address everywhere."""
        deployment = FactoryDeployment(factory_address, init_code_hash)
        return cls(
            deployments={chain_id: deployment for chain_id in chain_ids},
            account_index=account_index,
        )

    def deployment_on(self, chain_id: int) -> FactoryDeployment:
        deployment = self.deployments.get(chain_id)
        if deployment is None:
            raise UnsupportedChain(chain_id, f"No account factory configured for chain {chain_id}")
        return deployment

    def fingerprint(self) -> Tuple:
        """Hashable identity used to detect configuration changes."""
        return (
            self.account_index,
            tuple(
                sorted(
                    (chain_id, d.factory_address.lower(), d.init_code_hash.lower())
                    for chain_id, d in self.deployments.items()
                )
            ),
        )


def compute_salt(owner_address: str, account_index: int = 0) -> bytes:
    if account_index < 0:
        raise ValueError("Account index must be non-negative")
    owner = to_canonical_address(owner_address)
    return keccak(owner.rjust(32, b"\x00") + account_index.to_bytes(32, "big"))


def create2_address(factory_address: str, salt: bytes, init_code_hash: str) -> str:
    digest = keccak(
        b"\xff"
        + to_canonical_address(factory_address)
        + salt
        + to_bytes(hexstr=init_code_hash)
    )
    return to_checksum_address(digest[12:])


def derive_address(
    signer_identity: str,
    chain: ChainDescriptor,
    factory_config: FactoryConfig,
) -> str:
    """Smart-account address of ``signer_identity`` on ``chain``.

    Raises:
        UnsupportedChain: ``factory_config`` has no entry for the chain.
    """
    deployment = factory_config.deployment_on(chain.chain_id)
    salt = compute_salt(signer_identity, factory_config.account_index)
    return create2_address(deployment.factory_address, salt, deployment.init_code_hash)


def derive_addresses(
    signer_identity: str,
    chains: Iterable[ChainDescriptor],
    factory_config: FactoryConfig,
) -> Dict[int, str]:
    return {
        chain.chain_id: derive_address(signer_identity, chain, factory_config)
        for chain in chains
    }
