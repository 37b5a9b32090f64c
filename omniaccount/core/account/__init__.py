from .derivation import FactoryConfig, FactoryDeployment, derive_address, derive_addresses
from .multichain import MultichainAccount, build_account
from .signer import LocalSigner, Signer

__all__ = [
    "FactoryConfig",
    "FactoryDeployment",
    "derive_address",
    "derive_addresses",
    "MultichainAccount",
    "build_account",
    "LocalSigner",
    "Signer",
]
