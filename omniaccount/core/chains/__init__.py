from .constants import ARBITRUM_SEPOLIA, BASE_SEPOLIA, PRESET_CHAINS, PRESET_TOKENS
from .registry import ChainDescriptor, ChainRegistry

__all__ = [
    "ChainDescriptor",
    "ChainRegistry",
    "BASE_SEPOLIA",
    "ARBITRUM_SEPOLIA",
    "PRESET_CHAINS",
    "PRESET_TOKENS",
]
