"""Preset chains and token deployments."""

from typing import Dict

from .registry import ChainDescriptor

BASE_SEPOLIA = ChainDescriptor(
    chain_id=84532,
    rpc_endpoint="https://sepolia.base.org",
    native_decimals=18,
    name="Base Sepolia",
    native_symbol="ETH",
)

ARBITRUM_SEPOLIA = ChainDescriptor(
    chain_id=421614,
    rpc_endpoint="https://sepolia-rollup.arbitrum.io/rpc",
    native_decimals=18,
    name="Arbitrum Sepolia",
    native_symbol="ETH",
)

PRESET_CHAINS: Dict[int, ChainDescriptor] = {
    BASE_SEPOLIA.chain_id: BASE_SEPOLIA,
    ARBITRUM_SEPOLIA.chain_id: ARBITRUM_SEPOLIA,
}

# Logical token -> (decimals, chainId -> contract address)
# base: https://sepolia.basescan.org/token/0x036cbd53842c5426634e7929541ec2318f3dcf7e
PRESET_TOKENS: Dict[str, Dict[str, object]] = {
    "USDC": {
        "decimals": 6,
        "addresses": {
            BASE_SEPOLIA.chain_id: "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
            ARBITRUM_SEPOLIA.chain_id: "0xf3c3351d6bd0098eeb33ca8f830faf2a141ea2e1",
        },
    },
}
