from .chain_rpc import ChainRpcClient, build_rpc_clients
from .mee import MeeClient

__all__ = ["ChainRpcClient", "build_rpc_clients", "MeeClient"]
