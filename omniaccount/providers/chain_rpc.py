"""
JSON-RPC client for one EVM chain.

Only the two reads the account layer needs: native balance and
``eth_call``. Independent calls may run concurrently on one client.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .base import Provider
from ..config import settings
from ..core.chains.registry import ChainDescriptor, ChainRegistry
from ..core.errors import ContractCallError, NetworkError, classify_error
from ..core.execution.calldata import (
    build_balance_of_call_data,
    build_decimals_call_data,
    decode_uint,
    selector_from_signature,
)

logger = logging.getLogger(__name__)

# JSON-RPC error codes that mean "the call itself failed" rather than the node.
_EXECUTION_ERROR_CODES = {3, -32000, -32015}
_REVERT_MARKERS = ("revert", "execution reverted", "invalid opcode")


class ChainRpcClient(Provider):
    """
    Usage:
        client = ChainRpcClient(BASE_SEPOLIA)
        wei = await client.get_native_balance("0x...")
        raw = await client.read_contract(usdc, "balanceOf(address)", ["0x..."])
    """

    name = "chain_rpc"

    def __init__(
        self,
        chain: ChainDescriptor,
        *,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.chain = chain
        self.timeout_s = timeout_s or settings.rpc_timeout_seconds
        self._client = client
        self._ids = itertools.count(1)

    @property
    def chain_id(self) -> int:
        return self.chain.chain_id

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def ready(self) -> bool:
        return bool(self.chain.rpc_endpoint)

    async def health_check(self) -> Dict[str, Any]:
        try:
            result = await self._rpc_call("eth_chainId", [])
            return {"status": "healthy", "chainId": int(result, 16)}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def get_native_balance(self, address: str) -> int:
        result = await self._rpc_call("eth_getBalance", [address, "latest"])
        return _parse_quantity(result, self.chain_id)

    async def read_contract(
        self,
        address: str,
        function_signature: str,
        args: Sequence[str] = (),
    ) -> str:
        """``eth_call`` with pre-encoded word arguments; returns raw hex."""
        data = selector_from_signature(function_signature) + "".join(_strip_0x(a).rjust(64, "0") for a in args)
        return await self.eth_call(address, data)

    async def eth_call(self, address: str, data: str) -> str:
        result = await self._rpc_call("eth_call", [{"to": address, "data": data}, "latest"])
        if not isinstance(result, str):
            raise ContractCallError(
                f"Unexpected eth_call result on chain {self.chain_id}: {result!r}",
                chain_id=self.chain_id,
                contract_address=address,
            )
        return result

    async def erc20_balance_of(self, token_address: str, account: str) -> int:
        raw = await self.eth_call(token_address, build_balance_of_call_data(account))
        return self._decode(raw, token_address)

    async def erc20_decimals(self, token_address: str) -> int:
        raw = await self.eth_call(token_address, build_decimals_call_data())
        return self._decode(raw, token_address)

    def _decode(self, raw: str, token_address: str) -> int:
        try:
            return decode_uint(raw)
        except ValueError as exc:
            raise ContractCallError(
                f"Undecodable return data from {token_address} on chain {self.chain_id}: {raw!r}",
                chain_id=self.chain_id,
                contract_address=token_address,
            ) from exc

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        client = self._get_client()
        try:
            response = await client.post(
                self.chain.rpc_endpoint,
                json={"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("RPC %s on chain %s failed: %s", method, self.chain_id, exc)
            if isinstance(exc, ValueError):
                raise NetworkError(
                    f"Invalid JSON-RPC response from chain {self.chain_id}",
                    provider=self.name,
                    chain_id=self.chain_id,
                ) from exc
            classified = classify_error(exc, provider=self.name, chain_id=self.chain_id)
            if not isinstance(classified, NetworkError):
                classified = NetworkError(str(classified), provider=self.name, chain_id=self.chain_id)
            raise classified from exc

        error = payload.get("error")
        if error:
            message = error.get("message", "") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            if code in _EXECUTION_ERROR_CODES and any(m in message.lower() for m in _REVERT_MARKERS):
                raise ContractCallError(
                    f"Call reverted on chain {self.chain_id}: {message}",
                    chain_id=self.chain_id,
                )
            raise NetworkError(
                f"RPC error on chain {self.chain_id}: {message}",
                provider=self.name,
                chain_id=self.chain_id,
            )
        return payload.get("result")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def _parse_quantity(value: Any, chain_id: int) -> int:
    if not isinstance(value, str):
        raise NetworkError(f"Invalid quantity from chain {chain_id}: {value!r}", chain_id=chain_id)
    try:
        return int(value, 16)
    except ValueError as exc:
        raise NetworkError(f"Invalid quantity from chain {chain_id}: {value!r}", chain_id=chain_id) from exc


def build_rpc_clients(
    registry: ChainRegistry,
    client: Optional[httpx.AsyncClient] = None,
) -> Mapping[int, ChainRpcClient]:
    """One client per registered chain, optionally sharing a connection pool."""
    return {chain.chain_id: ChainRpcClient(chain, client=client) for chain in registry}
