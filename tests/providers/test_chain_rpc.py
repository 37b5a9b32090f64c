"""
Tests for the per-chain JSON-RPC client.
"""

import json

import httpx
import pytest

from conftest import USDC_X
from omniaccount.core.errors import ContractCallError, NetworkError
from omniaccount.providers.chain_rpc import ChainRpcClient, build_rpc_clients

ACCOUNT = "0x3333333333333333333333333333333333333333"


def _rpc(chain, handler) -> ChainRpcClient:
    return ChainRpcClient(chain, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _result(request: httpx.Request, result) -> httpx.Response:
    payload = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


def _word(value: int) -> str:
    return "0x" + hex(value)[2:].rjust(64, "0")


class TestChainRpcClient:

    @pytest.mark.asyncio
    async def test_native_balance(self, chain_x):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return _result(request, "0x2386f26fc10000")

        balance = await _rpc(chain_x, handler).get_native_balance(ACCOUNT)

        assert balance == 10**16
        assert seen["url"] == "https://rpc.x.test"
        assert seen["body"]["method"] == "eth_getBalance"
        assert seen["body"]["params"] == [ACCOUNT, "latest"]

    @pytest.mark.asyncio
    async def test_erc20_balance_of(self, chain_x):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["call"] = json.loads(request.content)["params"][0]
            return _result(request, _word(150_000))

        balance = await _rpc(chain_x, handler).erc20_balance_of(USDC_X, ACCOUNT)

        assert balance == 150_000
        assert seen["call"]["to"] == USDC_X
        assert seen["call"]["data"] == "0x70a08231" + "0" * 24 + "3" * 40

    @pytest.mark.asyncio
    async def test_erc20_decimals(self, chain_x):
        assert await _rpc(chain_x, lambda r: _result(r, _word(6))).erc20_decimals(USDC_X) == 6

    @pytest.mark.asyncio
    async def test_read_contract_encodes_words(self, chain_x):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["data"] = json.loads(request.content)["params"][0]["data"]
            return _result(request, _word(1))

        raw = await _rpc(chain_x, handler).read_contract(USDC_X, "balanceOf(address)", [ACCOUNT])
        assert raw == _word(1)
        assert seen["data"] == "0x70a08231" + "0" * 24 + "3" * 40

    @pytest.mark.asyncio
    async def test_revert_is_contract_error(self, chain_x):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": 3, "message": "execution reverted"}})

        with pytest.raises(ContractCallError):
            await _rpc(chain_x, handler).erc20_balance_of(USDC_X, ACCOUNT)

    @pytest.mark.asyncio
    async def test_empty_return_is_contract_error(self, chain_x):
        with pytest.raises(ContractCallError):
            await _rpc(chain_x, lambda r: _result(r, "0x")).erc20_balance_of(USDC_X, ACCOUNT)

    @pytest.mark.asyncio
    async def test_node_error_is_network_error(self, chain_x):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "rate limited"}})

        with pytest.raises(NetworkError):
            await _rpc(chain_x, handler).get_native_balance(ACCOUNT)

    @pytest.mark.asyncio
    async def test_http_failure_is_network_error(self, chain_x):
        with pytest.raises(NetworkError) as exc_info:
            await _rpc(chain_x, lambda r: httpx.Response(502)).get_native_balance(ACCOUNT)
        assert exc_info.value.chain_id == chain_x.chain_id

    @pytest.mark.asyncio
    async def test_connect_failure_is_network_error(self, chain_x):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            await _rpc(chain_x, handler).get_native_balance(ACCOUNT)

    @pytest.mark.asyncio
    async def test_health_check(self, chain_x):
        health = await _rpc(chain_x, lambda r: _result(r, "0x14a34")).health_check()
        assert health == {"status": "healthy", "chainId": 84532}

    def test_build_one_client_per_chain(self, registry):
        clients = build_rpc_clients(registry)
        assert set(clients) == {84532, 421614}
        assert clients[84532].chain.name == "Chain X"
