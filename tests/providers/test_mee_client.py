"""
Tests for the MEE relay client wire format.
"""

import json

import httpx
import pytest

from conftest import CHAIN_X, CHAIN_Y, QUOTE_HASH, SIGNATURE, USDC_X, make_quote
from omniaccount.core.errors import NetworkError, QuoteError, QuoteExpiredError, RelayRejection
from omniaccount.core.execution.models import ChainExecutionStatus, ExecutionHandle, SignedExecution
from omniaccount.providers.mee import MeeClient


def _client(handler, **kwargs) -> MeeClient:
    return MeeClient("https://relay.test", transport=httpx.MockTransport(handler), **kwargs)


def _quote_body(supertransaction, **overrides):
    body = {
        "hash": QUOTE_HASH,
        "fee": {"amount": "5000", "token": USDC_X, "chainId": CHAIN_X, "perChain": {str(CHAIN_X): "3000", str(CHAIN_Y): "2000"}},
        "userOps": supertransaction.to_payload()["userOps"],
        "expiresAt": "2030-01-01T00:00:00Z",
    }
    body.update(overrides)
    return body


class TestGetQuote:

    @pytest.mark.asyncio
    async def test_quote_request_and_parse(self, supertransaction):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_quote_body(supertransaction))

        client = _client(handler)
        quote = await client.get_quote(supertransaction)

        assert seen["path"] == "/v1/quote"
        assert [op["chainId"] for op in seen["body"]["userOps"]] == [CHAIN_X, CHAIN_Y]
        assert seen["body"]["feeToken"] == {"chainId": CHAIN_X, "address": USDC_X}

        assert quote.hash_to_sign == QUOTE_HASH
        assert quote.fee.amount == 5000
        assert quote.fee.per_chain == {CHAIN_X: 3000, CHAIN_Y: 2000}
        assert quote.supertransaction is supertransaction
        assert quote.expires_at is not None and quote.expires_at.year == 2030
        assert [op.chain_id for op in quote.echoed_operations] == [CHAIN_X, CHAIN_Y]
        assert quote.echoed_operations[0].calls[0].gas_limit == 100_000

    @pytest.mark.asyncio
    async def test_malformed_hash(self, supertransaction):
        client = _client(lambda request: httpx.Response(200, json=_quote_body(supertransaction, hash="0x1234")))
        with pytest.raises(QuoteError):
            await client.get_quote(supertransaction)

    @pytest.mark.asyncio
    async def test_rejection_message(self, supertransaction):
        client = _client(lambda request: httpx.Response(400, json={"message": "Insufficient fee token balance"}))
        with pytest.raises(RelayRejection) as exc_info:
            await client.get_quote(supertransaction)
        assert exc_info.value.status_code == 400
        assert "Insufficient fee token balance" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_server_error_is_network_error(self, supertransaction):
        client = _client(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(NetworkError):
            await client.get_quote(supertransaction)

    @pytest.mark.asyncio
    async def test_non_json_body(self, supertransaction):
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(NetworkError):
            await client.get_quote(supertransaction)

    @pytest.mark.asyncio
    async def test_api_key_header(self, supertransaction):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("x-api-key")
            return httpx.Response(200, json=_quote_body(supertransaction))

        await _client(handler, api_key="secret").get_quote(supertransaction)
        assert seen["key"] == "secret"


class TestExecute:

    @pytest.fixture
    def signed(self, supertransaction) -> SignedExecution:
        return SignedExecution(quote=make_quote(supertransaction), signature=SIGNATURE)

    @pytest.mark.asyncio
    async def test_execute_payload(self, signed):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"hash": QUOTE_HASH})

        handle = await _client(handler).execute(signed)

        assert seen["path"] == "/v1/exec"
        assert seen["body"]["hash"] == QUOTE_HASH
        assert seen["body"]["signature"] == "0x177eee00" + SIGNATURE[2:]
        assert seen["body"]["executionMode"] == "direct-to-mee"
        assert handle == ExecutionHandle(aggregate_hash=QUOTE_HASH)

    @pytest.mark.asyncio
    async def test_duplicate_submission_is_idempotent(self, signed):
        client = _client(lambda request: httpx.Response(409, json={"message": "already submitted"}))
        handle = await client.execute(signed)
        assert handle.aggregate_hash == QUOTE_HASH

    @pytest.mark.asyncio
    async def test_expired_quote(self, signed):
        client = _client(lambda request: httpx.Response(400, json={"message": "Quote has expired"}))
        with pytest.raises(QuoteExpiredError):
            await client.execute(signed)

    @pytest.mark.asyncio
    async def test_other_rejection(self, signed):
        client = _client(lambda request: httpx.Response(400, json={"error": "invalid signature"}))
        with pytest.raises(RelayRejection) as exc_info:
            await client.execute(signed)
        assert not isinstance(exc_info.value, QuoteExpiredError)


class TestStatus:

    @pytest.mark.asyncio
    async def test_status_mapping(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            return httpx.Response(
                200,
                json={
                    "hash": QUOTE_HASH,
                    "userOps": [
                        {"chainId": CHAIN_X, "executionStatus": "MINED_SUCCESS", "executionData": "0xaaa"},
                        {"chainId": str(CHAIN_Y), "executionStatus": "MINED_FAIL", "executionError": "reverted"},
                        {"chainId": 1, "executionStatus": "SOMETHING_NEW"},
                    ],
                },
            )

        chains = await _client(handler).status(ExecutionHandle(aggregate_hash=QUOTE_HASH))

        assert seen["path"] == f"/v1/explorer/{QUOTE_HASH}"
        assert [c.status for c in chains] == [
            ChainExecutionStatus.SUCCESS,
            ChainExecutionStatus.FAILED,
            ChainExecutionStatus.PENDING,
        ]
        assert chains[0].tx_hash == "0xaaa"
        assert chains[1].error == "reverted"
