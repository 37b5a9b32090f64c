"""
MEE relay provider.

Prices supertransactions, relays signed ones to their chains and reports
per-chain execution status.

Endpoints:
    POST /v1/quote              -> {hash, fee, userOps?, expiresAt?}
    POST /v1/exec               -> {hash}
    GET  /v1/explorer/{hash}    -> {userOps: [{chainId, executionStatus, ...}]}
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from .base import Provider
from .mee_models import ExecuteResponse, ExplorerResponse, QuoteResponse
from ..config import settings
from ..core.errors import NetworkError, QuoteError, QuoteExpiredError, RelayRejection, classify_error
from ..core.execution.models import (
    Call,
    ChainExecution,
    ChainExecutionStatus,
    ChainOperation,
    ExecutionHandle,
    FeeBreakdown,
    Quote,
    SignedExecution,
    Supertransaction,
)
from ..core.execution.signature import format_signature

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "PENDING": ChainExecutionStatus.PENDING,
    "WAITING": ChainExecutionStatus.PENDING,
    "MINING": ChainExecutionStatus.PENDING,
    "PROCESSING": ChainExecutionStatus.PENDING,
    "SUCCESS": ChainExecutionStatus.SUCCESS,
    "MINED_SUCCESS": ChainExecutionStatus.SUCCESS,
    "COMPLETED": ChainExecutionStatus.SUCCESS,
    "FAILED": ChainExecutionStatus.FAILED,
    "MINED_FAIL": ChainExecutionStatus.FAILED,
    "REVERTED": ChainExecutionStatus.FAILED,
    "ERROR": ChainExecutionStatus.FAILED,
}


class MeeClient(Provider):
    """
    Usage:
        client = MeeClient()
        quote = await client.get_quote(supertransaction)
        handle = await client.execute(signed_execution)
        chains = await client.status(handle)
    """

    name = "mee"

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.mee_node_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.mee_api_key
        self.timeout_s = timeout_s or settings.mee_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {
                "Content-Type": "application/json",
                "User-Agent": "omniaccount/0.1",
            }
            if self.api_key:
                headers["x-api-key"] = self.api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout_s,
                transport=self._transport,
            )
        return self._client

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self._get_client().get("/v1/info")
            if response.status_code == 200:
                return {"status": "healthy"}
            return {"status": "degraded", "code": response.status_code}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def get_quote(self, supertransaction: Supertransaction) -> Quote:
        data = await self._request("POST", "/v1/quote", json=supertransaction.to_payload())
        try:
            parsed = QuoteResponse.model_validate(data)
        except PydanticValidationError as exc:
            raise QuoteError(f"Malformed quote from relay: {exc}") from exc

        echoed = None
        if parsed.user_ops is not None:
            echoed = tuple(
                ChainOperation(
                    chain_id=op.chain_id,
                    calls=tuple(Call(to=c.to, data=c.data, value=c.value, gas_limit=c.gas_limit) for c in op.calls),
                )
                for op in parsed.user_ops
            )

        logger.info("Quote received: hash=%s fee=%s", parsed.hash, parsed.fee.amount)
        return Quote(
            hash_to_sign=parsed.hash,
            fee=FeeBreakdown(
                amount=parsed.fee.amount,
                token_address=parsed.fee.token,
                chain_id=parsed.fee.chain_id,
                per_chain=dict(parsed.fee.per_chain),
            ),
            supertransaction=supertransaction,
            expires_at=parsed.expires_at,
            echoed_operations=echoed,
        )

    async def execute(self, signed: SignedExecution) -> ExecutionHandle:
        payload = {
            "hash": signed.quote.hash_to_sign,
            "signature": format_signature(signed.signature, signed.execution_mode),
            "executionMode": signed.execution_mode,
        }
        try:
            data = await self._request("POST", "/v1/exec", json=payload)
        except RelayRejection as exc:
            if exc.status_code == 409:
                # Same signed hash already accepted; the relay de-duplicates by hash.
                logger.info("Supertransaction %s already submitted", signed.quote.hash_to_sign)
                return ExecutionHandle(aggregate_hash=signed.quote.hash_to_sign)
            if "expire" in str(exc).lower():
                raise QuoteExpiredError(str(exc), status_code=exc.status_code, body=exc.body) from exc
            raise

        try:
            parsed = ExecuteResponse.model_validate(data)
        except PydanticValidationError as exc:
            raise NetworkError(f"Malformed execute response from relay: {exc}", provider=self.name) from exc
        logger.info("Supertransaction submitted: %s", parsed.hash)
        return ExecutionHandle(aggregate_hash=parsed.hash)

    async def status(self, handle: ExecutionHandle) -> List[ChainExecution]:
        data = await self._request("GET", f"/v1/explorer/{handle.aggregate_hash}")
        try:
            parsed = ExplorerResponse.model_validate(data)
        except PydanticValidationError as exc:
            raise NetworkError(f"Malformed status response from relay: {exc}", provider=self.name) from exc

        return [
            ChainExecution(
                chain_id=op.chain_id,
                status=_STATUS_MAP.get(op.execution_status.upper(), ChainExecutionStatus.PENDING),
                tx_hash=op.execution_data,
                error=op.execution_error,
            )
            for op in parsed.user_ops
        ]

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._get_client().request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Relay %s %s failed: %s - %s", method, path, exc.response.status_code, exc.response.text)
            raise classify_error(exc, provider=self.name) from exc
        except httpx.RequestError as exc:
            logger.error("Relay %s %s request failed: %s", method, path, exc)
            raise classify_error(exc, provider=self.name) from exc
        except ValueError as exc:
            raise NetworkError(f"Relay returned non-JSON body for {path}", provider=self.name) from exc

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
