"""Wire models for the MEE relay node's JSON responses."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _quantity(v: object) -> object:
    """Relay quantities arrive as decimal strings, hex strings or ints."""
    if isinstance(v, str):
        return int(v, 16) if v.startswith("0x") else int(v)
    return v


class WireCall(BaseModel):
    to: str = Field(..., description="Call target")
    value: int = Field(0, description="Native value in wei")
    data: str = Field("0x", description="Calldata")
    gas_limit: int = Field(0, alias="gasLimit", description="Gas ceiling for the call")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("value", "gas_limit", mode="before")
    @classmethod
    def _parse_int(cls, v: object) -> object:
        return _quantity(v)


class WireUserOp(BaseModel):
    chain_id: int = Field(..., alias="chainId")
    calls: List[WireCall] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("chain_id", mode="before")
    @classmethod
    def _parse_chain(cls, v: object) -> object:
        return _quantity(v)


class WireFee(BaseModel):
    amount: int = Field(..., description="Total fee in the fee token's raw units")
    token: str = Field(..., description="Fee token address")
    chain_id: int = Field(..., alias="chainId")
    per_chain: dict[int, int] = Field(default_factory=dict, alias="perChain")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v: object) -> object:
        return _quantity(v)


class QuoteResponse(BaseModel):
    hash: str = Field(..., description="Digest the account owner signs")
    fee: WireFee
    user_ops: Optional[List[WireUserOp]] = Field(None, alias="userOps")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("hash")
    @classmethod
    def _check_hash(cls, v: str) -> str:
        body = v[2:] if v.startswith("0x") else v
        if len(body) != 64:
            raise ValueError("hash must be a 32-byte hex digest")
        int(body, 16)
        return "0x" + body.lower()


class ExecuteResponse(BaseModel):
    hash: str


class WireUserOpStatus(BaseModel):
    chain_id: int = Field(..., alias="chainId")
    execution_status: str = Field("PENDING", alias="executionStatus")
    execution_data: Optional[str] = Field(None, alias="executionData")
    execution_error: Optional[str] = Field(None, alias="executionError")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("chain_id", mode="before")
    @classmethod
    def _parse_chain(cls, v: object) -> object:
        return _quantity(v)


class ExplorerResponse(BaseModel):
    hash: Optional[str] = None
    user_ops: List[WireUserOpStatus] = Field(default_factory=list, alias="userOps")

    model_config = ConfigDict(populate_by_name=True)
