"""
Tests for supertransaction assembly.
"""

import pytest

from conftest import CHAIN_X, CHAIN_Y, CHAIN_Z, USDC_X
from omniaccount.core.errors import DuplicateChainError, FeeChainNotIncluded, ValidationError
from omniaccount.core.execution.assembler import assemble
from omniaccount.core.execution.models import Call, ChainOperation, FeeToken


def _op(chain_id: int, marker: str = "1") -> ChainOperation:
    return ChainOperation(chain_id=chain_id, calls=(Call(to="0x" + marker * 40, gas_limit=100_000),))


class TestAssemble:

    def test_preserves_operation_order(self):
        supertx = assemble([_op(CHAIN_Y), _op(CHAIN_X)], FeeToken(CHAIN_X, USDC_X))
        assert supertx.chain_ids == [CHAIN_Y, CHAIN_X]
        assert supertx.fee_token.chain_id == CHAIN_X

    def test_fee_token_checksummed(self):
        supertx = assemble([_op(CHAIN_X)], FeeToken(CHAIN_X, USDC_X.lower()))
        assert supertx.fee_token.address == USDC_X

    def test_empty_rejected(self):
        with pytest.raises(ValidationError):
            assemble([], FeeToken(CHAIN_X, USDC_X))

    def test_duplicate_chain_rejected(self):
        with pytest.raises(DuplicateChainError):
            assemble([_op(CHAIN_X, "1"), _op(CHAIN_X, "2")], FeeToken(CHAIN_X, USDC_X))

    def test_fee_chain_not_included(self):
        with pytest.raises(FeeChainNotIncluded) as exc_info:
            assemble([_op(CHAIN_X), _op(CHAIN_Y)], FeeToken(CHAIN_Z, USDC_X))
        assert exc_info.value.chain_id == CHAIN_Z

    def test_invalid_fee_token_address(self):
        with pytest.raises(ValidationError):
            assemble([_op(CHAIN_X)], FeeToken(CHAIN_X, "0x1234"))

    def test_payload_shape(self):
        supertx = assemble([_op(CHAIN_X)], FeeToken(CHAIN_X, USDC_X))
        payload = supertx.to_payload()
        assert payload["feeToken"] == {"chainId": CHAIN_X, "address": USDC_X}
        assert payload["userOps"][0]["chainId"] == CHAIN_X
        assert payload["userOps"][0]["calls"][0]["gasLimit"] == "100000"
