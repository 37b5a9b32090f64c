"""Shared fixtures: two test chains, a deterministic signer and fast retries."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from omniaccount.core.account.derivation import FactoryConfig
from omniaccount.core.account.multichain import MultichainAccount
from omniaccount.core.account.signer import LocalSigner
from omniaccount.core.chains.registry import ChainDescriptor, ChainRegistry
from omniaccount.core.execution.calldata import build_transfer_call_data
from omniaccount.core.execution.models import (
    Call,
    ChainOperation,
    ExecutionHandle,
    FeeBreakdown,
    FeeToken,
    Quote,
    Supertransaction,
)
from omniaccount.core.recovery import RetryConfig, RetryStrategy
from omniaccount.core.tokens.mapping import TokenMappingTable

CHAIN_X = 84532
CHAIN_Y = 421614
CHAIN_Z = 11155111

USDC_X = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
USDC_Y = "0xf3c3351d6bd0098eeb33ca8f830faf2a141ea2e1"

FACTORY = "0x000000a56aaca3e9a4c479ea6b6cd0dbcb6634f5"
INIT_CODE_HASH = "0x" + "ab" * 32

# Well-known development key; never holds funds.
OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@pytest.fixture
def chain_x() -> ChainDescriptor:
    return ChainDescriptor(chain_id=CHAIN_X, rpc_endpoint="https://rpc.x.test", name="Chain X")


@pytest.fixture
def chain_y() -> ChainDescriptor:
    return ChainDescriptor(chain_id=CHAIN_Y, rpc_endpoint="https://rpc.y.test", name="Chain Y")


@pytest.fixture
def registry(chain_x: ChainDescriptor, chain_y: ChainDescriptor) -> ChainRegistry:
    return ChainRegistry([chain_x, chain_y])


@pytest.fixture
def factory_config() -> FactoryConfig:
    return FactoryConfig.uniform([CHAIN_X, CHAIN_Y], FACTORY, INIT_CODE_HASH)


@pytest.fixture
def signer() -> LocalSigner:
    return LocalSigner.from_key(OWNER_KEY)


@pytest.fixture
def account(signer: LocalSigner, registry: ChainRegistry, factory_config: FactoryConfig) -> MultichainAccount:
    return MultichainAccount(signer, registry, factory_config)


@pytest.fixture
def token_table(registry: ChainRegistry) -> TokenMappingTable:
    table = TokenMappingTable(registry)
    table.register("USDC", [(CHAIN_X, USDC_X), (CHAIN_Y, USDC_Y)], decimals=6)
    return table


@pytest.fixture
def fast_retry() -> RetryStrategy:
    """Three attempts with no waiting between them."""
    return RetryStrategy(RetryConfig(max_attempts=3, initial_delay_seconds=0, jitter=False))


SIGNATURE = "0x" + "aa" * 65
QUOTE_HASH = "0x" + "12" * 32
RECIPIENT = "0x2222222222222222222222222222222222222222"


def make_quote(supertransaction: Supertransaction, *, hash_to_sign=QUOTE_HASH, expires_at=None, echoed=None) -> Quote:
    return Quote(
        hash_to_sign=hash_to_sign,
        fee=FeeBreakdown(
            amount=5_000,
            token_address=supertransaction.fee_token.address,
            chain_id=supertransaction.fee_token.chain_id,
        ),
        supertransaction=supertransaction,
        expires_at=expires_at,
        echoed_operations=echoed,
    )


@pytest.fixture
def supertransaction() -> Supertransaction:
    """USDC transfers on X and Y, fee paid on X."""
    return Supertransaction(
        operations=(
            ChainOperation(
                chain_id=CHAIN_X,
                calls=(Call(to=USDC_X, data=build_transfer_call_data(RECIPIENT, 300_000), gas_limit=100_000),),
            ),
            ChainOperation(
                chain_id=CHAIN_Y,
                calls=(Call(to=USDC_Y, data=build_transfer_call_data(RECIPIENT, 100_000), gas_limit=100_000),),
            ),
        ),
        fee_token=FeeToken(chain_id=CHAIN_X, address=USDC_X),
    )


@pytest.fixture
def mock_signer() -> MagicMock:
    signer = MagicMock()
    signer.address = OWNER_ADDRESS
    signer.sign = AsyncMock(return_value=SIGNATURE)
    return signer


@pytest.fixture
def mock_relay() -> MagicMock:
    relay = MagicMock()
    relay.get_quote = AsyncMock()
    relay.execute = AsyncMock(return_value=ExecutionHandle(aggregate_hash=QUOTE_HASH))
    relay.status = AsyncMock(return_value=[])
    return relay
