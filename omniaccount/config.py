from pathlib import Path
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    # MEE relay node
    mee_node_url: str = Field(
        default="https://mee-node.biconomy.io",
        description="Base URL of the relay that quotes and executes supertransactions",
    )
    mee_api_key: str = Field(default="", description="Optional relay API key")
    mee_timeout_seconds: float = Field(default=30.0, description="Relay request timeout")
    execution_mode: str = Field(
        default="direct-to-mee",
        description="How the relay should relay a signed supertransaction",
    )

    # Chain RPC
    rpc_timeout_seconds: float = Field(default=15.0, description="Chain RPC request timeout")
    chain_rpc_overrides: Dict[int, str] = Field(
        default_factory=dict,
        description="chainId -> RPC URL overrides for the preset chains",
    )

    # Owner key for the CLI signer
    owner_private_key: str = Field(default="", description="Hex private key of the account owner")

    # Smart account factory (counterfactual deployment)
    account_factory_address: str = Field(
        default="",
        description="Account factory address used on every registered chain",
    )
    account_init_code_hash: str = Field(
        default="",
        description="keccak256 of the account proxy creation code",
    )
    account_index: int = Field(default=0, ge=0, description="Account index mixed into the CREATE2 salt")

    # Operation defaults
    default_gas_limit: int = Field(default=100_000, gt=0, description="Gas ceiling per call when none is given")

    # Retry policy
    max_retries: int = Field(default=3, ge=1, description="Attempts for retryable network calls")
    retry_initial_delay_seconds: float = Field(default=1.0, description="First backoff delay")
    retry_max_delay_seconds: float = Field(default=30.0, description="Backoff ceiling")

    # Execution tracking
    status_poll_interval_seconds: float = Field(default=2.0, description="Delay between status polls")
    status_poll_timeout_seconds: float = Field(default=180.0, description="Give up polling after this long")

    @property
    def has_factory_config(self) -> bool:
        return bool(self.account_factory_address and self.account_init_code_hash)


# Global settings instance
settings = Settings()
