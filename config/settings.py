from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the stake history API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ledger Configuration
    NODE_URL: str = Field(
        default="http://localhost:8545",
        description="JSON-RPC endpoint of the blockchain node"
    )
    CONTRACT_ADDRESS: str = Field(
        default="0x0000000000000000000000000000000000000000",
        description="Address of the staking contract"
    )
    CHAIN: str = Field(
        default="137",
        description="Chain id of the network the contract lives on"
    )

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    PORT: int = Field(default=8000, description="API port")
    API_VERSION: str = Field(default="1.0.0", description="Version shown in the API docs")
    ORIGIN: str = Field(default="http://localhost:3000", description="Allowed CORS origin")
    MODE: str = Field(default="release", description="debug or release")
    DEFAULT_PAGE_SIZE: int = Field(default=20, ge=1, description="Page size when none is given")

    # Payment Configuration
    CALLBACK: str = Field(default="", description="Callback URL for payment notifications")
    CRYPTAPI_BASE_URL: str = Field(default="https://api.cryptapi.io", description="CryptAPI base URL")
    CRYPTAPI_COIN: str = Field(default="polygon/matic", description="CryptAPI coin ticker")
    QR_SIZE: int = Field(default=250, ge=1, description="Payment QR code size in pixels")

    # Cache Configuration
    HISTORY_CACHE_TTL_SECONDS: float = Field(
        default=360,
        gt=0,
        description="How long a fetched stake history is served from cache"
    )
    CACHE_MAX_ENTRIES: int = Field(default=10000, ge=1, description="Maximum number of cached addresses")
    CACHE_SWEEP_INTERVAL_SECONDS: float = Field(
        default=60,
        ge=0,
        description="Seconds between expired entry sweeps, 0 disables sweeping"
    )

    # Upstream Configuration
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=10, gt=0, description="Deadline for one ledger call")
    CIRCUIT_FAILURE_THRESHOLD: int = Field(default=5, ge=1, description="Failures before the circuit opens")
    CIRCUIT_RECOVERY_SECONDS: float = Field(default=30, gt=0, description="Seconds the circuit stays open")

    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
