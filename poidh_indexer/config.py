"""Application configuration and environment settings"""
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
DEAD_ADDRESS = "0x000000000000000000000000000000000000dead"

class ChainSettings(BaseModel):
    """Metadata for one indexed network"""
    chain_id: int = Field(..., description="EVM chain id")
    name: str = Field(..., description="Symbolic network name")
    native_symbol: str = Field("eth", description="Currency label used in activity text")
    price_denomination: Literal["eth_usd", "degen_usd"] = Field(
        "eth_usd", description="Price snapshot column for the native asset"
    )
    namespace_offset: Optional[int] = Field(
        None, description="Final legacy id count, added to current-generation ids"
    )
    ignore_addresses: List[str] = Field(
        default_factory=list,
        description="Escrow contracts and other addresses that never get leaderboard rows",
    )

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    # Database settings, DATABASE_URL wins over the individual parts
    DATABASE_URL: Optional[str] = Field(None, description="Full SQLAlchemy database URL")
    DB_HOST: str = Field("localhost", description="Database host")
    DB_PORT: str = Field("5432", description="Database port")
    DB_NAME: str = Field("poidh", description="Database name")
    DB_USER: str = Field("poidh", description="Database user")
    DB_PASSWORD: Optional[str] = Field(None, description="Database password")
    DB_SSL_MODE: str = Field("prefer", description="PostgreSQL sslmode")

    LOG_LEVEL: str = Field("INFO", description="Root log level")

    # Indexed networks
    CHAINS: List[ChainSettings] = Field(default_factory=list, description="Indexed chains")
    IGNORE_ADDRESSES: List[str] = Field(
        default_factory=lambda: [ZERO_ADDRESS, DEAD_ADDRESS],
        description="Mint/burn sentinels excluded on every chain",
    )

    # Processing settings
    STRICT_CONFLICTS: bool = Field(False, description="Raise on conflicting aggregate writes")
    MAX_WORKERS: int = Field(4, description="Chains processed concurrently in a batch")

    # Input/Output directories with defaults
    INPUT_DIR: str = Field("/input", description="Directory containing event files")
    OUTPUT_DIR: str = Field("/output", description="Directory for run results")

    @property
    def chains_by_id(self) -> Dict[int, ChainSettings]:
        """Chain settings keyed by chain id"""
        return {chain.chain_id: chain for chain in self.CHAINS}

    @property
    def namespace_offsets(self) -> Dict[int, int]:
        """Configured namespace offsets, chains without one are left out"""
        return {
            chain.chain_id: chain.namespace_offset
            for chain in self.CHAINS
            if chain.namespace_offset is not None
        }

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True
    )

settings = Settings()
