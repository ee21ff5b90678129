"""NetLens centralized configuration management.

Uses pydantic-settings to load configuration from environment variables
and .env files with validation.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from netlens.constants import DEFAULT_BATCH_SIZE, HUB_PROXY_PREFIX, UNKNOWN_GROUP


class Settings(BaseSettings):
    """NetLens settings.

    All settings can be overridden via environment variables
    prefixed with NETLENS_.

    Example:
        NETLENS_LOG_LEVEL=DEBUG
        NETLENS_NEO4J_URI=bolt://neo4j:7687
    """

    model_config = SettingsConfigDict(
        env_prefix="NETLENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Neo4j Database
    neo4j_uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j connection URI"
    )
    neo4j_user: str = Field(default="neo4j", description="Neo4j username")
    neo4j_password: str = Field(default="", description="Neo4j password")
    neo4j_batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        description="Nodes/edges written per UNWIND batch"
    )

    # Topology
    hub_proxy_prefix: str = Field(
        default=HUB_PROXY_PREFIX,
        description="Name prefix of auto-generated Virtual-WAN hub VNets"
    )
    unknown_group: str = Field(
        default=UNKNOWN_GROUP,
        description="Group tag for nodes outside the visible subscriptions"
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()
