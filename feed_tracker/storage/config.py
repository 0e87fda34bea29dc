"""Configuration for the snapshot store."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_IDENTIFIER = r"^[a-z_][a-z0-9_]*$"


class StorageConfig(BaseSettings):
    """Settings for feed storage tables and read-side verification."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        case_sensitive=False,
        extra="ignore",
    )

    source_table: str = Field(
        default="source_feeds",
        pattern=_IDENTIFIER,
        description="Table holding configured source feeds",
    )
    snapshot_table: str = Field(
        default="feed_snapshots",
        pattern=_IDENTIFIER,
        description="Append-only table of feed snapshots",
    )
    verify_hash_on_read: bool = Field(
        default=True,
        description="Recompute content hashes when loading entities",
    )
