"""
Engine Configuration
====================
Aggregates detector, linker and storage settings with presets:

    config = EngineConfig.default()
    config = EngineConfig.strict()   # precision: brackets only, stricter fuzzy steps
    config = EngineConfig.recall()   # recall: wider ranges, looser fuzzy steps
"""

from dataclasses import dataclass, field
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .detector import DetectorConfig
from .linking import LinkerConfig


class StorageConfig(BaseSettings):
    """
    Database settings.

    Read from CITELINK_DATABASE_URL / CITELINK_ECHO_SQL (or a .env file),
    falling back to a local SQLite file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CITELINK_",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(default="sqlite:///citelink.db", description="SQLAlchemy database URL")
    echo_sql: bool = Field(default=False, description="Echo SQL statements to logs")


@dataclass
class EngineConfig:
    """Complete engine configuration"""
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    linker: LinkerConfig = field(default_factory=LinkerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    lock_policy: str = "queue"  # queue | reject
    lock_timeout: Optional[float] = None

    @classmethod
    def default(cls) -> 'EngineConfig':
        return cls()

    @classmethod
    def strict(cls) -> 'EngineConfig':
        return cls(detector=DetectorConfig.strict(), linker=LinkerConfig.strict())

    @classmethod
    def recall(cls) -> 'EngineConfig':
        return cls(detector=DetectorConfig.recall(), linker=LinkerConfig.recall())
