# WORKFLOW: Core configuration management for the regions dump loader.
# Used by: All modules throughout the application
# Configuration includes:
# - Database connection settings
# - Dump source settings (URL, User-Agent, HTTP timeout)
# - Streaming settings (read chunk size, commit batch size)
# - Record policy (skip invalid records, carry over missing fields)
# - Logging configuration
#
# Loaded at startup; pipeline entry points also accept an explicit Settings instance.

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="NSDUMP_",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./ns-db.sqlite"
    database_echo: bool = False

    # Dump source
    regions_dump_url: str = "https://www.nationstates.net/pages/regions.xml.gz"
    user_agent: str = "nsdump-regions loader (https://github.com/Afforess/ns-dumps)"
    request_timeout: float = 60.0

    # Streaming
    read_chunk_size: int = 64 * 1024
    commit_every: int = 1000

    # Record policy
    skip_invalid_records: bool = False
    carry_over_fields: bool = False
    report_unknown_elements: bool = True

    # Logging
    log_level: str = "INFO"


settings = Settings()
