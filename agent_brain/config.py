"""Configuration management for agent-brain."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AGENT_BRAIN_",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Logging verbosity"
    )
    log_path: str | None = Field(
        None, description="Directory for the JSON event log; disabled when unset"
    )
    log_max_bytes: int = Field(5_000_000, gt=0)
    otel_trace_url: str | None = Field(None, description="OTLP/HTTP span endpoint")
    data_dir: Path = Field(
        Path("runtime/agent_brain"), description="Root directory for persisted memory tiers"
    )
    providers_file: Path | None = Field(
        None, description="JSON file with provider definitions"
    )

    router_timeout: float = Field(30.0, gt=0, description="Seconds per provider attempt")
    cache_ttl: float = Field(300.0, ge=0, description="Result cache TTL in seconds")
    max_tokens: int = Field(1000, gt=0)
    temperature: float = Field(0.7, ge=0.0, le=2.0)

    working_ttl: float = Field(3600.0, gt=0)
    working_window: int = Field(10, gt=0)
    semantic_dims: int = Field(256, gt=0)
    semantic_threshold: float = Field(0.75, ge=-1.0, le=1.0)
    semantic_top_k: int = Field(5, gt=0)
    episodic_retention_days: int = Field(90, gt=0)
    context_messages: int = Field(10, gt=0)

    score_baseline: float = 0.7
    score_success_delta: float = Field(0.7, gt=0)
    score_failure_delta: float = Field(1.0, gt=0)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings using optional env file from ``AGENT_BRAIN_CONFIG_FILE``."""
        env_file = os.getenv("AGENT_BRAIN_CONFIG_FILE")
        kwargs = {"_env_file": env_file} if env_file else {}
        return cls(**kwargs)

    @property
    def aggregate_path(self) -> Path:
        return self.data_dir / "aggregate.db"

    @property
    def semantic_path(self) -> Path:
        return self.data_dir / "semantic.db"

    @property
    def usage_path(self) -> Path:
        return self.data_dir / "usage.db"

    @property
    def episodes_dir(self) -> Path:
        return self.data_dir / "episodes"


__all__ = ["Settings"]
