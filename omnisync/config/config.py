"""Configuration model.

Values are read once at process start and treated as immutable for the
process lifetime, so the model is frozen.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Config(BaseModel):
    """Runtime configuration of the resilience and observability core."""

    model_config = ConfigDict(frozen=True)

    environment: str = Field("development", min_length=1)
    verbose: bool = True

    # RequestBridge
    api_url: str = "https://omnisync-orchestrator.onrender.com"
    api_timeout_ms: int = Field(15000, gt=0)

    # Sentinel
    retry_max_attempts: int = Field(3, ge=1)
    retry_base_delay: float = Field(1.0, ge=0)
    retry_max_delay: float = Field(30.0, ge=0)
    circuit_threshold: int = Field(5, ge=1)
    circuit_cooldown: float = Field(30.0, ge=0)

    # Heartbeat probes
    probe_timeout: float = Field(5.0, gt=0)
    database_path: Optional[str] = None
    upstash_redis_rest_url: Optional[str] = None
    upstash_redis_rest_token: Optional[str] = None
    qdrant_url: Optional[str] = None

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        value = value.strip().lower()
        aliases = {"prod": "production", "stage": "staging", "dev": "development"}
        return aliases.get(value, value)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
