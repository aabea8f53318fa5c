"""Core configuration for the Canispect client."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NANOS_PER_HOUR = 3_600 * 1_000_000_000


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    Read once at startup; everything downstream treats the instance as
    immutable.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CANISPECT_",
        case_sensitive=False,
        frozen=True,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "Canispect"
    app_env: Literal["development", "production"] = "development"
    log_level: str = "INFO"
    log_format: Literal["auto", "json", "dev"] = "auto"

    # ── Network ──────────────────────────────────────────────────────────
    network_url: str | None = None  # explicit replica / boundary node
    local_replica_port: int = 4943
    local_host: str = "http://localhost:4943"
    public_host: str = "https://ic0.app"
    request_timeout_seconds: float = 60.0

    # ── Services ─────────────────────────────────────────────────────────
    backend_canister_id: str = "bd3sg-teaaa-aaaaa-qaaba-cai"
    audit_registry_canister_id: str = "bkyz2-fmaaa-aaaaa-qaaaq-cai"

    # ── Identity provider ────────────────────────────────────────────────
    internet_identity_canister_id: str = "rdmx6-jaaaa-aaaaa-aaadq-cai"
    public_identity_provider: str = "https://identity.ic0.app"
    session_path: str = Field(
        default_factory=lambda: str(Path.home() / ".canispect" / "session.json")
    )
    session_max_ttl_hours: int = 8

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def identity_provider_url(self) -> str:
        """Identity provider for the current mode."""
        if self.is_development:
            return f"{self.local_host.rstrip('/')}/?canisterId={self.internet_identity_canister_id}"
        return self.public_identity_provider

    @property
    def session_max_ttl_ns(self) -> int:
        return self.session_max_ttl_hours * NANOS_PER_HOUR

    @property
    def effective_network_url(self) -> str:
        """URL the runtime context is derived from."""
        if self.network_url:
            return self.network_url
        return self.local_host if self.is_development else self.public_host


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
