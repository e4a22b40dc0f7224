"""Runtime configuration.

Settings are read from the environment (prefix ``SHADOW_``) or a ``.env``
file, e.g. ``SHADOW_TREE_DEPTH=20``.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LAMPORTS_PER_SOL = 1_000_000_000

# Pool denominations in lamports
DENOMINATIONS = {
    "0.1": 100_000_000,
    "0.5": 500_000_000,
    "1": 1_000_000_000,
    "5": 5_000_000_000,
}

MAX_TREE_DEPTH = 20
MAX_DEPOSITS = 2**MAX_TREE_DEPTH

MIN_TREE_LEVELS = 10
MAX_TREE_LEVELS = 32


class ShadowSettings(BaseSettings):
    """Pool, verifier and service settings."""

    model_config = SettingsConfigDict(env_prefix="SHADOW_", env_file=".env", extra="ignore")

    # Pool
    tree_depth: int = Field(default=MAX_TREE_DEPTH, ge=MIN_TREE_LEVELS, le=MAX_TREE_LEVELS)
    denomination: int = Field(default=DENOMINATIONS["0.1"], gt=0, description="Lamports per deposit")
    pool_id: str = Field(default="default", min_length=1)
    identity_group_id: str = Field(default="humanship", min_length=1)

    # Verifier
    root_history_size: int = Field(default=30, ge=1, description="Accepted recent roots")
    relayer_fee_percent: float = Field(default=1.0, ge=0, le=10)

    # Proving toolchain
    circuits_path: str = "./circuits/build"
    snarkjs_binary: str = "snarkjs"
    proof_timeout: Optional[float] = Field(default=None, gt=0, description="Seconds; none by default")

    # Service
    database_url: str = "sqlite:///shadow.db"
    log_level: str = "INFO"

    def max_relayer_fee(self) -> int:
        """Largest fee a relayer may take from one withdrawal, in lamports."""
        return int(self.denomination * self.relayer_fee_percent / 100)


@lru_cache()
def get_settings() -> ShadowSettings:
    """Settings loaded once per process."""
    return ShadowSettings()
