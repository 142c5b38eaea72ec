"""Simple configuration management for the pricing simulation."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PRICESIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App info
    app_name: str = Field(default="Algorithmic Pricing Simulation")
    version: str = Field(default="0.1.0")
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Execution
    default_seed: int = Field(default=20240601, ge=0)
    max_workers: int = Field(default=1, ge=1, le=256)
    show_progress: bool = Field(default=False)

    # Simulation caps
    max_periods: int = Field(default=5_000_000, ge=1)
    max_replicates: int = Field(default=10_000, ge=1)

    # Exploration decay constants, one per algorithm family
    bandit_decay: float = Field(default=1e-3, gt=0)
    qlearning_decay: float = Field(default=2e-4, gt=0)
    reduced_qlearning_decay: float = Field(default=1e-3, gt=0)

    # Reduced-state Q-learning keeps every n-th grid price
    reduced_grid_stride: int = Field(default=2, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
