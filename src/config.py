from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Redis
    redis_url: str = "redis://localhost:6379"

    # Calendar: hours since epoch 0 is the canonical time unit
    hours_per_day: int = 24
    days_per_year: int = 324

    # Catalog
    catalog_path: Path | None = None
    events_path: Path | None = None
    binary_half_separation: float = 15.0  # 0.1 AU at 150 units per AU

    # Persisted event store
    data_dir: Path = Path("data")
    precomputed_events_path: Path = Path("data/precomputed-events.json")

    # Search engine
    position_cache_size: int = 50
    yield_every: int = 500
    escape_step_days: float = 30.0
    occultation_escape_step_days: float = 90.0
    escape_budget_years: float = 2.0
    occultation_escape_budget_years: float = 10.0
    window_min_half_days: float = 10.0
    window_max_iterations: int = 10_000
    lookahead_years: float = 5_000.0
    occultation_lookahead_years: float = 50_000.0
    broad_scan_years: float = 100.0
    occultation_broad_scan_years: float = 80_000.0
    broad_max_iterations: int = 100_000
    occultation_broad_max_iterations: int = 5_000_000
    stable_days: int = 2
    tight_stable_days: int = 1
    tight_tolerance_deg: float = 1.0

    # Batch precompute
    precompute_buffer_days: float = 3.0
    precompute_max_years: float = 100_000.0
    priority_events: list[str] = [
        "The Great Eclipse",
        "Great Conjunction",
        "Celestial Origin Alignment",
    ]

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def hours_per_year(self) -> float:
        return float(self.hours_per_day * self.days_per_year)


settings = Settings()

# Ensure data directory exists
settings.data_dir.mkdir(parents=True, exist_ok=True)
