# -*- coding: utf-8 -*-
"""
Configuration Module
Run parameters for the marketplace simulation, loadable from the environment.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_STRATEGIES = ["Baseline", "Sama", "Andrew", "Amer", "Ziad", "Harmony"]
ENV_PREFIX = "SURPLUS_"


def _env(name: str, default=None):
    return os.getenv(ENV_PREFIX + name, default)


@dataclass
class SimulationConfig:
    """Configuration for a comparison run."""

    n_displayed: int = 5
    num_days: int = 7
    customers_per_day: int = 100
    seed: Optional[int] = 12345

    strategies: List[str] = field(default_factory=lambda: list(DEFAULT_STRATEGIES))

    # data sources (defaults / synthetic data when None)
    stores_csv: Optional[str] = None
    customers_csv: Optional[str] = None

    output_dir: str = "simulation_results"
    log_level: str = "INFO"
    log_to_file: bool = False

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SimulationConfig":
        """
        Build a configuration from SURPLUS_* environment variables.

        A .env file is read first when present; variables already set in the
        environment take precedence over it.
        """
        load_dotenv(env_file)
        config = cls()

        if _env("N_DISPLAYED") is not None:
            config.n_displayed = int(_env("N_DISPLAYED"))
        if _env("NUM_DAYS") is not None:
            config.num_days = int(_env("NUM_DAYS"))
        if _env("CUSTOMERS_PER_DAY") is not None:
            config.customers_per_day = int(_env("CUSTOMERS_PER_DAY"))
        seed = _env("SEED")
        if seed is not None:
            config.seed = None if seed.strip().lower() in ("", "none") else int(seed)
        strategies = _env("STRATEGIES")
        if strategies:
            config.strategies = [s.strip() for s in strategies.split(",") if s.strip()]

        config.stores_csv = _env("STORES_CSV", config.stores_csv) or None
        config.customers_csv = _env("CUSTOMERS_CSV", config.customers_csv) or None
        config.output_dir = _env("OUTPUT_DIR", config.output_dir)
        config.log_level = _env("LOG_LEVEL", config.log_level).upper()
        config.log_to_file = _env("LOG_TO_FILE", "false").lower() in ("1", "true", "yes")
        return config

    def validate(self) -> None:
        """Raise ValueError if any parameter is out of range."""
        from ranking_algorithm import STRATEGY_REGISTRY

        if self.n_displayed < 0:
            raise ValueError(f"n_displayed must be >= 0, got {self.n_displayed}")
        if self.num_days <= 0:
            raise ValueError(f"num_days must be positive, got {self.num_days}")
        if self.customers_per_day <= 0:
            raise ValueError(f"customers_per_day must be positive, got {self.customers_per_day}")
        unknown = [s for s in self.strategies if s not in STRATEGY_REGISTRY]
        if unknown:
            raise ValueError(f"Unknown strategies: {unknown}. Available: {list(STRATEGY_REGISTRY)}")
        if not self.strategies:
            raise ValueError("At least one strategy is required")
