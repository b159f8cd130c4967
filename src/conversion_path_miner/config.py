"""Run configuration for the path miner."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class MinerConfig:
    """Tunable knobs for one recompute run."""

    top_k: int = 10  # Rows kept per analysis type.
    last_n: int = 5  # Path length nearest conversion.
    min_combination_size: int = 2
    include_zero_activity_users: bool = True
    workers: int = 1  # Processes used for the per-user reduction.

    def validate(self) -> "MinerConfig":
        if self.top_k < 1:
            raise ValueError("top_k must be at least 1")
        if self.last_n < 1:
            raise ValueError("last_n must be at least 1")
        if self.min_combination_size < 2:
            raise ValueError("min_combination_size must be at least 2")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        return self
