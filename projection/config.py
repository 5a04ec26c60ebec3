"""Model configuration: loads the JSON configs shipped with the package."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_CONFIG_DIR = Path(__file__).resolve().parent / "config"


@lru_cache(maxsize=16)
def load_config(name: str) -> dict:
    """Load a JSON config file by name (without .json extension)."""
    path = _CONFIG_DIR / f"{name}.json"
    with open(path, "r") as f:
        return json.load(f)


def load_settings() -> dict:
    return load_config("settings")


def load_default_scenario() -> dict:
    return load_config("scenario_default")


@dataclass(frozen=True)
class SolverConstants:
    """Iteration limit and convergence tolerances for the circular solver."""
    max_iterations: int = 10
    convergence_threshold: float = 0.0001
    absolute_error_threshold: float = 0.01
    slow_solve_ms: float = 100.0

    @classmethod
    def load(cls) -> "SolverConstants":
        s = load_settings()["solver"]
        return cls(
            max_iterations=int(s["max_iterations"]),
            convergence_threshold=float(s["convergence_threshold"]),
            absolute_error_threshold=float(s["absolute_error_threshold"]),
            slow_solve_ms=float(s["slow_solve_ms"]),
        )


@dataclass(frozen=True)
class ProjectionDefaults:
    """Defaults applied when the caller omits optional projection inputs."""
    depreciation_rate: float = 0.10
    starting_cash: float = 5_000_000.0
    opening_equity: float = 55_000_000.0
    staff_cost_cpi_frequency: int = 1

    @classmethod
    def load(cls) -> "ProjectionDefaults":
        p = load_settings()["projection"]
        return cls(
            depreciation_rate=float(p["depreciation_rate"]),
            starting_cash=float(p["starting_cash"]),
            opening_equity=float(p["opening_equity"]),
            staff_cost_cpi_frequency=int(p["staff_cost_cpi_frequency"]),
        )
