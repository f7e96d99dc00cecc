"""
Cogniverse Configuration

Loads configuration from environment variables with sensible defaults.
Only the composition root (bootstrap.build_system) reads this; library
classes take their parameters explicitly.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # PLN
    PLN_MAX_ITERATIONS: int = int(os.getenv("PLN_MAX_ITERATIONS", "100"))

    # ECAN attention economy
    ECAN_SPREAD_RATE: float = float(os.getenv("ECAN_SPREAD_RATE", "0.1"))
    ECAN_DECAY_RATE: float = float(os.getenv("ECAN_DECAY_RATE", "0.05"))
    ECAN_RENT_RATE: float = float(os.getenv("ECAN_RENT_RATE", "0.01"))
    ECAN_MAX_STI: float = float(os.getenv("ECAN_MAX_STI", "10000"))

    # MOSES evolution
    MOSES_POPULATION_SIZE: int = int(os.getenv("MOSES_POPULATION_SIZE", "100"))
    MOSES_MAX_GENERATIONS: int = int(os.getenv("MOSES_MAX_GENERATIONS", "50"))
    MOSES_MUTATION_RATE: float = float(os.getenv("MOSES_MUTATION_RATE", "0.1"))
    MOSES_CROSSOVER_RATE: float = float(os.getenv("MOSES_CROSSOVER_RATE", "0.7"))
    MOSES_ELITISM_COUNT: int = int(os.getenv("MOSES_ELITISM_COUNT", "5"))
    MOSES_TOURNAMENT_SIZE: int = int(os.getenv("MOSES_TOURNAMENT_SIZE", "3"))

    # Orchestration
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
    MESSAGE_HISTORY_LIMIT: int = int(os.getenv("MESSAGE_HISTORY_LIMIT", "100"))

    # Learning / strategy persistence
    # Empty path keeps strategies in memory only
    STRATEGY_STORE_PATH: str | None = os.getenv("STRATEGY_STORE_PATH") or None
    EXPLORATION_RATE: float = float(os.getenv("EXPLORATION_RATE", "0.2"))

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if values are out of range."""
        for name in (
            "ECAN_SPREAD_RATE",
            "ECAN_DECAY_RATE",
            "ECAN_RENT_RATE",
            "MOSES_MUTATION_RATE",
            "MOSES_CROSSOVER_RATE",
            "EXPLORATION_RATE",
        ):
            value = getattr(cls, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

        if cls.ECAN_MAX_STI <= 0:
            raise ValueError("ECAN_MAX_STI must be positive")

        if cls.MOSES_ELITISM_COUNT > cls.MOSES_POPULATION_SIZE:
            raise ValueError(
                "MOSES_ELITISM_COUNT cannot exceed MOSES_POPULATION_SIZE "
                f"({cls.MOSES_ELITISM_COUNT} > {cls.MOSES_POPULATION_SIZE})"
            )

        if cls.REQUEST_TIMEOUT_SECONDS <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Cogniverse Configuration:",
            f"  PLN max iterations: {cls.PLN_MAX_ITERATIONS}",
            f"  ECAN rates: spread={cls.ECAN_SPREAD_RATE} decay={cls.ECAN_DECAY_RATE} "
            f"rent={cls.ECAN_RENT_RATE} budget={cls.ECAN_MAX_STI}",
            f"  MOSES: population={cls.MOSES_POPULATION_SIZE} "
            f"generations={cls.MOSES_MAX_GENERATIONS}",
            f"  Request timeout: {cls.REQUEST_TIMEOUT_SECONDS}s",
            f"  Strategy store: {cls.STRATEGY_STORE_PATH or 'in-memory'}",
        ]
        return "\n".join(lines)
