import abc

import numpy as np


class StatsVar(abc.ABC):
    """Abstract base class for tracking statistics of a value over time."""

    @abc.abstractmethod
    def record(self, value: float) -> None:
        """Record a new sample value."""
        pass

    @property
    @abc.abstractmethod
    def sample_count(self) -> int:
        pass

    @abc.abstractmethod
    def _get_valid_samples(self) -> np.ndarray:
        pass

    @property
    def mean(self) -> float:
        valid = self._get_valid_samples()
        if len(valid) == 0:
            return 0.0
        return float(np.mean(valid))

    def get_percentiles(self) -> tuple[float, float, float]:
        """Return (p50, p95, p99) as a tuple of floats."""
        valid = self._get_valid_samples()
        if len(valid) == 0:
            return (0.0, 0.0, 0.0)

        p50, p95, p99 = np.percentile(valid, [50, 95, 99])
        return (float(p50), float(p95), float(p99))

    def get_percentiles_string(self) -> str:
        p50, p95, p99 = self.get_percentiles()
        return f"p50={p50:.2f} p95={p95:.2f} p99={p99:.2f}"


class MostRecentNVar(StatsVar):
    """Track statistics over a ring buffer of the most recent N samples."""

    def __init__(self, num_samples: int = 1000) -> None:
        self.num_samples = num_samples
        self.samples = np.zeros(num_samples, dtype=np.float64)
        self.count = 0
        self.write_index = 0

    def record(self, value: float) -> None:
        self.samples[self.write_index] = value
        self.write_index = (self.write_index + 1) % self.num_samples
        self.count += 1

    def _get_valid_samples(self) -> np.ndarray:
        if self.count <= self.num_samples:
            return self.samples[: self.count]

        # Wrapped: oldest sample sits at write_index
        return np.concatenate(
            [self.samples[self.write_index :], self.samples[: self.write_index]]
        )

    @property
    def sample_count(self) -> int:
        return min(self.count, self.num_samples)
