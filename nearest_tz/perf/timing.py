"""
Timing and Benchmarking Utilities

Utilities for measuring stage durations of a fill run and for comparing
the KD-tree against the brute-force baseline.

Features:
- Timer context manager for stage timing
- Benchmark result container with summary statistics
- Speedup calculation

Example:
    >>> with Timer("Building KD-tree") as t:
    ...     tree = KdTree(points)
    Building KD-tree: 12.40 ms
    >>> result = benchmark_function(tree.k_nearest_neighbors, args=(query, 1))
    >>> print(result.summary())
"""

import statistics
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


class Timer:
    """
    Context manager for timing code blocks.

    Uses time.perf_counter(). When `verbose` is set and the timer has a
    name, the elapsed time is printed on exit.

    Attributes:
        name: Optional name of the timed stage
        elapsed: Elapsed time in seconds
    """

    def __init__(self, name: Optional[str] = None, verbose: bool = True):
        self.name = name
        self.verbose = verbose
        self._start: float = 0
        self.elapsed: float = 0

    def __enter__(self) -> 'Timer':
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed = time.perf_counter() - self._start
        if self.verbose and self.name:
            print(f"{self.name}: {self.elapsed_ms:.2f} ms")

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        return self.elapsed * 1000


def compute_speedup(baseline_time: float, optimized_time: float) -> float:
    """
    Speedup = baseline_time / optimized_time

    A speedup > 1 means the optimized version is faster.
    """
    if optimized_time <= 0:
        return float('inf')
    return baseline_time / optimized_time


@dataclass
class BenchmarkResult:
    """
    Timing trials of one benchmarked operation.

    Attributes:
        name: Name of the benchmarked operation
        times_ms: Trial durations in milliseconds
        metadata: Extra information (problem size, k, ...)
    """
    name: str
    times_ms: List[float] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_trial(self, time_ms: float) -> None:
        self.times_ms.append(time_ms)

    @property
    def mean_ms(self) -> float:
        if not self.times_ms:
            return 0.0
        return statistics.mean(self.times_ms)

    @property
    def std_ms(self) -> float:
        if len(self.times_ms) < 2:
            return 0.0
        return statistics.stdev(self.times_ms)

    @property
    def min_ms(self) -> float:
        return min(self.times_ms) if self.times_ms else 0.0

    @property
    def max_ms(self) -> float:
        return max(self.times_ms) if self.times_ms else 0.0

    @property
    def num_trials(self) -> int:
        return len(self.times_ms)

    def summary(self) -> str:
        """One-line summary string."""
        return (f"{self.name}: {self.mean_ms:.2f} ± {self.std_ms:.2f} ms "
                f"(n={self.num_trials}, min={self.min_ms:.2f}, max={self.max_ms:.2f})")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'mean_ms': self.mean_ms,
            'std_ms': self.std_ms,
            'min_ms': self.min_ms,
            'max_ms': self.max_ms,
            'num_trials': self.num_trials,
            'metadata': self.metadata
        }


def benchmark_function(
    func: Callable,
    args: tuple = (),
    kwargs: Optional[dict] = None,
    n_trials: int = 5,
    warmup: int = 1,
    name: Optional[str] = None
) -> BenchmarkResult:
    """
    Benchmark a single function.

    Args:
        func: Function to benchmark
        args: Positional arguments for function
        kwargs: Keyword arguments for function
        n_trials: Number of timing trials
        warmup: Number of untimed warmup runs
        name: Optional name for the result (defaults to func.__name__)

    Returns:
        BenchmarkResult with one entry per trial
    """
    if kwargs is None:
        kwargs = {}
    result = BenchmarkResult(name or getattr(func, "__name__", "function"))

    for _ in range(warmup):
        func(*args, **kwargs)

    for _ in range(n_trials):
        with Timer(verbose=False) as t:
            func(*args, **kwargs)
        result.add_trial(t.elapsed_ms)

    return result
