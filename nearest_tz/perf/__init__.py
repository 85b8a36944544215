"""
Performance Measurement Module

Timing and benchmarking utilities used by the fill pipeline and by the
KD-tree vs brute-force benchmarks.
"""

from .timing import (
    Timer,
    compute_speedup,
    BenchmarkResult,
    benchmark_function
)

__all__ = [
    'Timer',
    'compute_speedup',
    'BenchmarkResult',
    'benchmark_function'
]
