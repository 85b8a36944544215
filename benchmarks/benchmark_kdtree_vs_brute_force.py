#!/usr/bin/env python3
"""
Benchmark Script: KD-Tree vs Brute Force

This script measures the cost of nearest timezone lookups with:

1. Brute force: distance to every reference point (numpy vectorized)
2. KD-tree: build once, then one k-nearest-neighbors query per location
3. Full fill: the multi-threaded TimezoneFiller on a synthetic dataset

It also records tree height, which shows how far a build is from the
ideal log2(n) depth.

Usage:
    python benchmarks/benchmark_kdtree_vs_brute_force.py
    python benchmarks/benchmark_kdtree_vs_brute_force.py --sizes 1000,10000 --trials 5
"""

import argparse
import csv
import math
import sys
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from nearest_tz.geometry.kd_tree import KdTree, brute_force_k_nearest, random_sphere_points
from nearest_tz.synthetic_data import generate_location_dataset
from nearest_tz.tzfill.timezone_filler import TimezoneFiller
from nearest_tz.perf.timing import Timer, BenchmarkResult, compute_speedup


def benchmark_brute_force(points, queries, k: int, n_trials: int = 3) -> BenchmarkResult:
    """
    Benchmark brute-force k nearest neighbors.

    Complexity: O(n × m) where n = reference points, m = queries
    """
    result = BenchmarkResult("Brute Force", metadata={'k': k})
    for _ in range(n_trials):
        with Timer(verbose=False) as t:
            for q in queries:
                brute_force_k_nearest(points, q, k)
        result.add_trial(t.elapsed_ms)
    return result


def benchmark_kdtree(tree: KdTree, queries, k: int, n_trials: int = 3) -> BenchmarkResult:
    """
    Benchmark KD-tree k nearest neighbors on a prebuilt tree.

    Complexity: O(m k log n) average
    """
    result = BenchmarkResult("KD-Tree", metadata={'k': k})
    for _ in range(n_trials):
        with Timer(verbose=False) as t:
            for q in queries:
                tree.k_nearest_neighbors(q, k)
        result.add_trial(t.elapsed_ms)
    return result


def benchmark_fill(num_reference: int, num_queries: int, workers: int,
                   n_trials: int = 3) -> BenchmarkResult:
    """Benchmark a complete in-memory fill run."""
    dataset = generate_location_dataset(num_reference, num_queries, seed=num_reference)
    result = BenchmarkResult("Timezone Fill", metadata={'workers': workers})
    for _ in range(n_trials):
        filler = TimezoneFiller(max_distance_km=400, num_workers=workers)
        _, report = filler.fill(dataset.lines)
        result.add_trial(report.processing_time_ms)
    return result


def run_benchmark_suite(
    sizes: List[int],
    num_queries: int = 200,
    k: int = 1,
    workers: int = 4,
    n_trials: int = 3,
    verbose: bool = True
) -> List[Dict[str, Any]]:
    """
    Run the benchmark suite for multiple tree sizes.

    Returns:
        List of result dictionaries, one per size
    """
    results = []

    for size in sizes:
        if verbose:
            print(f"\n{'='*60}")
            print(f"Benchmarking size: {size}")
            print('='*60)

        points = random_sphere_points(size, seed=42 + size)
        queries = random_sphere_points(num_queries, seed=7 + size)

        with Timer(verbose=False) as build_timer:
            tree = KdTree(points)

        entry = {
            'num_points': size,
            'num_queries': num_queries,
            'k': k,
            'build_ms': build_timer.elapsed_ms,
            'tree_height': tree.height(),
            'ideal_height': math.ceil(math.log2(size + 1)),
        }

        kd_result = benchmark_kdtree(tree, queries, k, n_trials)
        bf_result = benchmark_brute_force(points, queries, k, n_trials)
        fill_result = benchmark_fill(size, num_queries, workers, n_trials)

        entry['kdtree_ms'] = kd_result.mean_ms
        entry['kdtree_std'] = kd_result.std_ms
        entry['brute_force_ms'] = bf_result.mean_ms
        entry['brute_force_std'] = bf_result.std_ms
        entry['fill_ms'] = fill_result.mean_ms
        entry['speedup_kdtree_vs_brute_force'] = compute_speedup(bf_result.mean_ms, kd_result.mean_ms)

        if verbose:
            print(f"  Build: {entry['build_ms']:.2f} ms, height {entry['tree_height']} "
                  f"(ideal {entry['ideal_height']})")
            print(f"  {kd_result.summary()}")
            print(f"  {bf_result.summary()}")
            print(f"  {fill_result.summary()}")

        results.append(entry)

    return results


def save_results_csv(results: List[Dict[str, Any]], filepath: str):
    """Save benchmark results to CSV file."""
    if not results:
        return
    with open(filepath, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=list(results[0].keys()))
        writer.writeheader()
        writer.writerows(results)


def print_summary_table(results: List[Dict[str, Any]]):
    """Print formatted summary table."""
    print("\n" + "=" * 80)
    print("BENCHMARK RESULTS SUMMARY")
    print("=" * 80)
    print(f"{'Size':>10} {'Height':>8} {'Build':>10} {'KD-Tree':>10} {'Brute':>10} {'Fill':>10} {'Speedup':>9}")
    print(f"{'':>10} {'':>8} {'(ms)':>10} {'(ms)':>10} {'(ms)':>10} {'(ms)':>10} {'':>9}")
    print("-" * 80)
    for r in results:
        print(f"{r['num_points']:>10} {r['tree_height']:>8} {r['build_ms']:>10.2f} "
              f"{r['kdtree_ms']:>10.2f} {r['brute_force_ms']:>10.2f} {r['fill_ms']:>10.2f} "
              f"{r['speedup_kdtree_vs_brute_force']:>8.2f}×")
    print("=" * 80)
    speedups = [r['speedup_kdtree_vs_brute_force'] for r in results]
    print(f"Mean KD-tree speedup: {np.mean(speedups):.2f}×")


def main():
    parser = argparse.ArgumentParser(description='Benchmark KD-tree vs brute force')
    parser.add_argument('--sizes', type=str, default='1000,5000,20000',
                        help='Comma-separated tree sizes')
    parser.add_argument('--queries', type=int, default=200,
                        help='Number of queries per size')
    parser.add_argument('--k', type=int, default=1,
                        help='Neighbors per query')
    parser.add_argument('--workers', type=int, default=4,
                        help='Worker threads for the fill benchmark')
    parser.add_argument('--trials', type=int, default=3,
                        help='Number of trials per benchmark')
    parser.add_argument('--output', type=str, default='benchmarks/benchmark_results.csv',
                        help='Output CSV file path')
    parser.add_argument('--quiet', action='store_true',
                        help='Suppress progress output')
    args = parser.parse_args()

    sizes = [int(s.strip()) for s in args.sizes.split(',')]
    results = run_benchmark_suite(
        sizes,
        num_queries=args.queries,
        k=args.k,
        workers=args.workers,
        n_trials=args.trials,
        verbose=not args.quiet
    )

    print_summary_table(results)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    save_results_csv(results, str(output_path))
    print(f"\nResults saved to: {output_path}")


if __name__ == "__main__":
    main()
