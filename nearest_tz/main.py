"""
Main Entry Point for the Nearest Timezone Filler

This script provides a command-line interface for filling in missing
timezones in a location dataset. It orchestrates:

1. Reading the dataset (plain text or gzip)
2. Building a KD-tree over the labeled locations
3. Resolving unlabeled locations across worker threads
4. Writing one output file per worker

Usage:
    # Fill timezones, accepting neighbors closer than 400 km
    python -m nearest_tz.main --input data/locations.csv.gz --threshold 400

    # Generate a synthetic dataset
    python -m nearest_tz.main --generate-data --output data/locations.csv.gz

    # Run benchmark comparison
    python -m nearest_tz.main --benchmark --sizes 1000,10000
"""

import argparse
import csv
import sys
import zlib
from pathlib import Path

import numpy as np

from .synthetic_data import generate_location_dataset, save_dataset
from .geometry.kd_tree import KdTree, brute_force_k_nearest, random_sphere_points
from .tzfill.timezone_filler import TimezoneFiller
from .perf.timing import Timer, compute_speedup, benchmark_function


def print_header():
    """Print application header."""
    print("=" * 70)
    print("  NEAREST TIMEZONE FILLER")
    print("  KD-Tree Nearest Neighbor Search over the Earth Sphere")
    print("=" * 70)
    print()


def run_fill(args) -> int:
    """
    Fill missing timezones in the input file.

    Args:
        args: Command line arguments

    Returns:
        Process exit status
    """
    if args.threshold is None:
        print("error: --threshold is required with --input", file=sys.stderr)
        return 1

    if not args.quiet:
        print("Filling Timezones...")
        print("-" * 40)
        print(f"  Input file: {args.input}")
        print(f"  Distance threshold: {args.threshold} km")
        print(f"  Workers: {args.workers or 'auto'}")
        print(f"  Undefined token: {args.undefined_token!r}")
        print()

    filler = TimezoneFiller(
        max_distance_km=args.threshold,
        num_workers=args.workers,
        undefined_token=args.undefined_token,
        keep_unresolved=args.keep_unresolved,
        verbose=args.verbose
    )

    try:
        report = filler.run(args.input, output_dir=args.output_dir)
    except (OSError, UnicodeDecodeError, EOFError, zlib.error) as e:
        # EOFError and zlib.error: truncated or corrupt gzip stream
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.print_tree and filler.tree is not None:
        print(filler.tree)

    if not args.quiet:
        print(report.summary())
    return 0


def run_generate(args) -> int:
    """Generate a synthetic dataset and save it."""
    if args.output is None:
        print("error: --output is required with --generate-data", file=sys.stderr)
        return 1

    dataset = generate_location_dataset(
        num_reference=args.num_reference,
        num_queries=args.num_queries,
        jitter_deg=args.jitter_deg,
        remote_fraction=args.remote_fraction,
        undefined_token=args.undefined_token,
        seed=args.seed
    )
    try:
        path = save_dataset(dataset.lines, args.output)
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        print("Generating Synthetic Data...")
        print("-" * 40)
        print(f"  Reference records: {args.num_reference}")
        print(f"  Unlabeled records: {dataset.num_unlabeled}")
        print(f"  Random seed: {args.seed}")
        print(f"Data saved to: {path}")
        print()
    return 0


def run_benchmark(args) -> int:
    """Compare KD-tree and brute-force nearest neighbor search."""
    try:
        sizes = [int(s.strip()) for s in args.sizes.split(',')]
    except ValueError:
        print(f"error: --sizes must be comma-separated integers, got {args.sizes!r}",
              file=sys.stderr)
        return 1
    if any(size < 1 for size in sizes):
        print("error: --sizes must all be positive", file=sys.stderr)
        return 1

    if not args.quiet:
        print("Running Performance Benchmarks...")
        print("-" * 40)
        print(f"  Problem sizes: {sizes}")
        print(f"  Trials per size: {args.trials}")
        print()

    results = []
    for size in sizes:
        points = random_sphere_points(size, seed=args.seed + size)
        queries = random_sphere_points(args.num_queries, seed=args.seed + 2 * size + 1)

        with Timer(verbose=False) as build_timer:
            tree = KdTree(points)

        def kdtree_queries():
            for q in queries:
                tree.k_nearest_neighbors(q, 1)

        def brute_force_queries():
            for q in queries:
                brute_force_k_nearest(points, q, 1)

        kd = benchmark_function(kdtree_queries, n_trials=args.trials, name="kdtree")
        bf = benchmark_function(brute_force_queries, n_trials=args.trials, name="brute_force")

        result = {
            'num_points': size,
            'num_queries': len(queries),
            'build_ms': build_timer.elapsed_ms,
            'tree_height': tree.height(),
            'kdtree_ms': kd.mean_ms,
            'brute_force_ms': bf.mean_ms,
            'speedup': compute_speedup(bf.mean_ms, kd.mean_ms)
        }
        results.append(result)

        if not args.quiet:
            print(f"Size {size}: build {result['build_ms']:.2f} ms, "
                  f"height {result['tree_height']}")
            print(f"  {kd.summary()}")
            print(f"  {bf.summary()}")

    if not args.quiet:
        print("\n" + "=" * 70)
        print("BENCHMARK SUMMARY")
        print("=" * 70)
        print(f"{'Size':>10} {'Build(ms)':>12} {'KD-tree(ms)':>12} {'Brute(ms)':>12} {'Speedup':>10}")
        print("-" * 70)
        for r in results:
            print(f"{r['num_points']:>10} {r['build_ms']:>12.2f} "
                  f"{r['kdtree_ms']:>12.2f} {r['brute_force_ms']:>12.2f} "
                  f"{r['speedup']:>10.2f}×")
        print(f"\nMean speedup: {np.mean([r['speedup'] for r in results]):.2f}×")

    if args.save_benchmark and results:
        output_path = Path(args.benchmark_output)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=results[0].keys())
                writer.writeheader()
                writer.writerows(results)
        except OSError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        if not args.quiet:
            print(f"\nResults saved to: {output_path}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='nearest-tz',
        description='Fill missing timezones from the nearest labeled location',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Fill timezones within 400 km
  nearest-tz --input data/locations.csv.gz --threshold 400

  # Generate a synthetic dataset
  nearest-tz --generate-data --output data/locations.csv.gz --num-queries 500

  # Run benchmarks
  nearest-tz --benchmark --sizes 1000,10000
        """
    )

    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument('--input', '-i', type=str,
                            help='Source file (.csv or .gz) to fill')
    mode_group.add_argument('--generate-data', '-g', action='store_true',
                            help='Generate a synthetic dataset')
    mode_group.add_argument('--benchmark', '-b', action='store_true',
                            help='Run performance benchmarks')

    fill_group = parser.add_argument_group('Filling')
    fill_group.add_argument('--threshold', '-t', type=float,
                            help='Maximum neighbor distance in km')
    fill_group.add_argument('--workers', '-w', type=int, default=None,
                            help='Worker threads / output partitions (default: CPU count)')
    fill_group.add_argument('--output-dir', type=str, default=None,
                            help='Output directory (default: input file directory)')
    fill_group.add_argument('--undefined-token', type=str, default='null',
                            help='Timezone value of unlabeled records (default: null)')
    fill_group.add_argument('--keep-unresolved', action='store_true',
                            help='Write unresolved records unchanged instead of dropping them')
    fill_group.add_argument('--print-tree', action='store_true',
                            help='Print the KD-tree structure after filling')

    gen_group = parser.add_argument_group('Data Generation')
    gen_group.add_argument('--output', '-o', type=str,
                           help='Dataset path (.gz for compressed output)')
    gen_group.add_argument('--num-reference', type=int, default=1000,
                           help='Number of labeled records (default: 1000)')
    gen_group.add_argument('--num-queries', type=int, default=200,
                           help='Number of unlabeled records / benchmark queries (default: 200)')
    gen_group.add_argument('--jitter-deg', type=float, default=0.5,
                           help='Jitter around anchor cities in degrees (default: 0.5)')
    gen_group.add_argument('--remote-fraction', type=float, default=0.0,
                           help='Share of queries placed in open ocean (default: 0.0)')
    gen_group.add_argument('--seed', type=int, default=42,
                           help='Random seed (default: 42)')

    bench_group = parser.add_argument_group('Benchmarking')
    bench_group.add_argument('--sizes', type=str, default='1000,5000,20000',
                             help='Comma-separated tree sizes (default: 1000,5000,20000)')
    bench_group.add_argument('--trials', type=int, default=3,
                             help='Number of timing trials (default: 3)')
    bench_group.add_argument('--save-benchmark', action='store_true',
                             help='Save benchmark results to CSV')
    bench_group.add_argument('--benchmark-output', type=str,
                             default='benchmarks/benchmark_results.csv',
                             help='CSV path for --save-benchmark')

    out_group = parser.add_argument_group('Output')
    out_group.add_argument('--verbose', '-v', action='store_true',
                           help='Print progress for every stage and partition')
    out_group.add_argument('--quiet', '-q', action='store_true',
                           help='Minimal output')
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.quiet:
        args.verbose = False
    if args.workers is not None and args.workers < 1:
        print("error: --workers must be at least 1", file=sys.stderr)
        return 1
    if args.threshold is not None and args.threshold <= 0:
        print("error: --threshold must be positive", file=sys.stderr)
        return 1

    if not args.quiet:
        print_header()

    if args.benchmark:
        return run_benchmark(args)
    if args.generate_data:
        return run_generate(args)
    return run_fill(args)


if __name__ == "__main__":
    sys.exit(main())
