"""
Timezone Filler

This module implements the batch logic that fills in missing timezones:

Fill Strategy:
    1. Parse every input line into a LocationRecord (malformed lines are
       counted and skipped)
    2. Build a KD-tree from the labeled records only
    3. Split the records into contiguous partitions, one per worker thread
    4. For each unlabeled record, take the single nearest labeled location;
       accept its timezone only if it lies strictly closer than the
       distance threshold
    5. Write each partition to its own output file

The tree is built once and never mutated afterwards, so the worker threads
share it without locking.

Complexity Analysis:
    O(n log² n) to build the tree over n labeled records, then
    O(m log n) on average for m unlabeled records.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..data_models import (
    Location, LocationRecord, PartitionResult, FillReport, TIMEZONE_UNDEFINED
)
from ..geometry.kd_tree import KdTree, Neighbor
from ..perf.timing import Timer
from .record_io import (
    RecordParseError, read_lines, parse_record, partition_path, write_partition
)


class TimezoneFiller:
    """
    Assigns timezones to unlabeled locations from their nearest labeled
    neighbor.

    Attributes:
        max_distance_km: A neighbor must be strictly closer than this
        num_workers: Number of worker threads (and output partitions)
        undefined_token: Timezone value marking unlabeled records
        keep_unresolved: Write unresolved records unchanged instead of
            dropping them
        verbose: Print progress for each stage

    Example:
        >>> filler = TimezoneFiller(max_distance_km=400, num_workers=2)
        >>> report = filler.run("data/locations.csv.gz")
        >>> print(report.summary())
    """

    def __init__(
        self,
        max_distance_km: float,
        num_workers: Optional[int] = None,
        undefined_token: str = TIMEZONE_UNDEFINED,
        keep_unresolved: bool = False,
        verbose: bool = False
    ):
        """
        Initialize the filler.

        Args:
            max_distance_km: Distance threshold in kilometers
            num_workers: Worker threads; None uses the CPU count
            undefined_token: Marker of a missing timezone
            keep_unresolved: Keep records that could not be resolved
            verbose: Print progress messages
        """
        if max_distance_km <= 0:
            raise ValueError(f"max_distance_km must be positive, got {max_distance_km}")
        if num_workers is not None and num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")

        self.max_distance_km = max_distance_km
        self.num_workers = num_workers or os.cpu_count() or 1
        self.undefined_token = undefined_token
        self.keep_unresolved = keep_unresolved
        self.verbose = verbose
        self.tree: Optional[KdTree] = None

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    def parse_lines(self, lines: Sequence[str]) -> Tuple[List[Tuple[str, LocationRecord]], int]:
        """
        Parse raw lines, skipping blank and malformed ones.

        Returns:
            Tuple of ((raw line, record) pairs in input order, malformed count)
        """
        parsed: List[Tuple[str, LocationRecord]] = []
        malformed = 0
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                record = parse_record(line, number, self.undefined_token)
            except RecordParseError as e:
                malformed += 1
                self._log(f"  Skipping malformed {e}")
                continue
            parsed.append((line, record))
        return parsed, malformed

    def build_index(self, records: Sequence[LocationRecord]) -> KdTree:
        """
        Build the KD-tree from the labeled records.

        Args:
            records: Parsed records; unlabeled ones are ignored

        Returns:
            The tree, also kept on self.tree
        """
        locations = [r.to_location() for r in records if r.is_labeled]
        self.tree = KdTree(locations)
        return self.tree

    def nearest(self, location: Location) -> Optional[Neighbor]:
        """
        Nearest labeled neighbor under the threshold.

        Returns:
            The neighbor, or None if the index is empty or the nearest
            labeled location is too far away
        """
        if self.tree is None:
            raise RuntimeError("build_index must be called before querying")

        neighbors = self.tree.k_nearest_neighbors(location, 1)
        if not neighbors:
            return None
        best = neighbors[0]
        if best.distance < self.max_distance_km:
            return best
        return None

    def resolve(self, record: LocationRecord) -> Optional[str]:
        """Timezone for an unlabeled record, or None if unresolved."""
        neighbor = self.nearest(record.to_location())
        if neighbor is None:
            return None
        return neighbor.point.timezone

    def process_partition(
        self,
        index: int,
        items: Sequence[Tuple[str, LocationRecord]]
    ) -> PartitionResult:
        """
        Resolve one contiguous slice of the records.

        Labeled lines pass through unchanged; resolved lines get their
        timezone field replaced.
        """
        result = PartitionResult(index=index)
        for line, record in items:
            if record.is_labeled:
                result.lines.append(line)
                result.passed_through += 1
                continue

            timezone = self.resolve(record)
            if timezone is not None:
                result.lines.append(record.with_timezone(timezone))
                result.resolved += 1
            else:
                result.unresolved += 1
                if self.keep_unresolved:
                    result.lines.append(line)

        self._log(f"  Partition {index}: {len(items)} records, "
                  f"{result.resolved} resolved, {result.unresolved} unresolved")
        return result

    def fill(self, lines: Sequence[str]) -> Tuple[List[PartitionResult], FillReport]:
        """
        Fill timezones for in-memory lines.

        Args:
            lines: Raw input lines

        Returns:
            Tuple of (partition results in order, aggregated report)
        """
        with Timer() as timer:
            parsed, malformed = self.parse_lines(lines)
            records = [record for _, record in parsed]

            with Timer("Building KD-tree", verbose=self.verbose):
                tree = self.build_index(records)
            self._log(f"  Indexed {len(tree)} labeled locations")

            # array_split keeps the remainder, so no record is left out
            chunks = np.array_split(np.arange(len(parsed)), self.num_workers)
            self._log(f"  Number of jobs: {len(chunks)}, "
                      f"records per job: {len(chunks[0]) if chunks else 0}")

            with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
                futures = [
                    executor.submit(
                        self.process_partition,
                        i,
                        parsed[int(chunk[0]):int(chunk[-1]) + 1] if len(chunk) else []
                    )
                    for i, chunk in enumerate(chunks)
                ]
                partitions = [f.result() for f in futures]

        report = FillReport.from_partitions(
            partitions,
            total_records=len(parsed) + malformed,
            reference_points=len(tree),
            malformed=malformed,
            max_distance_km=self.max_distance_km
        )
        report.processing_time_ms = timer.elapsed_ms
        return partitions, report

    def run(self, input_path, output_dir=None) -> FillReport:
        """
        Fill timezones for a file and write one output file per partition.

        Args:
            input_path: Plain or .gz input file
            output_dir: Destination directory; defaults to the input's
                directory

        Returns:
            FillReport including the written paths
        """
        input_path = Path(input_path)
        output_dir = Path(output_dir) if output_dir is not None else input_path.parent

        with Timer() as timer:
            with Timer("Reading file", verbose=self.verbose):
                lines = read_lines(input_path)
            self._log(f"  Read {len(lines)} lines from {input_path}")

            partitions, report = self.fill(lines)

            for partition in partitions:
                path = write_partition(partition_path(output_dir, partition.index), partition.lines)
                report.output_paths.append(str(path))
                self._log(f"  Task {partition.index} done, data dumped in file: {path}")

        report.processing_time_ms = timer.elapsed_ms
        return report


def fill_timezones(
    lines: Sequence[str],
    max_distance_km: float,
    num_workers: int = 1,
    undefined_token: str = TIMEZONE_UNDEFINED
) -> List[str]:
    """
    Convenience wrapper: fill timezones and return the output lines in
    input order (unresolved records dropped).
    """
    filler = TimezoneFiller(
        max_distance_km=max_distance_km,
        num_workers=num_workers,
        undefined_token=undefined_token
    )
    partitions, _ = filler.fill(lines)
    return [line for p in partitions for line in p.lines]
