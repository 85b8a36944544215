"""
Synthetic Data Generator for the Nearest Timezone Filler

This module generates location datasets in the input format of the fill
tool:

    lat,lon,timezone      (labeled reference record)
    lat,lon,null          (unlabeled record to resolve)

Reference and query locations are scattered around a fixed set of anchor
cities with Gaussian jitter, so every query has an obvious expected
timezone. A share of the queries can be placed far out at sea to exercise
the distance threshold.

Example Usage:
    >>> from nearest_tz.synthetic_data import generate_location_dataset
    >>> dataset = generate_location_dataset(num_reference=1000, num_queries=200, seed=42)
    >>> save_dataset(dataset.lines, "data/locations.csv.gz")
"""

import gzip
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

from .data_models import TIMEZONE_UNDEFINED


# (name, latitude, longitude, timezone)
ANCHOR_CITIES: List[Tuple[str, float, float, str]] = [
    ("Berlin", 52.52, 13.405, "Europe/Berlin"),
    ("Paris", 48.85, 2.35, "Europe/Paris"),
    ("London", 51.51, -0.13, "Europe/London"),
    ("Madrid", 40.42, -3.70, "Europe/Madrid"),
    ("New York", 40.71, -74.01, "America/New_York"),
    ("Chicago", 41.88, -87.63, "America/Chicago"),
    ("Los Angeles", 34.05, -118.24, "America/Los_Angeles"),
    ("Sao Paulo", -23.55, -46.63, "America/Sao_Paulo"),
    ("Tokyo", 35.68, 139.69, "Asia/Tokyo"),
    ("Sydney", -33.87, 151.21, "Australia/Sydney"),
    ("Johannesburg", -26.20, 28.05, "Africa/Johannesburg"),
    ("Mumbai", 19.08, 72.88, "Asia/Kolkata"),
]

# Open-ocean positions, thousands of kilometers from every anchor
REMOTE_POINTS: List[Tuple[float, float]] = [
    (-48.0, -123.0),   # South Pacific
    (-40.0, 80.0),     # Southern Indian Ocean
    (-60.0, -20.0),    # South Atlantic
]


@dataclass
class SyntheticDataset:
    """
    A generated dataset and its expected outcome.

    Attributes:
        lines: Input lines, labeled and unlabeled records shuffled together
        expected: Expected timezone per unlabeled line index (None when the
            query was placed far from every anchor)
        seed: Seed used for generation
    """
    lines: List[str]
    expected: dict = field(default_factory=dict)
    seed: Optional[int] = None

    @property
    def num_unlabeled(self) -> int:
        return len(self.expected)


def _jittered(rng: np.random.Generator, lat: float, lon: float, jitter_deg: float):
    dlat, dlon = rng.normal(0.0, jitter_deg, 2)
    new_lat = float(np.clip(lat + dlat, -90.0, 90.0))
    new_lon = float((lon + dlon + 180.0) % 360.0 - 180.0)
    return new_lat, new_lon


def generate_location_dataset(
    num_reference: int = 1000,
    num_queries: int = 200,
    jitter_deg: float = 0.5,
    remote_fraction: float = 0.0,
    undefined_token: str = TIMEZONE_UNDEFINED,
    seed: Optional[int] = None
) -> SyntheticDataset:
    """
    Generate labeled and unlabeled location records.

    Args:
        num_reference: Number of labeled records
        num_queries: Number of unlabeled records
        jitter_deg: Standard deviation of the Gaussian jitter, in degrees
        remote_fraction: Share of queries placed in open ocean
        undefined_token: Timezone marker for unlabeled records
        seed: Random seed for reproducibility

    Returns:
        SyntheticDataset with shuffled lines and expected timezones

    Complexity:
        Time: O(num_reference + num_queries)
    """
    rng = np.random.default_rng(seed)

    rows: List[Tuple[str, Optional[str]]] = []
    for _ in range(num_reference):
        _, lat, lon, tz = ANCHOR_CITIES[rng.integers(len(ANCHOR_CITIES))]
        lat, lon = _jittered(rng, lat, lon, jitter_deg)
        rows.append((f"{lat:.6f},{lon:.6f},{tz}", None))

    for _ in range(num_queries):
        if rng.random() < remote_fraction:
            lat, lon = REMOTE_POINTS[rng.integers(len(REMOTE_POINTS))]
            expected = None
        else:
            _, lat, lon, expected = ANCHOR_CITIES[rng.integers(len(ANCHOR_CITIES))]
        lat, lon = _jittered(rng, lat, lon, jitter_deg)
        rows.append((f"{lat:.6f},{lon:.6f},{undefined_token}", expected))

    order = rng.permutation(len(rows))
    lines: List[str] = []
    expected_by_index = {}
    for position, i in enumerate(order):
        line, expected = rows[i]
        lines.append(line)
        if line.endswith(f",{undefined_token}"):
            expected_by_index[position] = expected

    return SyntheticDataset(lines=lines, expected=expected_by_index, seed=seed)


def save_dataset(lines: List[str], filepath) -> Path:
    """
    Write dataset lines to disk; a ".gz" suffix writes gzip.

    Returns:
        Path of the written file
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = "".join(f"{line}\n" for line in lines)
    if path.suffix == ".gz":
        with gzip.open(path, "wt", encoding="utf-8") as f:
            f.write(content)
    else:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    return path
