"""
Data Models for the Nearest Timezone Filler

This module defines the data structures that flow through the batch tool.
Uses Python dataclasses for clean, type-hinted data containers.

Data Flow:
    input line → LocationRecord → Location (labeled, indexed in the KD-tree)
                                → Location (unlabeled, used as a query)
    per-partition counts → FillReport
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any

from .geometry.spatial_point import SpatialPoint, EARTH_RADIUS_KM, project


TIMEZONE_UNDEFINED = "null"


@dataclass(frozen=True, eq=False)
class Location(SpatialPoint):
    """
    A point on the Earth carrying an optional timezone label.

    The projected (x, y, z) coordinates are the identity of the location;
    equality and ordering ignore the label and the original degrees.

    Attributes:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        timezone: IANA timezone name, or None when unknown
    """
    latitude: float
    longitude: float
    timezone: Optional[str] = None

    @classmethod
    def create(
        cls,
        latitude: float,
        longitude: float,
        timezone: Optional[str] = None
    ) -> "Location":
        """Project a latitude/longitude pair onto the Earth sphere."""
        x, y, z = project(latitude, longitude, EARTH_RADIUS_KM)
        return cls(x, y, z, float(latitude), float(longitude), timezone)

    def __str__(self):
        return f"Location{{timezone='{self.timezone}' point='{super().__str__()}'}}"


@dataclass
class LocationRecord:
    """
    One parsed line of the input dataset.

    Attributes:
        line_number: 1-based position of the line in the input file
        fields: Raw comma-separated fields (kept to rebuild the output line)
        latitude: Parsed latitude in degrees
        longitude: Parsed longitude in degrees
        timezone: Timezone label, None when the record is unlabeled
    """
    line_number: int
    fields: List[str]
    latitude: float
    longitude: float
    timezone: Optional[str] = None

    @property
    def is_labeled(self) -> bool:
        return self.timezone is not None

    def to_location(self) -> Location:
        """Build the spatial location for indexing or querying."""
        return Location.create(self.latitude, self.longitude, self.timezone)

    def with_timezone(self, timezone: str) -> str:
        """
        Render the record as a line with its timezone field set.

        Fields other than the timezone column are written back unchanged,
        and padding around the old timezone value is kept.
        """
        fields = list(self.fields)
        if len(fields) > 2:
            old = fields[2]
            core = old.strip()
            if core:
                start = old.index(core)
                fields[2] = old[:start] + timezone + old[start + len(core):]
            else:
                fields[2] = timezone
        else:
            fields.append(timezone)
        return ",".join(fields)

    def to_line(self) -> str:
        return ",".join(self.fields)


@dataclass
class PartitionResult:
    """
    Output of a single worker partition.

    Attributes:
        index: Partition number (also the output file suffix)
        lines: Output lines in input order
        resolved: Unlabeled records that received a timezone
        unresolved: Unlabeled records with no neighbor under the threshold
        passed_through: Labeled records copied unchanged
    """
    index: int
    lines: List[str] = field(default_factory=list)
    resolved: int = 0
    unresolved: int = 0
    passed_through: int = 0


@dataclass
class FillReport:
    """
    Final report after a timezone fill run.

    Attributes:
        total_records: Number of non-blank input lines
        reference_points: Labeled records indexed in the KD-tree
        resolved: Unlabeled records that received a timezone
        unresolved: Unlabeled records left without a timezone
        malformed: Lines that could not be parsed
        max_distance_km: Distance threshold used for resolution
        output_paths: Files written, one per partition
        processing_time_ms: Wall time of the run
    """
    total_records: int
    reference_points: int
    resolved: int
    unresolved: int
    malformed: int = 0
    max_distance_km: float = 0.0
    output_paths: List[str] = field(default_factory=list)
    processing_time_ms: float = 0.0

    @property
    def unlabeled(self) -> int:
        """Number of records that needed a timezone."""
        return self.resolved + self.unresolved

    @property
    def resolution_rate(self) -> float:
        """Proportion of unlabeled records that were resolved."""
        if self.unlabeled == 0:
            return 0.0
        return self.resolved / self.unlabeled

    @classmethod
    def from_partitions(
        cls,
        partitions: List[PartitionResult],
        total_records: int,
        reference_points: int,
        malformed: int,
        max_distance_km: float
    ) -> "FillReport":
        """Aggregate per-partition counters into a single report."""
        return cls(
            total_records=total_records,
            reference_points=reference_points,
            resolved=sum(p.resolved for p in partitions),
            unresolved=sum(p.unresolved for p in partitions),
            malformed=malformed,
            max_distance_km=max_distance_km
        )

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [
            "=" * 60,
            "TIMEZONE FILL REPORT",
            "=" * 60,
            f"Input Records:        {self.total_records}",
            f"Reference Points:     {self.reference_points}",
            f"Unlabeled Records:    {self.unlabeled}",
            f"Resolved:             {self.resolved}",
            f"Unresolved:           {self.unresolved}",
            f"Malformed Lines:      {self.malformed}",
            f"Resolution Rate:      {self.resolution_rate:.2%}",
            f"Distance Threshold:   {self.max_distance_km:.1f} km",
            f"Processing Time:      {self.processing_time_ms:.2f} ms",
            "-" * 60,
            "OUTPUT FILES:",
        ]
        for path in self.output_paths:
            lines.append(f"  {path}")
        lines.append("=" * 60)
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_records": self.total_records,
            "reference_points": self.reference_points,
            "unlabeled": self.unlabeled,
            "resolved": self.resolved,
            "unresolved": self.unresolved,
            "malformed": self.malformed,
            "resolution_rate": self.resolution_rate,
            "max_distance_km": self.max_distance_km,
            "output_paths": self.output_paths,
            "processing_time_ms": self.processing_time_ms
        }
