"""
Record Input/Output

Reading, parsing and writing of line-delimited location records:

    lat,lon[,timezone[,extra fields...]]

Files ending in ``.gz`` are read through gzip; everything else is read as
plain UTF-8 text. A record is unlabeled when its timezone field is missing,
empty, or equal to the undefined token ("null" by default).
"""

import gzip
from pathlib import Path
from typing import List, Optional, Union

from ..data_models import LocationRecord, TIMEZONE_UNDEFINED


PathLike = Union[str, Path]


class RecordParseError(ValueError):
    """Raised when a line cannot be parsed into coordinates."""

    def __init__(self, line_number: int, line: str, reason: str):
        super().__init__(f"line {line_number}: {reason}: {line!r}")
        self.line_number = line_number
        self.line = line


def read_lines(path: PathLike) -> List[str]:
    """
    Read every line of a plain or gzip-compressed text file.

    Args:
        path: File path; a ".gz" suffix selects gzip decoding

    Returns:
        Lines without their trailing newline
    """
    path = Path(path)
    if path.suffix == ".gz":
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return f.read().splitlines()
    with open(path, "r", encoding="utf-8") as f:
        return f.read().splitlines()


def parse_record(
    line: str,
    line_number: int = 0,
    undefined_token: str = TIMEZONE_UNDEFINED
) -> LocationRecord:
    """
    Parse one input line.

    Args:
        line: Raw line, without newline
        line_number: Position in the file, for error messages
        undefined_token: Timezone value marking an unlabeled record

    Returns:
        LocationRecord, with timezone None when unlabeled

    Raises:
        RecordParseError: if latitude or longitude is missing or not a number
    """
    # Raw fields are kept so the output line can be rebuilt unchanged
    fields = line.split(",")
    if len(fields) < 2:
        raise RecordParseError(line_number, line, "expected at least latitude and longitude")

    try:
        latitude = float(fields[0].strip())
        longitude = float(fields[1].strip())
    except ValueError:
        raise RecordParseError(line_number, line, "coordinates are not numbers")

    if not (-90.0 <= latitude <= 90.0) or not (-180.0 <= longitude <= 180.0):
        raise RecordParseError(line_number, line, "coordinates out of range")

    timezone: Optional[str] = fields[2].strip() if len(fields) > 2 else None
    if timezone == "" or timezone == undefined_token:
        timezone = None

    return LocationRecord(
        line_number=line_number,
        fields=fields,
        latitude=latitude,
        longitude=longitude,
        timezone=timezone
    )


def partition_path(output_dir: PathLike, index: int, prefix: str = "output_") -> Path:
    """Path of the output file for partition `index`."""
    return Path(output_dir) / f"{prefix}{index}"


def write_partition(path: PathLike, lines: List[str]) -> Path:
    """
    Write output lines, one per line, creating parent directories.

    Returns:
        The path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        for line in lines:
            f.write(line)
            f.write("\n")
    return path
