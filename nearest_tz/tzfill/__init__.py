"""
Timezone Fill Module

Batch logic around the KD-tree: reading plain or gzip line files, parsing
location records, resolving missing timezones from the nearest labeled
location, and writing one output file per worker partition.
"""

from .record_io import (
    RecordParseError,
    read_lines,
    parse_record,
    write_partition
)
from .timezone_filler import (
    TimezoneFiller,
    fill_timezones
)

__all__ = [
    'RecordParseError',
    'read_lines',
    'parse_record',
    'write_partition',
    'TimezoneFiller',
    'fill_timezones'
]
