"""
Nearest Timezone Filler

This package assigns timezones to geographic coordinates that lack one, by
looking up the nearest labeled coordinate in a KD-tree built over points
projected onto the Earth sphere.

Main modules:
- geometry: Spatial point model, KD-tree and tree printer
- data_models: Locations, parsed records and fill reports
- tzfill: Record I/O and the multi-threaded timezone filler
- synthetic_data: Generate labeled/unlabeled location datasets
- perf: Timing and benchmarking utilities
"""

__version__ = "1.0.0"
