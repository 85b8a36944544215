"""
Test Suite for the Nearest Timezone Filler

This package contains unit tests and integration tests for:
- Spatial point projection and ordering
- KD-tree construction, mutation and nearest neighbor search
- Record I/O and the timezone filler
- Command line entry point

Run tests with: pytest -v
"""
