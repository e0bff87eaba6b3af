"""
GeoBench Monitor - Benchmark orchestration and performance telemetry

Supervises an external benchmark process, aggregates metrics from
time-series backends and streams live updates to dashboard clients.
"""

import os

# Read version from VERSION file
_version_file = os.path.join(os.path.dirname(os.path.dirname(__file__)), "VERSION")
try:
    with open(_version_file) as f:
        __version__ = f.read().strip()
except (FileNotFoundError, IOError):
    __version__ = "1.0.0"

__license__ = "MIT"
