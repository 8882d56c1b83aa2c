"""Compaction subsystem: collapse runs of identical datastream versions.

Walks a datastream's version history oldest to newest, finds runs of
adjacent versions with equal checksums and range-purges everything after
the oldest member of each run.
"""

from dsprune.compact.compactor import (
    CompactionResult,
    CompactorState,
    PurgeRange,
    compact_datastream,
    purge_range_for,
)
from dsprune.compact.history import DatastreamVersion, VersionHistory
from dsprune.compact.runs import Run, checksums_match, detect_run, plan_runs
from dsprune.compact.timestamps import MalformedTimestamp, format_timestamp, parse_timestamp

__all__ = [
    "CompactionResult",
    "CompactorState",
    "DatastreamVersion",
    "MalformedTimestamp",
    "PurgeRange",
    "Run",
    "VersionHistory",
    "checksums_match",
    "compact_datastream",
    "detect_run",
    "format_timestamp",
    "parse_timestamp",
    "plan_runs",
    "purge_range_for",
]
