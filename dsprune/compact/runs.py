"""Run detection: find stretches of adjacent versions with equal checksums.

A run is compared pairwise, ``(i, i+1)``, ``(i+1, i+2)``, ... and ends at
the first pair that differs. The first member is the survivor; everything
after it in the run is redundant. Versions without a checksum match each
other, so an un-checksummed stretch collapses like any other run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from dsprune.compact.history import DatastreamVersion

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Run:
    """A maximal block of adjacent, checksum-equal versions (length >= 2)."""

    survivor_index: int
    last_index: int
    survivor: DatastreamVersion
    redundant: tuple[DatastreamVersion, ...]
    unterminated: bool = False

    @property
    def last(self) -> DatastreamVersion:
        return self.redundant[-1]

    @property
    def redundant_bytes(self) -> int:
        return sum(v.size_bytes for v in self.redundant)

    def __len__(self) -> int:
        return self.last_index - self.survivor_index + 1


def checksums_match(a: DatastreamVersion, b: DatastreamVersion) -> bool:
    """Return True when two versions count as identical content.

    Two absent checksums are a match.
    """
    return a.checksum == b.checksum


def detect_run(versions: Sequence[DatastreamVersion], start: int) -> Run | None:
    """Scan forward from *start* and return the run beginning there.

    Returns None when ``start + 1`` is out of range or the first pair
    already differs. The run is ``unterminated`` when it reaches the
    newest version, meaning its purge range has no upper bound.
    """
    if start < 0 or start + 1 >= len(versions):
        return None

    last = start
    while last + 1 < len(versions):
        current, following = versions[last], versions[last + 1]
        if not checksums_match(current, following):
            log.debug(
                "Checksums differ: %s vs %s", current.version_id, following.version_id,
            )
            break
        log.debug("Checksums match: %s = %s", current.version_id, following.version_id)
        last += 1

    if last == start:
        return None

    return Run(
        survivor_index=start,
        last_index=last,
        survivor=versions[start],
        redundant=tuple(versions[start + 1:last + 1]),
        unterminated=last == len(versions) - 1,
    )


def plan_runs(versions: Sequence[DatastreamVersion]) -> list[Run]:
    """Return every run in a single snapshot, oldest first.

    Used when nothing is purged (dry runs), so the snapshot never goes
    stale and one pass is enough.
    """
    runs: list[Run] = []
    i = 0
    while i + 1 < len(versions):
        run = detect_run(versions, i)
        if run is None:
            i += 1
            continue
        runs.append(run)
        i = run.last_index + 1
    return runs
