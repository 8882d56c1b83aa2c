"""Datastream version compactor.

Collapses every run of checksum-equal adjacent versions to its oldest
member, one range purge per run::

    SCANNING -> RUN_FOUND -> PURGING -> REFRESHING -> SCANNING ... -> DONE
                                 \\-> FAILED

Each purge changes the remote history, so the held snapshot is dropped
and re-fetched before the next scan. Scanning restarts from the oldest
version of the refreshed history.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dsprune.compact.history import VersionHistory
from dsprune.compact.runs import Run, detect_run
from dsprune.compact.timestamps import MalformedTimestamp, format_timestamp
from dsprune.errors import FetchFailure, PurgeFailure

if TYPE_CHECKING:
    from dsprune.repository import Repository

log = logging.getLogger(__name__)


class CompactorState(enum.Enum):
    SCANNING = "scanning"
    RUN_FOUND = "run_found"
    PURGING = "purging"
    REFRESHING = "refreshing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PurgeRange:
    """Inclusive purge bounds. ``end`` None means through the newest version."""

    start: str
    end: str | None


@dataclass
class CompactionResult:
    object_id: str
    datastream: str
    versions_before: int
    versions_after: int
    bytes_freed: int = 0
    purges: int = 0
    state: CompactorState = CompactorState.DONE
    problem: str | None = None

    @property
    def changed(self) -> bool:
        return self.versions_after < self.versions_before

    @property
    def failed(self) -> bool:
        return self.state is CompactorState.FAILED


def purge_range_for(run: Run) -> PurgeRange:
    """Compute the purge bounds that remove *run*'s redundant members.

    The start is nudged one millisecond past the survivor so the inclusive
    lower bound leaves it in place. An unterminated run has no upper bound.

    Raises :class:`MalformedTimestamp` if either timestamp is unusable.
    """
    start = format_timestamp(run.survivor.created_at, +1)
    end = None if run.unterminated else format_timestamp(run.last.created_at)
    return PurgeRange(start=start, end=end)


def compact_datastream(
    repository: Repository,
    object_id: str,
    datastream: str,
    *,
    log_message: str = "",
    history: VersionHistory | None = None,
) -> CompactionResult:
    """Collapse all redundant versions of one object's datastream.

    Parameters
    ----------
    repository:
        Repository collaborator used for fetches and purges.
    object_id, datastream:
        The datastream to compact.
    log_message:
        Audit message passed with each purge.
    history:
        An already-fetched history to start from. Fetched when omitted.

    Returns
    -------
    CompactionResult
        Counts and accounting. ``bytes_freed`` is measured from the
        histories seen before and after each purge. ``state`` is ``FAILED``
        with ``problem`` set when a purge, refresh or timestamp failed part
        way; the counts then reflect the last history actually observed.

    Raises
    ------
    FetchFailure
        Only when the initial history fetch fails, before anything changed.
    """
    if history is None:
        history = VersionHistory.fetch(repository, object_id, datastream)

    result = CompactionResult(
        object_id=object_id,
        datastream=datastream,
        versions_before=len(history),
        versions_after=len(history),
    )

    state = CompactorState.SCANNING
    index = 0
    run: Run | None = None
    bounds: PurgeRange | None = None

    while state not in (CompactorState.DONE, CompactorState.FAILED):
        if state is CompactorState.SCANNING:
            if index + 1 >= len(history):
                state = CompactorState.DONE
                continue
            run = detect_run(history.versions, index)
            if run is None:
                index += 1
            else:
                state = CompactorState.RUN_FOUND

        elif state is CompactorState.RUN_FOUND:
            try:
                bounds = purge_range_for(run)
            except MalformedTimestamp as exc:
                result.problem = f"Bad timestamp in run at {run.survivor.version_id}: {exc}"
                state = CompactorState.FAILED
                continue
            log.info(
                "%s/%s: run %s..%s (%d redundant, %d bytes)",
                object_id, datastream,
                run.survivor.version_id, run.last.version_id,
                len(run.redundant), run.redundant_bytes,
            )
            state = CompactorState.PURGING

        elif state is CompactorState.PURGING:
            try:
                repository.purge_range(
                    object_id, datastream, bounds.start, bounds.end, log_message,
                )
            except PurgeFailure as exc:
                result.problem = str(exc)
                state = CompactorState.FAILED
                continue
            result.purges += 1
            state = CompactorState.REFRESHING

        elif state is CompactorState.REFRESHING:
            previous = history
            try:
                history = VersionHistory.fetch(repository, object_id, datastream)
            except FetchFailure as exc:
                result.problem = f"Refresh after purge failed: {exc}"
                state = CompactorState.FAILED
                continue
            if len(history) >= len(previous):
                result.problem = (
                    f"Purge {bounds.start}..{bounds.end or 'newest'} reported success "
                    f"but history did not shrink ({len(previous)} -> {len(history)})"
                )
                state = CompactorState.FAILED
                continue
            result.bytes_freed += max(previous.total_bytes - history.total_bytes, 0)
            index = 0
            state = CompactorState.SCANNING

    result.state = state
    result.versions_after = len(history)
    if state is CompactorState.FAILED:
        log.warning("%s/%s: compaction stopped: %s", object_id, datastream, result.problem)
    else:
        log.info(
            "%s/%s: %d -> %d version(s), %d bytes freed",
            object_id, datastream,
            result.versions_before, result.versions_after, result.bytes_freed,
        )
    return result
