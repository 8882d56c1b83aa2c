"""Batch driver: compact one datastream across every object in a collection.

Objects are handled strictly one at a time. Failures are scoped to the
object they happen on: an object that cannot be looked up is *skipped*,
one whose compaction stopped part way is a *problem*, and the batch
carries on either way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from dsprune.compact import (
    CompactionResult,
    CompactorState,
    VersionHistory,
    compact_datastream,
    plan_runs,
)
from dsprune.errors import FetchFailure
from dsprune.repository import Repository

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class BatchReport:
    collection_id: str
    datastream: str
    total: int = 0
    dry_run: bool = False
    results: list[CompactionResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    problems: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def changed(self) -> int:
        return sum(1 for r in self.results if r.changed)

    @property
    def compacted(self) -> int:
        """Objects that finished without a problem."""
        return sum(1 for r in self.results if not r.failed)

    @property
    def versions_before(self) -> int:
        return sum(r.versions_before for r in self.results)

    @property
    def versions_after(self) -> int:
        return sum(r.versions_after for r in self.results)

    @property
    def bytes_freed(self) -> int:
        return sum(r.bytes_freed for r in self.results)


def preview_datastream(history: VersionHistory) -> CompactionResult:
    """Predict what compaction would do to *history* without purging."""
    runs = plan_runs(history.versions)
    redundant = sum(len(r.redundant) for r in runs)
    return CompactionResult(
        object_id=history.object_id,
        datastream=history.datastream,
        versions_before=len(history),
        versions_after=len(history) - redundant,
        bytes_freed=sum(r.redundant_bytes for r in runs),
        purges=len(runs),
        state=CompactorState.DONE,
    )


def run_batch(
    repository: Repository,
    collection_id: str,
    datastream: str,
    *,
    log_message: str = "",
    dry_run: bool = False,
    progress: ProgressCallback | None = None,
) -> BatchReport:
    """Compact *datastream* on every member of *collection_id*.

    Membership lookup failures propagate as :class:`FetchFailure`; every
    per-object failure is recorded on the returned report instead. An
    unexpected error on one object makes it a problem without a result.
    """
    members = repository.resolve_collection_members(collection_id)
    report = BatchReport(
        collection_id=collection_id,
        datastream=datastream,
        total=len(members),
        dry_run=dry_run,
    )
    log.info("%d object(s) in %s", len(members), collection_id)

    for position, object_id in enumerate(members, start=1):
        if progress is not None:
            progress(position, len(members), object_id)

        try:
            repository.get_object(object_id)
            history = VersionHistory.fetch(repository, object_id, datastream)
        except FetchFailure as exc:
            log.warning("Skipping %s: %s", object_id, exc)
            report.skipped.append(object_id)
            continue
        except Exception:
            log.exception("Error looking up %s", object_id)
            report.problems.append(object_id)
            continue

        try:
            if dry_run:
                result = preview_datastream(history)
            else:
                result = compact_datastream(
                    repository, object_id, datastream,
                    log_message=log_message, history=history,
                )
        except Exception:
            log.exception("Error compacting %s", object_id)
            report.problems.append(object_id)
            continue

        report.results.append(result)
        if result.failed:
            report.problems.append(object_id)

    return report
