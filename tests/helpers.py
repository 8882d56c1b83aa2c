"""Test helpers: version builders and an in-memory repository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence

from dsprune.compact import DatastreamVersion, parse_timestamp
from dsprune.errors import FetchFailure, PurgeFailure

BASE_TIME = datetime(2014, 7, 8, 20, 21, 1, 223000, tzinfo=timezone.utc)


def stamp(dt: datetime) -> str:
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{dt.microsecond // 1000:03d}Z"


def make_versions(
    checksums: Sequence[str | None],
    sizes: Sequence[int] | None = None,
    dsid: str = "TECHMD",
    step: timedelta = timedelta(seconds=1),
) -> list[DatastreamVersion]:
    """Build a history, oldest first, one version per checksum."""
    sizes = list(sizes) if sizes is not None else [100] * len(checksums)
    return [
        DatastreamVersion(
            version_id=f"{dsid}.{i}",
            created_at=stamp(BASE_TIME + step * i),
            checksum=checksum,
            size_bytes=size,
        )
        for i, (checksum, size) in enumerate(zip(checksums, sizes))
    ]


class FakeRepository:
    """Repository double holding histories oldest first.

    ``fail_purge_at`` / ``fail_fetch_at`` make the Nth call (1-based) fail.
    ``ignore_purges`` acknowledges purges without removing anything;
    ``partial_purges`` removes only the oldest version in range.
    """

    def __init__(self) -> None:
        self.histories: dict[tuple[str, str], list[DatastreamVersion]] = {}
        self.members: dict[str, list[str]] = {}
        self.missing: set[str] = set()
        self.purge_calls: list[tuple[str, str, str | None, str | None, str]] = []
        self.fetch_calls = 0
        self.fail_purge_at: int | None = None
        self.fail_fetch_at: int | None = None
        self.ignore_purges = False
        self.partial_purges = False
        self.closed = False

    def __enter__(self) -> FakeRepository:
        return self

    def __exit__(self, *exc: object) -> None:
        self.closed = True

    def add(
        self,
        object_id: str,
        versions: list[DatastreamVersion],
        datastream: str = "TECHMD",
    ) -> None:
        self.histories[(object_id, datastream)] = list(versions)

    def current(self, object_id: str, datastream: str = "TECHMD") -> list[DatastreamVersion]:
        return list(self.histories[(object_id, datastream)])

    def get_object(self, object_id: str) -> None:
        if object_id in self.missing:
            raise FetchFailure(f"Could not get object {object_id}")

    def fetch_version_history(
        self, object_id: str, datastream: str,
    ) -> list[DatastreamVersion]:
        self.fetch_calls += 1
        if self.fail_fetch_at == self.fetch_calls:
            raise FetchFailure(f"history fetch #{self.fetch_calls} failed")
        key = (object_id, datastream)
        if key not in self.histories:
            raise FetchFailure(f"No {datastream} on {object_id}")
        return list(reversed(self.histories[key]))

    def purge_range(
        self,
        object_id: str,
        datastream: str,
        start: str | None,
        end: str | None,
        log_message: str = "",
    ) -> None:
        self.purge_calls.append((object_id, datastream, start, end, log_message))
        if self.fail_purge_at == len(self.purge_calls):
            raise PurgeFailure(f"Purge of {object_id}/{datastream} failed: HTTP 500")
        if self.ignore_purges:
            return
        lo = parse_timestamp(start) if start else None
        hi = parse_timestamp(end) if end else None

        def doomed(v: DatastreamVersion) -> bool:
            created = parse_timestamp(v.created_at)
            return (lo is None or created >= lo) and (hi is None or created <= hi)

        key = (object_id, datastream)
        doomed_ids = [v.version_id for v in self.histories[key] if doomed(v)]
        if self.partial_purges:
            doomed_ids = doomed_ids[:1]
        self.histories[key] = [v for v in self.histories[key] if v.version_id not in doomed_ids]

    def resolve_collection_members(self, collection_id: str) -> list[str]:
        if collection_id not in self.members:
            raise FetchFailure(f"Membership query for {collection_id} failed")
        return list(self.members[collection_id])
