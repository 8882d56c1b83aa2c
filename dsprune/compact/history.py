"""Immutable snapshots of a datastream's version history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from dsprune.repository import Repository

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatastreamVersion:
    """One revision of a datastream as reported by the repository.

    ``checksum`` is None when the repository recorded none; that is a
    distinct state from an empty string.
    """

    version_id: str
    created_at: str
    checksum: str | None
    size_bytes: int = 0
    checksum_type: str | None = None
    label: str | None = None


@dataclass(frozen=True)
class VersionHistory:
    """Versions of one datastream on one object, oldest first.

    A history is stale as soon as anything is purged from the repository.
    Callers replace it with a fresh :meth:`fetch` rather than editing it.
    """

    object_id: str
    datastream: str
    versions: tuple[DatastreamVersion, ...] = ()

    @classmethod
    def fetch(
        cls,
        repository: Repository,
        object_id: str,
        datastream: str,
    ) -> VersionHistory:
        """Fetch the current history; the repository lists newest first."""
        newest_first = repository.fetch_version_history(object_id, datastream)
        versions = tuple(reversed(list(newest_first)))
        log.debug(
            "Fetched %d version(s) of %s/%s", len(versions), object_id, datastream,
        )
        return cls(object_id=object_id, datastream=datastream, versions=versions)

    def __len__(self) -> int:
        return len(self.versions)

    def __getitem__(self, index: int) -> DatastreamVersion:
        return self.versions[index]

    def __iter__(self) -> Iterator[DatastreamVersion]:
        return iter(self.versions)

    @property
    def total_bytes(self) -> int:
        return sum(v.size_bytes for v in self.versions)

    @property
    def version_ids(self) -> list[str]:
        return [v.version_id for v in self.versions]
