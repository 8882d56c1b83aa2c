"""Repository collaborator: the Fedora 3 REST API over httpx.

:class:`Repository` is the interface the compactor and batch driver use.
:class:`FedoraRepository` implements it against a live Fedora Commons
server. Read failures surface as :class:`FetchFailure`, purge failures as
:class:`PurgeFailure`; callers never see raw httpx errors.
"""

from __future__ import annotations

import csv
import io
import logging
import xml.etree.ElementTree as ET
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from dsprune.compact.history import DatastreamVersion
from dsprune.errors import FetchFailure, PurgeFailure

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_MEMBERSHIP_QUERY = """\
SELECT ?s
FROM <#ri>
WHERE {{
    ?s <info:fedora/fedora-system:def/relations-external#isMemberOfCollection>
    <info:fedora/{collection}> .
}}"""

_FEDORA_PREFIX = "info:fedora/"

# Fedora writes this literal when checksumming is disabled for a datastream
_NO_CHECKSUM = "none"


class Repository(Protocol):
    def get_object(self, object_id: str) -> None: ...

    def fetch_version_history(
        self, object_id: str, datastream: str,
    ) -> list[DatastreamVersion]: ...

    def purge_range(
        self,
        object_id: str,
        datastream: str,
        start: str | None,
        end: str | None,
        log_message: str = "",
    ) -> None: ...

    def resolve_collection_members(self, collection_id: str) -> list[str]: ...


def _local(tag: str) -> str:
    """Strip an XML namespace: ``{ns}dsSize`` -> ``dsSize``."""
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return None


def _strip_fedora_prefix(value: str) -> str:
    value = value.strip()
    if value.startswith(_FEDORA_PREFIX):
        return value[len(_FEDORA_PREFIX):]
    return value


def parse_history_xml(payload: str | bytes) -> list[DatastreamVersion]:
    """Parse a ``datastreamHistory`` document into versions, newest first."""
    try:
        root = ET.fromstring(payload)
    except (ET.ParseError, LookupError, ValueError) as exc:
        # LookupError: unknown encoding named in the XML declaration
        raise FetchFailure(f"Malformed datastream history XML: {exc}") from exc

    versions: list[DatastreamVersion] = []
    for profile in root.iter():
        if _local(profile.tag) != "datastreamProfile":
            continue
        version_id = _child_text(profile, "dsVersionID")
        created_at = _child_text(profile, "dsCreateDate")
        if not version_id or not created_at:
            raise FetchFailure("datastreamProfile missing dsVersionID or dsCreateDate")

        checksum = _child_text(profile, "dsChecksum")
        if not checksum or checksum.lower() == _NO_CHECKSUM:
            checksum = None

        size_text = _child_text(profile, "dsSize") or "0"
        try:
            size = max(int(size_text), 0)
        except ValueError as exc:
            raise FetchFailure(f"Bad dsSize {size_text!r} for {version_id}") from exc

        versions.append(DatastreamVersion(
            version_id=version_id,
            created_at=created_at,
            checksum=checksum,
            size_bytes=size,
            checksum_type=_child_text(profile, "dsChecksumType") or None,
            label=_child_text(profile, "dsLabel") or None,
        ))
    return versions


def parse_members_csv(payload: str) -> list[str]:
    """Parse a risearch CSV tuple result into object identifiers."""
    rows = list(csv.reader(io.StringIO(payload)))
    if not rows:
        return []
    # First row is the column header ("s")
    return [_strip_fedora_prefix(row[0]) for row in rows[1:] if row and row[0].strip()]


class FedoraRepository:
    """Fedora Commons 3.x REST client.

    Usable as a context manager; the underlying :class:`httpx.Client` is
    closed on exit.
    """

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        auth = httpx.BasicAuth(username, password or "") if username else None
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> FedoraRepository:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _datastream_path(object_id: str, datastream: str) -> str:
        return f"/objects/{quote(object_id, safe=':')}/datastreams/{quote(datastream, safe='')}"

    def _get(self, path: str, params: dict[str, Any], what: str) -> httpx.Response:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchFailure(
                f"{what}: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchFailure(f"{what}: {exc}") from exc
        return response

    def get_object(self, object_id: str) -> None:
        path = f"/objects/{quote(object_id, safe=':')}"
        self._get(path, {"format": "xml"}, f"Could not get object {object_id}")

    def fetch_version_history(
        self, object_id: str, datastream: str,
    ) -> list[DatastreamVersion]:
        path = self._datastream_path(object_id, datastream) + "/history"
        response = self._get(
            path, {"format": "xml"},
            f"Could not fetch {datastream} history for {object_id}",
        )
        return parse_history_xml(response.content)

    def purge_range(
        self,
        object_id: str,
        datastream: str,
        start: str | None,
        end: str | None,
        log_message: str = "",
    ) -> None:
        params: dict[str, str] = {"logMessage": log_message}
        if start is not None:
            params["startDT"] = start
        if end is not None:
            params["endDT"] = end

        path = self._datastream_path(object_id, datastream)
        log.info(
            "Purging %s/%s from %s to %s",
            object_id, datastream, start or "(oldest)", end or "(newest)",
        )
        try:
            response = self._client.delete(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PurgeFailure(
                f"Purge of {object_id}/{datastream} failed: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PurgeFailure(f"Purge of {object_id}/{datastream} failed: {exc}") from exc

    def resolve_collection_members(self, collection_id: str) -> list[str]:
        query = _MEMBERSHIP_QUERY.format(collection=_strip_fedora_prefix(collection_id))
        response = self._get(
            "/risearch",
            {"type": "tuples", "lang": "sparql", "format": "CSV", "query": query},
            f"Membership query for {collection_id} failed",
        )
        return parse_members_csv(response.text)


def open_repository(config: dict[str, Any]) -> FedoraRepository:
    """Build a :class:`FedoraRepository` from the ``repository`` config block."""
    repo = config["repository"]
    return FedoraRepository(
        base_url=repo["url"],
        username=repo.get("username"),
        password=repo.get("password"),
        timeout=float(repo.get("timeout", DEFAULT_TIMEOUT)),
    )
