from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Mapping

from pydantic_core import to_jsonable_python

from growth_console.constants import BACKUP_FORMAT_VERSION, BACKUP_VERSION_KEY
from growth_console.errors import GrowthConsoleError, MalformedBundle, PartialImport
from growth_console.storage import RecordStore

LOGGER = logging.getLogger(__name__)

BACKUP_FILENAME_PREFIX = "growth_backup_"

RawRecord = dict[str, Any]


@dataclass
class BackupBundle:
    """Snapshot of every collection: name -> JSON-ready records in stored order."""

    collections: dict[str, list[RawRecord]] = field(default_factory=dict)
    format_version: int = BACKUP_FORMAT_VERSION

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.collections)

    def records(self, collection: str) -> list[RawRecord]:
        return self.collections.get(collection, [])

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {BACKUP_VERSION_KEY: self.format_version}
        payload.update(self.collections)
        return payload


@dataclass(frozen=True)
class CollectionResult:
    ok: bool
    count: int = 0
    error: str | None = None


@dataclass
class ImportReport:
    """Per-collection outcome of a restore. Collections are restored independently."""

    results: dict[str, CollectionResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results.values())

    @property
    def succeeded(self) -> list[str]:
        return [name for name, result in self.results.items() if result.ok]

    @property
    def failed(self) -> list[str]:
        return [name for name, result in self.results.items() if not result.ok]

    @property
    def partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)

    def raise_for_failures(self) -> None:
        if self.failed:
            raise PartialImport(self)


def _check_record(collection: str, index: int, raw: Any) -> RawRecord:
    if not isinstance(raw, Mapping):
        raise MalformedBundle(f"{collection}[{index}] is not an object")
    record_id = raw.get("id")
    if record_id is None or isinstance(record_id, bool) or str(record_id).strip() == "":
        raise MalformedBundle(f"{collection}[{index}] is missing an id")
    return dict(raw)


def parse_bundle(payload: Any) -> BackupBundle:
    """Validate the bundle layout of an already decoded JSON payload."""

    if not isinstance(payload, Mapping):
        raise MalformedBundle("Backup must be a JSON object keyed by collection name")

    data = dict(payload)
    version = data.pop(BACKUP_VERSION_KEY, BACKUP_FORMAT_VERSION)
    if isinstance(version, bool) or not isinstance(version, int):
        raise MalformedBundle(f"Invalid backup version: {version!r}")
    if version < 1 or version > BACKUP_FORMAT_VERSION:
        raise MalformedBundle(f"Unsupported backup version {version}, expected <= {BACKUP_FORMAT_VERSION}")

    collections: dict[str, list[RawRecord]] = {}
    for name, raw_records in data.items():
        if not isinstance(raw_records, list):
            raise MalformedBundle(f"Collection {name!r} must be a list of records")
        collections[str(name)] = [_check_record(name, index, raw) for index, raw in enumerate(raw_records)]

    return BackupBundle(collections=collections, format_version=version)


def load_bundle(text: str | bytes) -> BackupBundle:
    """Decode a JSON backup and validate its layout."""

    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedBundle(f"Backup is not valid JSON: {exc}") from exc
    return parse_bundle(payload)


def dump_bundle(bundle: BackupBundle) -> str:
    """Serialize ``bundle`` as indented UTF-8 JSON."""

    return json.dumps(bundle.to_payload(), default=to_jsonable_python, ensure_ascii=False, indent=2)


def default_backup_filename(today: date | None = None) -> str:
    """Return the dated backup file name, e.g. ``growth_backup_2024-05-10.json``."""

    day = today or date.today()
    return f"{BACKUP_FILENAME_PREFIX}{day.isoformat()}.json"


def write_backup(bundle: BackupBundle, path: str | Path) -> Path:
    """Write ``bundle`` to ``path``; a directory gets the default file name appended."""

    target = Path(path).expanduser()
    if target.is_dir() or not target.suffix:
        target = target / default_backup_filename()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dump_bundle(bundle), encoding="utf-8")
    return target


def read_backup(path: str | Path) -> BackupBundle:
    """Read and validate a backup file."""

    return load_bundle(Path(path).expanduser().read_text(encoding="utf-8"))


class BackupManager:
    """Whole-store snapshot and restore on top of a ``RecordStore``."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def export_all(self) -> BackupBundle:
        """Snapshot every collection. Collections that cannot be read are exported empty."""

        bundle = BackupBundle()
        for name in self._store.collections:
            try:
                records = await self._store.list_all(name)
            except GrowthConsoleError as exc:
                LOGGER.warning("Exporting %s failed, writing an empty collection: %s", name, exc)
                records = []
            bundle.collections[name] = [record.model_dump(mode="json", by_alias=True) for record in records]
        return bundle

    async def import_all(self, bundle: BackupBundle) -> ImportReport:
        """Replace every collection present in ``bundle``. Not atomic across collections."""

        report = ImportReport()
        for name, records in bundle.collections.items():
            try:
                count = await self._store.replace_all(name, records)
            except (GrowthConsoleError, ValueError, TypeError) as exc:
                LOGGER.warning("Restoring %s failed: %s", name, exc)
                report.results[name] = CollectionResult(ok=False, error=str(exc))
            else:
                report.results[name] = CollectionResult(ok=True, count=count)

        if report.failed:
            LOGGER.warning("Import finished with failures: %s", ", ".join(report.failed))
        else:
            LOGGER.info("Imported %d collections", len(report.results))
        return report

    async def export_to_file(self, path: str | Path) -> Path:
        return write_backup(await self.export_all(), path)

    async def import_from_file(self, path: str | Path) -> ImportReport:
        return await self.import_all(read_backup(path))


__all__ = [
    "BackupBundle",
    "BackupManager",
    "CollectionResult",
    "ImportReport",
    "parse_bundle",
    "load_bundle",
    "dump_bundle",
    "default_backup_filename",
    "write_backup",
    "read_backup",
]
