"""
Domain service: entity store for fields, directories and analysis results.

The store owns four collections, each persisted as one JSON blob through a
PersistenceAdapter:
- Fields and directories, with referential integrity between them
- The analysis archive and its history log, always written together

Every operation is a synchronous read-modify-write of whole collections.
Callers running concurrent requests must serialise them; there is no
internal locking.
"""
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Optional, TypeVar, Union
import json
import logging
import random
import string
import time

import numpy as np
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_snake
from pyproj.exceptions import ProjError

from app.config import Settings, settings as default_settings
from app.domain.errors import (
    AgriLensError,
    CapacityExceededError,
    InvalidFormatError,
    NotFoundError,
    ProtectedError,
    StorageUnavailableError,
)
from app.domain.models import (
    DEFAULT_DIRECTORY_ID,
    DEFAULT_DIRECTORY_NAME,
    DEFAULT_FIELD_NAME,
    AnalysisFieldInfo,
    AnalysisHistoryEntry,
    AnalysisResult,
    AnalysisSnapshot,
    AnalysisStatistics,
    Directory,
    DirectoryCreate,
    Field,
    FieldCreate,
    StoreCounts,
)
from app.infrastructure.storage import PersistenceAdapter, StorageKeys
from app.services.domain.health_evaluator import HealthEvaluator, create_evaluator
from app.services.domain.migrations import (
    build_default_directory,
    migrate_analysis_results,
    migrate_directories,
    migrate_fields,
)
from app.services.domain.sample_data import sample_field_data
from app.utils.geo_projection import polygon_area_hectares
from app.utils.geometry import calculate_field_center

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

IMMUTABLE_KEYS = frozenset({"id", "created_at"})

RECORD_MODELS: dict[str, type[BaseModel]] = {
    StorageKeys.FIELDS: Field,
    StorageKeys.DIRECTORIES: Directory,
    StorageKeys.ANALYSIS_RESULTS: AnalysisResult,
    StorageKeys.ANALYSIS_HISTORY: AnalysisHistoryEntry,
}

SORT_KEYS = {
    "name": "name",
    "createdAt": "created_at",
    "created_at": "created_at",
    "updatedAt": "updated_at",
    "updated_at": "updated_at",
    "order": "order",
}


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def isoformat_ms(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).isoformat()


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def sort_fields(
    fields: Iterable[Field],
    by: str = "updated_at",
    ascending: bool = False,
) -> list[Field]:
    """
    Sort fields by name, creation time, update time or explicit order.

    When both compared fields carry a numeric ``order`` it always takes
    priority over the requested key. Sorting by ``order`` when one side has
    none falls back to the update time.

    Raises:
        ValueError: If ``by`` is not a supported key
    """
    key = SORT_KEYS.get(by)
    if key is None:
        raise ValueError(f"Unsupported sort key: {by}")
    direction = 1 if ascending else -1

    def compare(a: Field, b: Field) -> int:
        if a.order is not None and b.order is not None:
            return direction * _cmp(a.order, b.order)
        if key == "name":
            return direction * _cmp(a.name.casefold(), b.name.casefold())
        if key == "order":
            return direction * _cmp(a.updated_at, b.updated_at)
        return direction * _cmp(getattr(a, key), getattr(b, key))

    return sorted(fields, key=cmp_to_key(compare))


def sort_directories(directories: Iterable[Directory]) -> list[Directory]:
    """Default directory first, the others alphabetically."""
    return sorted(
        directories,
        key=lambda d: (d.id != DEFAULT_DIRECTORY_ID, d.name.casefold()),
    )


def history_entry_for(result: AnalysisResult) -> AnalysisHistoryEntry:
    """Derive the history summary of an archived result."""
    return AnalysisHistoryEntry(
        id=result.id,
        timestamp=result.timestamp,
        date=result.date,
        field_name=result.field.name,
        health_status=result.evaluation.overall.status,
        ndvi_average=result.stats.ndvi.mean,
    )


class EntityStore:
    """
    Store for fields, directories and analysis results.

    Enforces:
    - Capacity limits on fields and non-default directories
    - Presence of the reserved default directory
    - Fields always pointing at an existing directory
    - Archive and history being appended and removed together
    """

    def __init__(
        self,
        storage: PersistenceAdapter,
        settings: Optional[Settings] = None,
        evaluator: Optional[HealthEvaluator] = None,
        clock=None,
    ):
        """
        Initialize the store.

        Args:
            storage: Persistence adapter holding the JSON blobs
            settings: Capacity limits and defaults (global settings if omitted)
            evaluator: Strategy deriving evaluations for unevaluated snapshots
                (``settings.health_evaluator`` if omitted)
            clock: Callable returning epoch milliseconds, for tests
        """
        self.storage = storage
        self.settings = settings or default_settings
        self.evaluator = evaluator or create_evaluator(self.settings.health_evaluator)
        self.clock = clock or now_ms

    # ============================================================
    # Raw persistence
    # ============================================================

    def _read_raw(self, key: str) -> list[dict[str, Any]]:
        raw = self.storage.get(key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Corrupt JSON under '{key}', treating as empty")
            return []
        if not isinstance(data, list):
            logger.warning(f"Unexpected content under '{key}', treating as empty")
            return []
        return [record for record in data if isinstance(record, dict)]

    def _write_raw(self, key: str, records: list[dict[str, Any]]) -> None:
        self.storage.set(key, json.dumps(records, ensure_ascii=False))

    def _unreadable(self, key: str) -> list[dict[str, Any]]:
        model = RECORD_MODELS[key]
        unreadable = []
        for record in self._read_raw(key):
            try:
                model.model_validate(record)
            except ValidationError:
                unreadable.append(record)
        return unreadable

    def _dump_preserving(self, key: str, records: Iterable[BaseModel]) -> list[dict[str, Any]]:
        """
        Dump models for writing, carrying over stored records that fail
        validation.

        Unreadable records are skipped on read but must survive a rewrite
        of their collection. One whose id is among ``records`` is replaced.
        """
        dumped = [r.model_dump(mode="json", by_alias=True) for r in records]
        written = {r["id"] for r in dumped}
        kept = [r for r in self._unreadable(key) if r.get("id") not in written]
        if kept:
            logger.warning(f"Keeping {len(kept)} unreadable records in '{key}'")
        return dumped + kept

    def _write_models(self, key: str, records: Iterable[BaseModel]) -> None:
        self._write_raw(key, self._dump_preserving(key, records))

    @staticmethod
    def _parse(model: type[ModelT], records: list[dict[str, Any]], key: str) -> list[ModelT]:
        parsed = []
        for record in records:
            try:
                parsed.append(model.model_validate(record))
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid record {record.get('id')!r} in '{key}': "
                    f"{e.error_count()} validation errors"
                )
        return parsed

    def _now(self, previous: int = 0) -> int:
        # updatedAt never moves backwards, even if the clock does
        return max(self.clock(), previous)

    def _generate_id(self, prefix: str, existing: set[str]) -> str:
        while True:
            candidate = f"{prefix}_{self.clock()}_{random.randint(0, 999)}"
            if candidate not in existing:
                return candidate

    @staticmethod
    def _index_of(records: list[Any], record_id: str, kind: str) -> int:
        for index, record in enumerate(records):
            if record.id == record_id:
                return index
        raise NotFoundError(f"{kind} '{record_id}' not found", {"id": record_id})

    @staticmethod
    def _normalize_changes(changes: Union[BaseModel, Mapping[str, Any]]) -> dict[str, Any]:
        if isinstance(changes, BaseModel):
            changes = changes.model_dump(exclude_unset=True)
        normalized = {to_snake(key): value for key, value in changes.items()}
        for key in IMMUTABLE_KEYS:
            normalized.pop(key, None)
        return normalized

    @staticmethod
    def _merge(model: type[ModelT], current: ModelT, changes: dict[str, Any], updated_at: int) -> ModelT:
        merged = current.model_dump()
        for key, value in changes.items():
            # null clears a value; text attributes clear to empty
            merged[key] = "" if value is None and isinstance(merged.get(key), str) else value
        merged["updated_at"] = updated_at
        try:
            return model.model_validate(merged)
        except ValidationError as e:
            raise InvalidFormatError(f"Invalid {model.__name__.lower()} data: {e}") from e

    # ============================================================
    # Directories
    # ============================================================

    def _load_directories_raw(self) -> list[dict[str, Any]]:
        records = self._read_raw(StorageKeys.DIRECTORIES)
        result = migrate_directories(
            records,
            default_name=self.settings.default_directory_name,
            default_crop=self.settings.default_crop,
            now=self.clock(),
        )
        if result.migrated:
            self._write_raw(StorageKeys.DIRECTORIES, result.records)
        return result.records

    def list_directories(self) -> list[Directory]:
        """All directories; the default one is created if missing."""
        return self._parse(Directory, self._load_directories_raw(), StorageKeys.DIRECTORIES)

    def get_directory(self, directory_id: str) -> Optional[Directory]:
        return next((d for d in self.list_directories() if d.id == directory_id), None)

    def add_directory(self, data: Union[DirectoryCreate, Mapping[str, Any]]) -> Directory:
        """
        Create a directory.

        Raises:
            CapacityExceededError: If the non-default directory limit is reached
            InvalidFormatError: If the input is malformed
        """
        if not isinstance(data, DirectoryCreate):
            try:
                data = DirectoryCreate.model_validate(data)
            except ValidationError as e:
                raise InvalidFormatError(f"Invalid directory data: {e}") from e

        directories = self.list_directories()
        limit = self.settings.max_directories
        if sum(1 for d in directories if d.id != DEFAULT_DIRECTORY_ID) >= limit:
            raise CapacityExceededError(
                f"Directory limit of {limit} reached", {"max": limit}
            )

        now = self.clock()
        directory = Directory(
            id=self._generate_id("directory", {d.id for d in directories}),
            name=data.name or DEFAULT_DIRECTORY_NAME,
            crop=data.crop or "",
            created_at=now,
            updated_at=now,
        )
        directories.append(directory)
        self._write_models(StorageKeys.DIRECTORIES, directories)
        logger.info(f"Added directory {directory.id}")
        return directory

    def update_directory(self, directory_id: str, changes: Union[BaseModel, Mapping[str, Any]]) -> Directory:
        """
        Shallow-merge changes into a directory and refresh ``updatedAt``.

        Raises:
            NotFoundError: If the directory does not exist
        """
        directories = self.list_directories()
        index = self._index_of(directories, directory_id, "Directory")
        current = directories[index]
        updated = self._merge(
            Directory, current, self._normalize_changes(changes), self._now(current.updated_at)
        )
        directories[index] = updated
        self._write_models(StorageKeys.DIRECTORIES, directories)
        return updated

    def delete_directory(self, directory_id: str) -> bool:
        """
        Delete a directory and move its fields to another directory.

        Fields go to the first remaining directory in display order (the
        default directory), or to a freshly created default if none remain.

        Raises:
            ProtectedError: If the default directory is targeted
            NotFoundError: If the directory does not exist
        """
        if directory_id == DEFAULT_DIRECTORY_ID:
            raise ProtectedError("The default directory cannot be deleted", {"id": directory_id})

        directories = self.list_directories()
        self._index_of(directories, directory_id, "Directory")
        remaining = [d for d in directories if d.id != directory_id]

        if remaining:
            target_id = sort_directories(remaining)[0].id
        else:
            default = build_default_directory(
                self.settings.default_directory_name, self.settings.default_crop, self.clock()
            )
            remaining.append(Directory.model_validate(default))
            target_id = DEFAULT_DIRECTORY_ID

        fields = self.list_fields()
        moved = 0
        for index, field in enumerate(fields):
            if field.directory_id == directory_id:
                fields[index] = field.model_copy(update={
                    "directory_id": target_id,
                    "updated_at": self._now(field.updated_at),
                })
                moved += 1

        # Fields first: a failure before the directory write leaves every
        # field pointing at a directory that still exists.
        self._write_models(StorageKeys.FIELDS, fields)
        self._write_models(StorageKeys.DIRECTORIES, remaining)
        logger.info(f"Deleted directory {directory_id}, moved {moved} fields to {target_id}")
        return True

    # ============================================================
    # Fields
    # ============================================================

    def list_fields(self) -> list[Field]:
        """All fields, with legacy records upgraded on load."""
        directories = self._load_directories_raw()
        records = self._read_raw(StorageKeys.FIELDS)
        result = migrate_fields(records, directories, self.settings.default_map_center)
        if result.migrated:
            self._write_raw(StorageKeys.FIELDS, result.records)
        return self._parse(Field, result.records, StorageKeys.FIELDS)

    def get_field(self, field_id: str) -> Optional[Field]:
        return next((f for f in self.list_fields() if f.id == field_id), None)

    def filter_fields_by_ids(self, field_ids: Iterable[str]) -> list[Field]:
        wanted = set(field_ids)
        return [f for f in self.list_fields() if f.id in wanted]

    def search_fields(self, term: Optional[str]) -> list[Field]:
        """Case-insensitive substring match over name and memo."""
        fields = self.list_fields()
        if not term:
            return fields
        needle = term.casefold()
        return [
            f for f in fields
            if needle in f.name.casefold() or needle in (f.memo or "").casefold()
        ]

    def list_fields_in_directory(self, directory_id: str) -> list[Field]:
        return [f for f in self.list_fields() if f.directory_id == directory_id]

    def add_field(self, data: Union[FieldCreate, Mapping[str, Any]]) -> Field:
        """
        Create a field.

        Args:
            data: Field attributes; only ``geometry`` is required

        Returns:
            The stored field

        Raises:
            CapacityExceededError: If the field limit is reached
            NotFoundError: If ``directory_id`` names an unknown directory
            InvalidFormatError: If the input or its polygon is malformed
        """
        if not isinstance(data, FieldCreate):
            try:
                data = FieldCreate.model_validate(data)
            except ValidationError as e:
                raise InvalidFormatError(f"Invalid field data: {e}") from e

        fields = self.list_fields()
        limit = self.settings.max_fields
        if len(fields) >= limit:
            raise CapacityExceededError(f"Field limit of {limit} reached", {"max": limit})

        directory_id = data.directory_id or DEFAULT_DIRECTORY_ID
        if self.get_directory(directory_id) is None:
            raise NotFoundError(f"Directory '{directory_id}' not found", {"id": directory_id})

        now = self.clock()
        field = Field(
            id=self._generate_id("field", {f.id for f in fields}),
            name=data.name or DEFAULT_FIELD_NAME,
            memo=data.memo or "",
            crop=data.crop or "",
            created_at=now,
            updated_at=now,
            center=data.center or calculate_field_center(data.geometry.coordinates),
            geometry=data.geometry,
            color=data.color or self.settings.default_field_color,
            directory_id=directory_id,
            order=data.order,
        )
        fields.append(field)
        self._write_models(StorageKeys.FIELDS, fields)
        logger.info(f"Added field {field.id} to directory {directory_id}")
        return field

    def update_field(self, field_id: str, changes: Union[BaseModel, Mapping[str, Any]]) -> Field:
        """
        Shallow-merge changes into a field and refresh ``updatedAt``.

        ``id`` and ``createdAt`` are never changed. An explicit null clears
        an attribute; a null ``directory_id`` moves the field to the
        default directory.

        Raises:
            NotFoundError: If the field or a new ``directory_id`` does not exist
            InvalidFormatError: If the merged record is invalid
        """
        changes = self._normalize_changes(changes)
        fields = self.list_fields()
        index = self._index_of(fields, field_id, "Field")

        if "directory_id" in changes and changes["directory_id"] is None:
            changes["directory_id"] = DEFAULT_DIRECTORY_ID
        directory_id = changes.get("directory_id")
        if directory_id is not None and self.get_directory(directory_id) is None:
            raise NotFoundError(f"Directory '{directory_id}' not found", {"id": directory_id})

        current = fields[index]
        updated = self._merge(Field, current, changes, self._now(current.updated_at))
        fields[index] = updated
        self._write_models(StorageKeys.FIELDS, fields)
        return updated

    def delete_field(self, field_id: str) -> bool:
        """
        Delete a field.

        Raises:
            NotFoundError: If the field does not exist
        """
        fields = self.list_fields()
        index = self._index_of(fields, field_id, "Field")
        del fields[index]
        self._write_models(StorageKeys.FIELDS, fields)
        logger.info(f"Deleted field {field_id}")
        return True

    def move_field_to_directory(self, field_id: str, directory_id: str) -> Field:
        """
        Move a field to another directory.

        Raises:
            NotFoundError: If the field or the directory does not exist
        """
        return self.update_field(field_id, {"directory_id": directory_id})

    def save_field_analysis(
        self,
        field_id: str,
        snapshot: Union[AnalysisSnapshot, Mapping[str, Any]],
    ) -> Field:
        """
        Store a snapshot as the field's latest analysis.

        The evaluation is derived with the configured evaluator when the
        snapshot has none; ``analyzedAt`` is set to now.

        Raises:
            NotFoundError: If the field does not exist
        """
        if not isinstance(snapshot, AnalysisSnapshot):
            try:
                snapshot = AnalysisSnapshot.model_validate(snapshot)
            except ValidationError as e:
                raise InvalidFormatError(f"Invalid analysis snapshot: {e}") from e

        field = self.get_field(field_id)
        if field is None:
            raise NotFoundError(f"Field '{field_id}' not found", {"id": field_id})

        update: dict[str, Any] = {"analyzed_at": self.clock()}
        if snapshot.evaluation is None:
            update["evaluation"] = self.evaluator.evaluate(snapshot.stats, field.crop)
        return self.update_field(field_id, {"last_analysis": snapshot.model_copy(update=update)})

    # ============================================================
    # Analysis archive and history
    # ============================================================

    def _generate_analysis_id(self, timestamp: int, field: Optional[Field], existing: set[str]) -> str:
        owner = (field.id or field.name) if field else "unknown"
        day = isoformat_ms(timestamp)[:10]
        while True:
            suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
            candidate = f"analysis_{owner}_{day}_{suffix}"
            if candidate not in existing:
                return candidate

    @staticmethod
    def _field_info(field: Optional[Field]) -> AnalysisFieldInfo:
        if field is None:
            return AnalysisFieldInfo()

        area = None
        if field.geometry is not None:
            try:
                area = round(polygon_area_hectares(field.geometry.coordinates), 4)
            except (ValueError, ProjError) as e:
                logger.warning(f"Could not compute area of field {field.id}: {e}")
        return AnalysisFieldInfo(
            id=field.id,
            name=field.name,
            location=field.center,
            crop=field.crop,
            area_hectares=area,
        )

    def _write_archive(
        self,
        results: list[dict[str, Any]],
        history: list[dict[str, Any]],
    ) -> None:
        """Write archive and history as one logical operation."""
        previous_results = self.storage.get(StorageKeys.ANALYSIS_RESULTS)
        self._write_raw(StorageKeys.ANALYSIS_RESULTS, results)
        try:
            self._write_raw(StorageKeys.ANALYSIS_HISTORY, history)
        except StorageUnavailableError:
            logger.error("History write failed, rolling back the analysis archive")
            if previous_results is None:
                self.storage.remove(StorageKeys.ANALYSIS_RESULTS)
            else:
                self.storage.set(StorageKeys.ANALYSIS_RESULTS, previous_results)
            raise

    def _load_results_raw(self) -> list[dict[str, Any]]:
        records = self._read_raw(StorageKeys.ANALYSIS_RESULTS)
        result = migrate_analysis_results(records)
        if result.migrated:
            self._write_raw(StorageKeys.ANALYSIS_RESULTS, result.records)
        return result.records

    def record_analysis_result(
        self,
        snapshot: AnalysisSnapshot,
        field: Optional[Field] = None,
        advice: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Archive an analysis result and append its history entry.

        Both collections keep the newest entries first and are capped at
        ``max_stored_results``; the oldest entries are evicted.

        Args:
            snapshot: Analysis snapshot to archive
            field: Analysed field, if known
            advice: Advisory text; defaults to the snapshot's advice

        Returns:
            The archived result
        """
        timestamp = self.clock()
        evaluation = snapshot.evaluation or self.evaluator.evaluate(
            snapshot.stats, field.crop if field else None
        )

        results = self._load_results_raw()
        history = self._read_raw(StorageKeys.ANALYSIS_HISTORY)

        result = AnalysisResult(
            id=self._generate_analysis_id(timestamp, field, {r.get("id") for r in results}),
            timestamp=timestamp,
            date=isoformat_ms(timestamp),
            field=self._field_info(field),
            date_range=snapshot.date_range,
            stats=snapshot.stats,
            tile_urls=snapshot.tile_urls,
            evaluation=evaluation,
            advice=advice if advice is not None else snapshot.advice,
            metadata={
                "version": self.settings.analysis_export_version,
                "source": "agrilens",
                "dataSource": snapshot.data_source,
            },
        )
        entry = history_entry_for(result)

        limit = self.settings.max_stored_results
        results.insert(0, result.model_dump(mode="json", by_alias=True))
        history.insert(0, entry.model_dump(mode="json", by_alias=True))
        self._write_archive(results[:limit], history[:limit])

        logger.info(f"Recorded analysis result {result.id}")
        return result

    def list_analysis_results(self) -> list[AnalysisResult]:
        """Archived results, newest first, with legacy records upgraded on load."""
        return self._parse(AnalysisResult, self._load_results_raw(), StorageKeys.ANALYSIS_RESULTS)

    def list_analysis_history(self) -> list[AnalysisHistoryEntry]:
        """History entries, newest first."""
        return self._parse(
            AnalysisHistoryEntry, self._read_raw(StorageKeys.ANALYSIS_HISTORY), StorageKeys.ANALYSIS_HISTORY
        )

    def get_analysis_result(self, analysis_id: str) -> Optional[AnalysisResult]:
        return next((r for r in self.list_analysis_results() if r.id == analysis_id), None)

    def delete_analysis_result(self, analysis_id: str) -> bool:
        """Remove a result and its history entry; False if absent."""
        results = self._load_results_raw()
        kept = [r for r in results if r.get("id") != analysis_id]
        if len(kept) == len(results):
            return False

        history = [h for h in self._read_raw(StorageKeys.ANALYSIS_HISTORY) if h.get("id") != analysis_id]
        self._write_archive(kept, history)
        logger.info(f"Deleted analysis result {analysis_id}")
        return True

    def clear_all_analysis_results(self) -> bool:
        for key in StorageKeys.analysis_keys():
            self.storage.remove(key)
        logger.info("Cleared all analysis results")
        return True

    def get_analysis_statistics(self) -> AnalysisStatistics:
        """Totals per health status and the average NDVI of the archive."""
        results = self.list_analysis_results()
        if not results:
            return AnalysisStatistics(total=0)

        counts: dict[str, int] = {}
        for result in results:
            status = result.evaluation.overall.status.value
            counts[status] = counts.get(status, 0) + 1

        ndvi = np.array(
            [r.stats.ndvi.mean for r in results if r.stats.ndvi.mean is not None],
            dtype=float,
        )
        return AnalysisStatistics(
            total=len(results),
            health_status_counts=counts,
            average_ndvi=round(float(ndvi.mean()), 3) if ndvi.size else None,
            oldest_date=results[-1].date,
            newest_date=results[0].date,
        )

    def replace_collections(
        self,
        fields: list[Field],
        directories: list[Directory],
        results: list[AnalysisResult],
        history: list[AnalysisHistoryEntry],
    ) -> None:
        """
        Overwrite every collection with already validated records.
        Stored records that fail validation are carried over.

        Directories are written before fields so that a failed write never
        leaves a field pointing at a directory that was not stored.
        """
        self._write_models(StorageKeys.DIRECTORIES, directories)
        self._write_models(StorageKeys.FIELDS, fields)
        self._write_archive(
            self._dump_preserving(StorageKeys.ANALYSIS_RESULTS, results),
            self._dump_preserving(StorageKeys.ANALYSIS_HISTORY, history),
        )

    # ============================================================
    # Reset
    # ============================================================

    def clear_fields(self) -> None:
        self.storage.remove(StorageKeys.FIELDS)
        logger.info("Cleared field data")

    def clear_directories(self) -> None:
        """Remove all directories; existing fields move to the default one."""
        fields = self.list_fields()
        self.storage.remove(StorageKeys.DIRECTORIES)
        now = self.clock()
        self._write_models(StorageKeys.FIELDS, [
            f.model_copy(update={"directory_id": DEFAULT_DIRECTORY_ID, "updated_at": max(now, f.updated_at)})
            if f.directory_id != DEFAULT_DIRECTORY_ID else f
            for f in fields
        ])
        logger.info("Cleared directory data")

    def clear_analysis_data(self) -> None:
        self.clear_all_analysis_results()

    def reset(self, seed_sample: bool = True) -> Optional[Field]:
        """
        Clear every collection, optionally seeding the sample field.

        Returns:
            The sample field, or None when not seeded
        """
        self.clear_fields()
        self.clear_directories()
        self.clear_analysis_data()
        if not seed_sample:
            return None

        try:
            return self.add_field(sample_field_data())
        except AgriLensError as e:
            logger.error(f"Failed to add the sample field: {e.message}")
            return None

    def counts(self) -> StoreCounts:
        return StoreCounts(
            fields=len(self.list_fields()),
            directories=len(self.list_directories()),
            analyses=len(self._read_raw(StorageKeys.ANALYSIS_HISTORY)),
        )
