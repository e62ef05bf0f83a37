"""
Domain service: export and import of the entity store.

Exports are plain JSON-compatible dicts with camelCase keys. Imports merge
into the current store: existing ids win, and the whole document is
validated before anything is written.
"""
from collections.abc import Mapping
from typing import Any, Optional, Union
import json
import logging

from pydantic import BaseModel, ValidationError

from app.domain.errors import CapacityExceededError, InvalidFormatError, NotFoundError
from app.domain.models import (
    DEFAULT_DIRECTORY_ID,
    AnalysisHistoryEntry,
    AnalysisResult,
    Directory,
    Field,
    ImportSummary,
)
from app.services.domain.entity_store import EntityStore, history_entry_for, isoformat_ms
from app.services.domain.migrations import (
    migrate_analysis_results,
    migrate_directories,
    migrate_fields,
)

logger = logging.getLogger(__name__)

SCOPE_ALL = "all"


def _dump(records: list[BaseModel]) -> list[dict[str, Any]]:
    return [r.model_dump(mode="json", by_alias=True) for r in records]


def _records(document: Mapping[str, Any], key: str, required: bool = False) -> list[Any]:
    value = document.get(key)
    if value is None and not required:
        return []
    if not isinstance(value, list):
        raise InvalidFormatError(f"'{key}' must be a list", {"key": key})
    for index, record in enumerate(value):
        if not isinstance(record, Mapping):
            raise InvalidFormatError(f"'{key}[{index}]' must be an object", {"key": key})
    return [dict(record) for record in value]


def _validate(model, records: list[dict[str, Any]], key: str) -> list:
    parsed = []
    for index, record in enumerate(records):
        try:
            parsed.append(model.model_validate(record))
        except ValidationError as e:
            raise InvalidFormatError(
                f"Invalid record '{key}[{index}]': {e.error_count()} validation errors",
                {"key": key, "id": record.get("id")},
            ) from e
    return parsed


def _new_only(existing_ids: set[str], incoming: list) -> list:
    """Incoming records whose id is not taken yet, first occurrence wins."""
    seen = set(existing_ids)
    added = []
    for record in incoming:
        if record.id in seen:
            continue
        seen.add(record.id)
        added.append(record)
    return added


class SnapshotGateway:
    """Serialises and restores the whole entity store."""

    def __init__(self, store: EntityStore):
        self.store = store
        self.settings = store.settings

    def _export_date(self) -> str:
        return isoformat_ms(self.store.clock())

    # ============================================================
    # Export
    # ============================================================

    def export_fields(self) -> dict[str, Any]:
        """Field export document: fields and directories."""
        return {
            "version": self.settings.fields_export_version,
            "exportDate": self._export_date(),
            "fields": _dump(self.store.list_fields()),
            "directories": _dump(self.store.list_directories()),
        }

    def export_analysis_results(self, analysis_id: Optional[str] = None) -> dict[str, Any]:
        """
        Analysis export document, or a single result when an id is given.

        Raises:
            NotFoundError: If ``analysis_id`` is unknown
        """
        if analysis_id is not None:
            result = self.store.get_analysis_result(analysis_id)
            if result is None:
                raise NotFoundError(f"Analysis result '{analysis_id}' not found", {"id": analysis_id})
            return result.model_dump(mode="json", by_alias=True)

        return {
            "results": _dump(self.store.list_analysis_results()),
            "history": _dump(self.store.list_analysis_history()),
            "exportDate": self._export_date(),
            "version": self.settings.analysis_export_version,
        }

    def export_snapshot(self, scope: str = SCOPE_ALL) -> dict[str, Any]:
        """
        Export the whole store, or one analysis result.

        Args:
            scope: ``"all"`` or the id of an analysis result

        Raises:
            NotFoundError: If ``scope`` names an unknown analysis result
        """
        if scope != SCOPE_ALL:
            return self.export_analysis_results(scope)

        document = self.export_fields()
        analysis = self.export_analysis_results()
        document["results"] = analysis["results"]
        document["history"] = analysis["history"]
        return document

    @staticmethod
    def to_json(document: Mapping[str, Any]) -> str:
        return json.dumps(document, ensure_ascii=False, indent=2)

    # ============================================================
    # Import
    # ============================================================

    @staticmethod
    def _parse_document(document: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise InvalidFormatError(f"Document is not valid JSON: {e}") from e
        if not isinstance(document, Mapping):
            raise InvalidFormatError("Document must be a JSON object")
        return document

    def import_snapshot(self, document: Union[str, bytes, Mapping[str, Any]]) -> ImportSummary:
        """
        Merge an exported document into the store.

        Records whose id already exists are dropped and the reserved default
        directory is never imported. Fields pointing at a directory that does
        not exist after the merge are moved to the default directory.
        Analysis results and history are merged the same way and capped;
        a history entry is kept only while its result is archived. Legacy
        results are upgraded before validation.

        Args:
            document: JSON text or decoded document with a ``fields`` list

        Returns:
            ImportSummary with added and total field counts

        Raises:
            InvalidFormatError: If the document or any record is malformed
            CapacityExceededError: If the merged counts exceed the limits
        """
        document = self._parse_document(document)
        raw_fields = _records(document, "fields", required=True)
        raw_directories = _records(document, "directories")
        raw_results = _records(document, "results")
        raw_history = _records(document, "history")

        now = self.store.clock()

        # Directories
        upgraded = migrate_directories(
            raw_directories,
            default_name=self.settings.default_directory_name,
            default_crop=self.settings.default_crop,
            now=now,
        ).records
        incoming_directories = _validate(
            Directory,
            [d for d in upgraded if d.get("id") != DEFAULT_DIRECTORY_ID],
            "directories",
        )
        directories = self.store.list_directories()
        new_directories = _new_only({d.id for d in directories}, incoming_directories)
        merged_directories = directories + new_directories

        directory_limit = self.settings.max_directories
        custom_count = sum(1 for d in merged_directories if d.id != DEFAULT_DIRECTORY_ID)
        if custom_count > directory_limit:
            raise CapacityExceededError(
                f"Import would exceed the directory limit of {directory_limit}",
                {"max": directory_limit, "count": custom_count},
            )

        # Fields
        directory_ids = {d.id for d in merged_directories}
        upgraded_fields = migrate_fields(
            raw_fields, _dump(merged_directories), self.settings.default_map_center
        ).records
        incoming_fields = _validate(Field, upgraded_fields, "fields")
        fields = self.store.list_fields()
        new_fields = [
            f if f.directory_id in directory_ids
            else f.model_copy(update={"directory_id": DEFAULT_DIRECTORY_ID})
            for f in _new_only({f.id for f in fields}, incoming_fields)
        ]
        merged_fields = fields + new_fields

        field_limit = self.settings.max_fields
        if len(merged_fields) > field_limit:
            raise CapacityExceededError(
                f"Import would exceed the field limit of {field_limit}",
                {"max": field_limit, "count": len(merged_fields)},
            )

        # Analysis archive
        limit = self.settings.max_stored_results
        results = self.store.list_analysis_results()
        upgraded_results = migrate_analysis_results(raw_results).records
        new_results = _new_only(
            {r.id for r in results}, _validate(AnalysisResult, upgraded_results, "results")
        )
        combined = sorted(results + new_results, key=lambda r: r.timestamp, reverse=True)
        merged_results = combined[:limit]
        archived = {r.id for r in merged_results}
        evicted = {r.id for r in combined[limit:]}

        # history entries only ever describe archived results
        history = [h for h in self.store.list_analysis_history() if h.id not in evicted]
        incoming_history = _validate(AnalysisHistoryEntry, raw_history, "history")
        listed = {h.id for h in incoming_history}
        incoming_history += [history_entry_for(r) for r in new_results if r.id not in listed]
        new_history = [
            h for h in _new_only({h.id for h in history}, incoming_history) if h.id in archived
        ]
        merged_history = sorted(history + new_history, key=lambda h: h.timestamp, reverse=True)[:limit]

        self.store.replace_collections(merged_fields, merged_directories, merged_results, merged_history)

        summary = ImportSummary(
            added=len(new_fields),
            total=len(merged_fields),
            directories_added=len(new_directories),
            results_added=len(new_results),
        )
        logger.info(
            f"Imported {summary.added} fields, {summary.directories_added} directories "
            f"and {summary.results_added} analysis results"
        )
        return summary
