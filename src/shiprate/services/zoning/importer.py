"""Batch import of zone catalogs into the zones/zone_cities/zone_postal_codes collections."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from ...errors import StorageError
from ...models.domain import MatchQuality, ZoneDefinition
from ...persistence.filesystem import FileStorage, rows_to_csv
from ...persistence.store import (
    ZONE_CITIES,
    ZONE_POSTAL_CODES,
    ZONES,
    WriteBatch,
    WriteOperation,
    commit_operations,
)
from ..context import EngineContext
from .matcher import ZoneMatcher, ZoneResolution

logger = logging.getLogger(__name__)

IMPORT_SOURCE = "zone_catalog_import"
CLEARED_COLLECTIONS = (ZONES, ZONE_CITIES, ZONE_POSTAL_CODES)
ZONE_CSV_FIELDS = (
    "zone_id",
    "zone_name",
    "status",
    "cities_matched",
    "coordinate",
    "postal",
    "name",
    "match_quality",
    "processing_time_ms",
    "error",
)


class ImportState(str, Enum):
    IDLE = "idle"
    CLEARING = "clearing"
    PROCESSING = "processing"
    SUMMARIZING = "summarizing"
    DONE = "done"


@dataclass(slots=True)
class ZoneOutcome:
    """Result of importing one zone, produced on a worker thread."""

    zone: ZoneDefinition
    success: bool
    processing_time_ms: float
    zone_doc_id: Optional[str] = None
    cities_matched: int = 0
    match_type_counts: dict[str, int] = field(default_factory=dict)
    match_quality: Optional[MatchQuality] = None
    error: Optional[str] = None


@dataclass(slots=True)
class ImportReport:
    total_zones: int
    processed: int = 0
    successful: int = 0
    failed: int = 0
    total_cities_matched: int = 0
    cleared_documents: int = 0
    matching_report: dict[str, int] = field(
        default_factory=lambda: {
            "coordinate": 0,
            "postal": 0,
            "name": 0,
            "no_matches": 0,
            "perfect": 0,
            "partial": 0,
        }
    )
    errors: list[dict[str, Any]] = field(default_factory=list)
    zone_details: list[dict[str, Any]] = field(default_factory=list)
    performance: dict[str, Any] = field(
        default_factory=lambda: {
            "average_processing_time_ms": 0.0,
            "slowest_zone": None,
            "fastest_zone": None,
        }
    )
    duration_seconds: float = 0.0
    state: ImportState = ImportState.IDLE
    aborted_reason: Optional[str] = None
    report_path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["state"] = self.state.value
        return payload

    def record(self, outcome: ZoneOutcome) -> None:
        self.processed += 1
        zone = outcome.zone
        if not outcome.success:
            self.failed += 1
            self.errors.append({"zone_id": zone.zone_id, "zone_name": zone.zone_name, "error": outcome.error})
            self.zone_details.append(
                {
                    "zone_id": zone.zone_id,
                    "zone_name": zone.zone_name,
                    "status": "failed",
                    "processing_time_ms": outcome.processing_time_ms,
                    "error": outcome.error,
                }
            )
            return

        self.successful += 1
        self.total_cities_matched += outcome.cities_matched
        for tier, count in outcome.match_type_counts.items():
            self.matching_report[tier] = self.matching_report.get(tier, 0) + count
        quality_key = {
            MatchQuality.PERFECT: "perfect",
            MatchQuality.PARTIAL: "partial",
            MatchQuality.NO_MATCH: "no_matches",
        }[outcome.match_quality]
        self.matching_report[quality_key] += 1

        timing = {"zone": zone.zone_name, "time_ms": outcome.processing_time_ms}
        fastest = self.performance["fastest_zone"]
        slowest = self.performance["slowest_zone"]
        if fastest is None or outcome.processing_time_ms < fastest["time_ms"]:
            self.performance["fastest_zone"] = timing
        if slowest is None or outcome.processing_time_ms > slowest["time_ms"]:
            self.performance["slowest_zone"] = dict(timing)

        self.zone_details.append(
            {
                "zone_id": zone.zone_id,
                "zone_name": zone.zone_name,
                "zone_doc_id": outcome.zone_doc_id,
                "status": "success",
                "cities_matched": outcome.cities_matched,
                "match_types": dict(outcome.match_type_counts),
                "match_quality": outcome.match_quality.value,
                "processing_time_ms": outcome.processing_time_ms,
            }
        )

    def finalize(self) -> None:
        timings = [detail["processing_time_ms"] for detail in self.zone_details if detail["status"] == "success"]
        self.performance["average_processing_time_ms"] = round(sum(timings) / len(timings), 2) if timings else 0.0


def build_zone_record(zone: ZoneDefinition, resolution: ZoneResolution) -> dict[str, Any]:
    return {
        "zone_code": zone.zone_id,
        "zone_name": zone.zone_name,
        "description": zone.notes or "",
        "country": zone.country,
        "country_code": zone.country_code,
        "state_province": zone.state_province,
        "state_province_code": zone.state_province_code,
        "zone_type": zone.zone_type,
        "primary_city": zone.city,
        "city_variations": list(zone.city_variations),
        "primary_postal": zone.primary_postal,
        "defined_postal_codes": list(zone.postal_codes),
        "center": {"lat": zone.latitude, "lng": zone.longitude},
        "search_radius": zone.search_radius_meters,
        "enabled": True,
        "metadata": {
            "total_cities": len(resolution.matches),
            "total_postal_codes": len(zone.postal_codes),
            "match_types": dict(resolution.match_type_counts),
            "match_quality": resolution.match_quality.value,
            "import_source": IMPORT_SOURCE,
            "processing_time_ms": None,
        },
    }


def build_city_records(zone_doc_id: str, zone: ZoneDefinition, resolution: ZoneResolution) -> list[dict[str, Any]]:
    records = []
    for match in resolution.matches:
        location = match.location
        records.append(
            {
                "zone_id": zone_doc_id,
                "zone_code": zone.zone_id,
                "city_id": location.id,
                "city": location.city,
                "province": location.province_state,
                "country": location.country,
                "primary_postal": location.postal_code,
                "latitude": location.latitude,
                "longitude": location.longitude,
                "distance_meters": match.distance_meters,
                "match_type": match.match_type.value,
                "matched_name": match.matched_name,
                "matched_postal": match.matched_postal,
                "enabled": True,
            }
        )
    return records


def build_postal_records(zone_doc_id: str, zone: ZoneDefinition) -> list[dict[str, Any]]:
    return [
        {
            "zone_id": zone_doc_id,
            "zone_code": zone.zone_id,
            "postal_code": postal.strip().upper(),
            "country": zone.country_code,
            "province_state": zone.state_province_code,
            "zone_type": zone.zone_type,
        }
        for postal in zone.postal_codes
        if postal.strip()
    ]


class ZoneImportOrchestrator:
    """Resolves and persists zones in fixed-size batches on a bounded worker pool.

    Each batch is submitted to the pool and fully awaited before the next one starts.
    Workers only return :class:`ZoneOutcome` values; the report is aggregated here.
    """

    def __init__(
        self,
        context: EngineContext,
        *,
        matcher: Optional[ZoneMatcher] = None,
        file_storage_factory: Optional[Callable[[], FileStorage]] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Optional[Callable[[ImportReport], None]] = None,
    ) -> None:
        self.context = context
        self.store = context.store
        self.settings = context.settings
        self.matcher = matcher or ZoneMatcher(context)
        self.file_storage_factory = file_storage_factory or (lambda: FileStorage(self.settings.data_root))
        self.sleep = sleep
        self.on_progress = on_progress
        self.state = ImportState.IDLE

    def run(self, zones: Iterable[ZoneDefinition | Mapping[str, Any]], *, clear_existing: bool = False) -> ImportReport:
        definitions = [zone if isinstance(zone, ZoneDefinition) else ZoneDefinition.from_mapping(zone) for zone in zones]
        report = ImportReport(total_zones=len(definitions))
        started = time.perf_counter()
        logger.info(f"Starting zone import: {len(definitions)} zones (clear_existing={clear_existing})")

        aborted = False
        if clear_existing:
            self._transition(report, ImportState.CLEARING)
            try:
                report.cleared_documents = self.clear_existing()
            except StorageError as exc:
                logger.error(f"Clearing existing zones failed, import aborted: {exc}")
                report.aborted_reason = f"Clearing existing zones failed: {exc}"
                aborted = True

        if not aborted:
            self._transition(report, ImportState.PROCESSING)
            self._process_batches(definitions, report)

        self._transition(report, ImportState.SUMMARIZING)
        report.finalize()
        report.duration_seconds = round(time.perf_counter() - started, 3)
        if self.settings.persist_import_reports:
            self._write_report(report)
        self._transition(report, ImportState.DONE)

        logger.info(
            f"Zone import complete in {report.duration_seconds}s: {report.successful} successful, "
            f"{report.failed} failed, {report.total_cities_matched} cities matched"
        )
        return report

    def _transition(self, report: ImportReport, state: ImportState) -> None:
        self.state = state
        report.state = state

    def clear_existing(self) -> int:
        cleared = 0
        for collection in CLEARED_COLLECTIONS:
            ids = self.store.list_ids(collection)
            if not ids:
                continue
            operations = [WriteOperation("delete", collection, doc_id) for doc_id in ids]
            commit_operations(self.store, operations, self.settings.delete_commit_size)
            cleared += len(ids)
            logger.info(f"Cleared {len(ids)} documents from {collection}")
        logger.info(f"Total cleared: {cleared} documents")
        return cleared

    def _process_batches(self, definitions: Sequence[ZoneDefinition], report: ImportReport) -> None:
        batch_size = self.settings.import_batch_size
        total_batches = (len(definitions) + batch_size - 1) // batch_size
        with ThreadPoolExecutor(max_workers=self.settings.import_max_workers) as executor:
            for batch_index in range(total_batches):
                batch = definitions[batch_index * batch_size : (batch_index + 1) * batch_size]
                logger.info(f"Processing batch {batch_index + 1}/{total_batches} ({len(batch)} zones)")
                # map() yields in submission order, so the report keeps catalog order.
                for outcome in executor.map(self.import_zone, batch):
                    report.record(outcome)
                logger.info(
                    f"Batch {batch_index + 1}/{total_batches} complete: {report.processed}/{report.total_zones} "
                    f"processed, {report.successful} successful, {report.failed} failed"
                )
                if self.on_progress is not None:
                    self.on_progress(report)
                if batch_index < total_batches - 1 and self.settings.import_batch_pause_seconds > 0:
                    self.sleep(self.settings.import_batch_pause_seconds)

    def import_zone(self, zone: ZoneDefinition) -> ZoneOutcome:
        started = time.perf_counter()
        try:
            resolution = self.matcher.resolve(zone)
            # A partially resolved zone is not persisted.
            if resolution.has_errors:
                error = "; ".join(resolution.errors)
            else:
                zone_doc_id = self.persist(zone, resolution, started)
                error = None
        except Exception as exc:
            error = str(exc)

        if error is not None:
            elapsed = round((time.perf_counter() - started) * 1000, 2)
            logger.error(f"Failed to process zone {zone.zone_name} ({zone.zone_id}): {error}")
            return ZoneOutcome(zone=zone, success=False, processing_time_ms=elapsed, error=error)

        return ZoneOutcome(
            zone=zone,
            success=True,
            processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
            zone_doc_id=zone_doc_id,
            cities_matched=len(resolution.matches),
            match_type_counts=dict(resolution.match_type_counts),
            match_quality=resolution.match_quality,
        )

    def persist(self, zone: ZoneDefinition, resolution: ZoneResolution, started: float) -> str:
        """Write the zone, then its cities and postal codes in chunked commits."""
        zone_doc_id = self.store.new_id(ZONES)
        zone_record = build_zone_record(zone, resolution)
        self.store.commit_batch(WriteBatch().set(ZONES, zone_doc_id, zone_record))

        city_ops = [
            WriteOperation("set", ZONE_CITIES, self.store.new_id(ZONE_CITIES), record)
            for record in build_city_records(zone_doc_id, zone, resolution)
        ]
        commit_operations(self.store, city_ops, self.settings.city_commit_size)

        postal_ops = [
            WriteOperation("set", ZONE_POSTAL_CODES, self.store.new_id(ZONE_POSTAL_CODES), record)
            for record in build_postal_records(zone_doc_id, zone)
        ]
        commit_operations(self.store, postal_ops, self.settings.postal_commit_size)

        metadata = dict(zone_record["metadata"])
        metadata["processing_time_ms"] = round((time.perf_counter() - started) * 1000, 2)
        self.store.commit_batch(WriteBatch().update(ZONES, zone_doc_id, {"metadata": metadata}))
        return zone_doc_id

    def _write_report(self, report: ImportReport) -> None:
        """Persist the summary JSON and per-zone CSV; a write failure leaves ``report_path`` unset."""
        try:
            storage = self.file_storage_factory()
            run_dir = storage.make_run_directory(prefix="zone_import")
            report.report_path = str(run_dir)
            storage.write_json(run_dir / "summary.json", report.to_dict())
            rows = []
            for detail in report.zone_details:
                match_types = detail.get("match_types") or {}
                rows.append({**detail, **match_types})
            storage.write_csv(run_dir / "zones.csv", rows_to_csv(rows, ZONE_CSV_FIELDS))
        except OSError as exc:
            logger.error(f"Writing import report failed: {exc}")
            report.report_path = None
            return
        logger.info(f"Import report written to {run_dir}")

