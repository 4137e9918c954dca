"""DIM factor resolution and administration.

Resolution order for ``(carrier, service type, zone, customer)``:

1. the customer's newest active, effective and unexpired override for the carrier whose
   service type and zone are unset, ``"all"`` or the requested value;
2. carrier factors probed from most to least specific:
   (service, zone), (service, all), (all, zone), (all, all).

Within a probe the newest ``effective_date`` wins. Nothing found yields ``None`` and the
caller charges actual weight.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from ...errors import RecordNotFound, ValidationError
from ...models.domain import ALL, DimFactor, DimUnit, parse_datetime
from ...persistence.store import CUSTOMER_DIM_FACTOR_OVERRIDES, DIM_FACTORS, WriteBatch
from ..context import EngineContext

logger = logging.getLogger(__name__)


def _usable(records: Iterable[Mapping[str, Any]], now: datetime) -> list[DimFactor]:
    factors = []
    for record in records:
        try:
            factor = DimFactor.from_record(record)
        except (ValidationError, KeyError) as exc:
            logger.warning(f"Skipping malformed DIM factor {record.get('id')}: {exc}")
            continue
        if factor.is_active and factor.is_effective(now) and not factor.is_expired(now):
            factors.append(factor)
    return factors


def _newest(factors: Iterable[DimFactor]) -> Optional[DimFactor]:
    return max(factors, key=lambda factor: factor.effective_date, default=None)


def carrier_probe_order(service_type: Optional[str], zone: Optional[str]) -> list[tuple[str, str]]:
    probes = [
        (service_type or ALL, zone or ALL),
        (service_type or ALL, ALL),
        (ALL, zone or ALL),
        (ALL, ALL),
    ]
    ordered: list[tuple[str, str]] = []
    for probe in probes:
        if probe not in ordered:
            ordered.append(probe)
    return ordered


class DimFactorResolver:
    def __init__(self, context: EngineContext) -> None:
        self.context = context
        self.store = context.store

    def resolve(
        self,
        carrier_id: str,
        service_type: Optional[str] = None,
        zone: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> Optional[DimFactor]:
        if not carrier_id:
            raise ValidationError("Carrier ID is required to resolve a DIM factor")
        now = self.context.now()

        if customer_id:
            override = self.customer_override(customer_id, carrier_id, service_type, zone, now)
            if override is not None:
                logger.debug(f"Using customer {customer_id} DIM override {override.id}")
                return override

        for probe_service, probe_zone in carrier_probe_order(service_type, zone):
            records = self.store.find(
                DIM_FACTORS,
                carrier_id=carrier_id,
                service_type=probe_service,
                zone=probe_zone,
                is_active=True,
            )
            factor = _newest(f for f in _usable(records, now) if not f.is_customer_override)
            if factor is not None:
                logger.debug(f"Using DIM factor {factor.id} for {carrier_id} ({probe_service}, {probe_zone})")
                return factor
        return None

    def customer_override(
        self,
        customer_id: str,
        carrier_id: str,
        service_type: Optional[str],
        zone: Optional[str],
        now: datetime,
    ) -> Optional[DimFactor]:
        records = self.store.find(
            CUSTOMER_DIM_FACTOR_OVERRIDES, customer_id=customer_id, carrier_id=carrier_id, is_active=True
        )
        service_scopes = {None, ALL, service_type}
        zone_scopes = {None, ALL, zone}
        applicable = [
            override
            for override in _usable(records, now)
            if override.service_type in service_scopes and override.zone in zone_scopes
        ]
        return _newest(applicable)


def _validated_record(data: Mapping[str, Any], now: datetime, *, customer_id: Optional[str] = None) -> dict[str, Any]:
    carrier_id = data.get("carrier_id")
    factor_value = data.get("factor")
    unit = data.get("unit")
    if not carrier_id or factor_value in (None, "") or not unit:
        raise ValidationError("Carrier ID, DIM factor, and unit are required")
    factor = DimFactor.from_record(
        {
            "carrier_id": carrier_id,
            "carrier_name": data.get("carrier_name"),
            "service_type": data.get("service_type") or ALL,
            "zone": data.get("zone") or ALL,
            "factor": factor_value,
            "unit": unit,
            "effective_date": data.get("effective_date") or now,
            "expiry_date": data.get("expiry_date"),
            "is_active": data.get("is_active", True),
            "notes": data.get("notes"),
            "customer_id": customer_id,
        }
    )
    record = factor.to_record()
    record["created_at"] = record["updated_at"] = now.isoformat()
    return record


def create_dim_factor(context: EngineContext, data: Mapping[str, Any]) -> dict[str, Any]:
    now = context.now()
    record = _validated_record(data, now)
    doc_id = context.store.new_id(DIM_FACTORS)
    context.store.commit_batch(WriteBatch().set(DIM_FACTORS, doc_id, record))
    logger.info(f"Created DIM factor {doc_id} for carrier {record['carrier_id']}")
    return {"success": True, "dim_factor_id": doc_id, "message": "DIM factor created successfully"}


def create_customer_override(context: EngineContext, data: Mapping[str, Any]) -> dict[str, Any]:
    customer_id = data.get("customer_id")
    if not customer_id:
        raise ValidationError("Customer ID, Carrier ID, DIM factor, and unit are required")
    now = context.now()
    record = _validated_record(data, now, customer_id=customer_id)
    record["reason"] = data.get("reason") or ""
    doc_id = context.store.new_id(CUSTOMER_DIM_FACTOR_OVERRIDES)
    context.store.commit_batch(WriteBatch().set(CUSTOMER_DIM_FACTOR_OVERRIDES, doc_id, record))
    logger.info(f"Created DIM override {doc_id} for customer {customer_id}")
    return {"success": True, "override_id": doc_id, "message": "Customer DIM factor override created successfully"}


def list_dim_factors(
    context: EngineContext,
    *,
    carrier_id: Optional[str] = None,
    service_type: Optional[str] = None,
    zone: Optional[str] = None,
    active_only: bool = True,
) -> dict[str, Any]:
    """Carrier factors newest first, each flagged with ``is_currently_effective``."""
    filters = {"carrier_id": carrier_id} if carrier_id else {}
    now = context.now()
    factors = []
    for record in context.store.find(DIM_FACTORS, **filters):
        if active_only and not record.get("is_active", True):
            continue
        if service_type and record.get("service_type") not in (service_type, ALL):
            continue
        if zone and record.get("zone") not in (zone, ALL):
            continue
        effective = parse_datetime(record.get("effective_date"))
        expiry = parse_datetime(record.get("expiry_date"))
        factors.append(
            {
                **record,
                "is_currently_effective": effective is not None
                and effective <= now
                and (expiry is None or expiry > now),
                "_sort_key": effective,
            }
        )
    factors.sort(key=lambda item: item["_sort_key"] or datetime.min.replace(tzinfo=now.tzinfo), reverse=True)
    for item in factors:
        item.pop("_sort_key")
    return {"success": True, "dim_factors": factors, "count": len(factors)}


def update_dim_factor(context: EngineContext, dim_factor_id: str, updates: Mapping[str, Any]) -> dict[str, Any]:
    if not dim_factor_id:
        raise ValidationError("DIM factor ID is required")
    if context.store.get(DIM_FACTORS, dim_factor_id) is None:
        raise RecordNotFound(DIM_FACTORS, dim_factor_id)

    changes = dict(updates)
    changes.pop("id", None)
    if "factor" in changes:
        try:
            changes["factor"] = float(changes["factor"])
        except (TypeError, ValueError) as exc:
            raise ValidationError("DIM factor must be a number") from exc
        if changes["factor"] <= 0:
            raise ValidationError("DIM factor must be greater than 0")
    if changes.get("unit"):
        changes["unit"] = DimUnit.parse(changes["unit"]).value
    for date_field in ("effective_date", "expiry_date"):
        if changes.get(date_field):
            changes[date_field] = parse_datetime(changes[date_field]).isoformat()
    changes["updated_at"] = context.now().isoformat()

    context.store.commit_batch(WriteBatch().update(DIM_FACTORS, dim_factor_id, changes))
    return {"success": True, "message": "DIM factor updated successfully"}


def delete_dim_factor(context: EngineContext, dim_factor_id: str) -> dict[str, Any]:
    if not dim_factor_id:
        raise ValidationError("DIM factor ID is required")
    if context.store.get(DIM_FACTORS, dim_factor_id) is None:
        raise RecordNotFound(DIM_FACTORS, dim_factor_id)
    context.store.commit_batch(WriteBatch().delete(DIM_FACTORS, dim_factor_id))
    logger.info(f"Deleted DIM factor {dim_factor_id}")
    return {"success": True, "message": "DIM factor deleted successfully"}
