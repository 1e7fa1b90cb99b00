"""Locations, racks and assets."""

import json
import logging
import math

from fastapi import HTTPException
from sqlalchemy.orm import Session

from . import asset_schemas, models
from .common import clean_text, get_for_tenant, parse_optional_id, require_text
from .rack_layout import has_valid_position, ranges_overlap

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_U = 42
DEFAULT_ASSET_STATUS = "IN_PRODUCTION"


def _plan_limit(db: Session, tenant_id, attr):
    tenant = db.get(models.Tenant, tenant_id)
    if tenant is None or tenant.plan is None:
        return None
    return getattr(tenant.plan, attr)


def check_plan_limit(db: Session, tenant_id, model, attr, label):
    limit = _plan_limit(db, tenant_id, attr)
    if limit is None:
        return
    count = db.query(model).filter(model.tenant_id == tenant_id).count()
    if count >= limit:
        raise HTTPException(
            status_code=403,
            detail=f"Your plan allows at most {limit} {label}",
        )


# --- Locations ---

def list_locations(db: Session, tenant_id):
    return (
        db.query(models.Location)
        .filter(models.Location.tenant_id == tenant_id)
        .order_by(models.Location.name)
        .all()
    )


def get_location(db: Session, tenant_id, location_id):
    return get_for_tenant(db, models.Location, tenant_id, location_id, "Location not found")


def create_location(db: Session, tenant_id, name, parent_location_id=None, description=None):
    name = require_text(name, "Location name")
    parent_id = parse_optional_id(parent_location_id)
    if parent_id is not None:
        get_for_tenant(db, models.Location, tenant_id, parent_id, "Parent location not found")
    location = models.Location(
        tenant_id=tenant_id,
        name=name,
        parent_location_id=parent_id,
        description=clean_text(description),
    )
    db.add(location)
    db.commit()
    db.refresh(location)
    logger.info("Created location %s (%s) for tenant %s", location.id, location.name, tenant_id)
    return location


def location_path(location):
    """Names from the root location down to ``location``."""
    names = []
    seen = set()
    while location is not None and location.id not in seen:
        seen.add(location.id)
        names.append(location.name)
        location = location.parent
    return list(reversed(names))


def delete_location(db: Session, tenant_id, location_id):
    location = get_location(db, tenant_id, location_id)
    in_use = (
        db.query(models.Rack).filter(models.Rack.location_id == location.id).count()
        + db.query(models.Asset).filter(models.Asset.location_id == location.id).count()
        + db.query(models.Location).filter(models.Location.parent_location_id == location.id).count()
    )
    if in_use:
        raise HTTPException(status_code=409, detail="Location still has racks, assets or sub-locations")
    db.delete(location)
    db.commit()
    logger.info("Deleted location %s for tenant %s", location_id, tenant_id)


# --- Racks ---

def _parse_positive_int(value, label):
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{label} must be a whole number") from exc
    if number <= 0:
        raise HTTPException(status_code=400, detail=f"{label} must be a positive number")
    return number


def get_rack(db: Session, tenant_id, rack_id):
    return get_for_tenant(db, models.Rack, tenant_id, rack_id, "Rack not found")


def create_rack(db: Session, tenant_id, name, location_id, total_u=DEFAULT_TOTAL_U, notes=None):
    name = require_text(name, "Rack name")
    total_u = _parse_positive_int(total_u, "Total U")
    location = get_for_tenant(
        db, models.Location, tenant_id, parse_optional_id(location_id), "Select a valid location"
    )
    check_plan_limit(db, tenant_id, models.Rack, "rack_limit", "racks")
    rack = models.Rack(
        tenant_id=tenant_id,
        location_id=location.id,
        name=name,
        total_u=total_u,
        notes=clean_text(notes),
    )
    db.add(rack)
    db.commit()
    db.refresh(rack)
    logger.info("Created rack %s (%s, %sU) in location %s", rack.id, rack.name, rack.total_u, location.id)
    return rack


def update_rack(db: Session, tenant_id, rack_id, name=None, notes=None, status=None, total_u=None):
    rack = get_rack(db, tenant_id, rack_id)
    if name is not None:
        rack.name = require_text(name, "Rack name")
    if notes is not None:
        rack.notes = clean_text(notes)
    if status is not None:
        rack.status = clean_text(status)
    if total_u is not None:
        total_u = _parse_positive_int(total_u, "Total U")
        for asset in rack.assets:
            if asset.end_u is not None and asset.end_u > total_u:
                raise HTTPException(
                    status_code=409,
                    detail=f"Asset {asset.name} occupies U{asset.end_u}, rack cannot shrink to {total_u}U",
                )
        rack.total_u = total_u
    db.commit()
    db.refresh(rack)
    return rack


def delete_rack(db: Session, tenant_id, rack_id):
    rack = get_rack(db, tenant_id, rack_id)
    db.delete(rack)
    db.commit()
    logger.info("Deleted rack %s for tenant %s", rack_id, tenant_id)


# --- Assets ---

def _reject_constant(name):
    raise HTTPException(status_code=400, detail=f"Details must not contain {name}")


def _finite_float(text):
    value = float(text)
    if not math.isfinite(value):
        _reject_constant(text)
    return value


def parse_details(raw):
    """Details arrive as a JSON string from the form; blank means none."""
    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw
    if not raw.strip():
        return None
    try:
        parsed = json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Details must be valid JSON or empty") from exc
    if parsed is None:
        return None
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="Details must be a JSON object")
    return parsed


def check_rack_slot(rack, start_u, size_u, exclude_asset_id=None):
    """Raise unless ``[start_u, start_u + size_u - 1]`` is free in ``rack``."""
    if start_u < 1 or size_u < 1 or start_u + size_u - 1 > rack.total_u:
        raise HTTPException(
            status_code=400,
            detail=f"U{start_u} with size {size_u}U does not fit in a {rack.total_u}U rack",
        )
    for other in rack.assets:
        if other.id == exclude_asset_id or not has_valid_position(other, rack.total_u):
            continue
        if ranges_overlap(start_u, size_u, other.start_u, other.size_u):
            raise HTTPException(
                status_code=409,
                detail=f"U{start_u}-U{start_u + size_u - 1} overlaps {other.name}",
            )


def get_asset(db: Session, tenant_id, asset_id):
    return get_for_tenant(db, models.Asset, tenant_id, asset_id, "Asset not found")


def create_asset(
    db: Session,
    tenant_id,
    rack_id,
    start_u,
    name,
    asset_type=None,
    status=DEFAULT_ASSET_STATUS,
    size_u=1,
    details=None,
):
    rack = get_rack(db, tenant_id, rack_id)
    name = require_text(name, "Asset name")
    start_u = _parse_positive_int(start_u, "Start U")
    size_u = _parse_positive_int(size_u, "Size")
    asset_type = clean_text(asset_type)
    cleaned = asset_schemas.clean_details(asset_type, parse_details(details))
    check_rack_slot(rack, start_u, size_u)
    check_plan_limit(db, tenant_id, models.Asset, "asset_limit", "assets")
    asset = models.Asset(
        tenant_id=tenant_id,
        rack_id=rack.id,
        location_id=rack.location_id,
        name=name,
        asset_type=asset_type,
        status=clean_text(status),
        start_u=start_u,
        size_u=size_u,
        details=cleaned,
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    logger.info("Created asset %s (%s) in rack %s at U%s/%sU", asset.id, asset.name, rack.id, start_u, size_u)
    return asset


def update_asset(db: Session, tenant_id, asset_id, name=None, asset_type=None, status=None, details=None, size_u=None):
    asset = get_asset(db, tenant_id, asset_id)
    if name is not None:
        asset.name = require_text(name, "Asset name")
    if asset_type is not None:
        asset.asset_type = clean_text(asset_type)
    if status is not None:
        asset.status = clean_text(status)
    if details is not None or asset_type is not None:
        raw = parse_details(details) if details is not None else asset.details
        asset.details = asset_schemas.clean_details(asset.asset_type, raw)
    if size_u is not None:
        size_u = _parse_positive_int(size_u, "Size")
        if asset.rack is not None and asset.start_u is not None:
            check_rack_slot(asset.rack, asset.start_u, size_u, exclude_asset_id=asset.id)
        asset.size_u = size_u
    db.commit()
    db.refresh(asset)
    return asset


def move_asset(db: Session, tenant_id, asset_id, rack_id, start_u=None):
    """Move an asset to another slot or rack; ``rack_id=None`` unracks it."""
    asset = get_asset(db, tenant_id, asset_id)
    rack_id = parse_optional_id(rack_id)
    if rack_id is None:
        asset.rack_id = None
        asset.start_u = None
    else:
        rack = get_rack(db, tenant_id, rack_id)
        start_u = _parse_positive_int(start_u, "Start U")
        size_u = asset.size_u or 1
        check_rack_slot(rack, start_u, size_u, exclude_asset_id=asset.id)
        asset.rack_id = rack.id
        asset.location_id = rack.location_id
        asset.start_u = start_u
        asset.size_u = size_u
    db.commit()
    db.refresh(asset)
    logger.info("Moved asset %s to rack %s U%s", asset.id, asset.rack_id, asset.start_u)
    return asset


def delete_asset(db: Session, tenant_id, asset_id):
    asset = get_asset(db, tenant_id, asset_id)
    rack_id = asset.rack_id
    db.delete(asset)
    db.commit()
    logger.info("Deleted asset %s for tenant %s", asset_id, tenant_id)
    return rack_id
