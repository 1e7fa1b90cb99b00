"""Tenant-wide aggregations used by the dashboard, rack list and assistant."""

import math

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from . import asset_schemas, models
from .rack_layout import rack_usage

ASSETS_PAGE_SIZE = 15


def count_racks(db: Session, tenant_id):
    return db.query(models.Rack).filter(models.Rack.tenant_id == tenant_id).count()


def count_assets(db: Session, tenant_id):
    return db.query(models.Asset).filter(models.Asset.tenant_id == tenant_id).count()


def count_unassigned_assets(db: Session, tenant_id):
    return (
        db.query(models.Asset)
        .filter(models.Asset.tenant_id == tenant_id)
        .filter(models.Asset.rack_id.is_(None))
        .count()
    )


def _used_port_ids(db: Session, tenant_id):
    used = set()
    rows = (
        db.query(models.Connection.port_a_id, models.Connection.port_b_id)
        .filter(models.Connection.tenant_id == tenant_id)
        .all()
    )
    for port_a_id, port_b_id in rows:
        used.add(port_a_id)
        used.add(port_b_id)
    return used


def network_ports_stats(db: Session, tenant_id):
    total = db.query(models.Port).filter(models.Port.tenant_id == tenant_id).count()
    return {"total_ports": total, "used_ports": len(_used_port_ids(db, tenant_id))}


def racks_overview(db: Session, tenant_id):
    racks = (
        db.query(models.Rack)
        .filter(models.Rack.tenant_id == tenant_id)
        .order_by(models.Rack.name)
        .all()
    )
    used_ports = _used_port_ids(db, tenant_id)
    overview = []
    for rack in racks:
        ports = [port for asset in rack.assets for port in asset.ports]
        usage = rack_usage(rack.total_u, rack.assets)
        overview.append({
            "id": rack.id,
            "name": rack.name,
            "notes": rack.notes,
            "location_id": rack.location_id,
            "location_name": rack.location.name if rack.location else None,
            "status": rack.status,
            "total_u": rack.total_u,
            "occupied_u": usage["used"],
            "occupancy_percentage": usage["percentage"],
            "asset_count": len(rack.assets),
            "total_rack_ports": len(ports),
            "used_rack_ports": sum(1 for port in ports if port.id in used_ports),
        })
    return overview


def fullest_rack(db: Session, tenant_id):
    best = None
    for row in racks_overview(db, tenant_id):
        if best is None or row["occupancy_percentage"] > best["occupancy_percentage"]:
            best = row
    if best is None:
        return None
    return {
        "id": best["id"],
        "name": best["name"],
        "occupancy_percentage": round(best["occupancy_percentage"], 1),
    }


def unconnected_endpoints(db: Session, tenant_id):
    used_ports = _used_port_ids(db, tenant_id)
    endpoints = (
        db.query(models.Asset)
        .filter(models.Asset.tenant_id == tenant_id)
        .filter(models.Asset.asset_type == asset_schemas.ENDPOINT_USER)
        .order_by(models.Asset.name)
        .all()
    )
    return [
        endpoint for endpoint in endpoints
        if not any(port.id in used_ports for port in endpoint.ports)
    ]


SORT_COLUMNS = {
    "name": models.Asset.name,
    "asset_type": models.Asset.asset_type,
    "status": models.Asset.status,
    "created_at": models.Asset.created_at,
    "rack_name": models.Rack.name,
    "location_name": models.Location.name,
}


def paginated_assets(
    db: Session,
    tenant_id,
    search=None,
    asset_type=None,
    status=None,
    sort_by="name",
    ascending=True,
    page=1,
    page_size=ASSETS_PAGE_SIZE,
):
    if sort_by not in SORT_COLUMNS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid sort column. Allowed: {', '.join(sorted(SORT_COLUMNS))}",
        )
    page = max(int(page or 1), 1)
    query = (
        db.query(models.Asset, models.Rack.name, models.Location.name)
        .outerjoin(models.Rack, models.Asset.rack_id == models.Rack.id)
        .outerjoin(models.Location, models.Asset.location_id == models.Location.id)
        .filter(models.Asset.tenant_id == tenant_id)
    )
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(models.Asset.name).like(pattern),
                func.lower(models.Rack.name).like(pattern),
                func.lower(models.Location.name).like(pattern),
            )
        )
    if asset_type and asset_type != "all":
        query = query.filter(models.Asset.asset_type == asset_type)
    if status and status != "all":
        query = query.filter(models.Asset.status == status)

    total_count = query.count()
    column = SORT_COLUMNS[sort_by]
    query = query.order_by(column.asc() if ascending else column.desc(), models.Asset.id.asc())
    rows = query.limit(page_size).offset((page - 1) * page_size).all()
    items = [
        {
            "id": asset.id,
            "name": asset.name,
            "asset_type": asset.asset_type,
            "status": asset.status,
            "rack_id": asset.rack_id,
            "rack_name": rack_name,
            "location_name": location_name,
            "start_u": asset.start_u,
            "size_u": asset.size_u,
        }
        for asset, rack_name, location_name in rows
    ]
    return {
        "items": items,
        "total_count": total_count,
        "page": page,
        "page_size": page_size,
        "page_count": max(math.ceil(total_count / page_size), 1),
    }


def dashboard_snapshot(db: Session, tenant_id):
    return {
        "total_racks": count_racks(db, tenant_id),
        "total_assets": count_assets(db, tenant_id),
        "unassigned_assets": count_unassigned_assets(db, tenant_id),
        "fullest_rack": fullest_rack(db, tenant_id),
        "ports": network_ports_stats(db, tenant_id),
    }
