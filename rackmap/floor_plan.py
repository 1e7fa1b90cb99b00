"""Floor-plan grid placement and the floor-plan setup wizard."""

import io
import json
import logging
import re
from pathlib import Path

import httpx
from fastapi import HTTPException
from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import Session

from . import asset_schemas, models
from .common import get_for_tenant
from .config import settings
from .rack_layout import rack_usage
from .schemas import CropArea

logger = logging.getLogger(__name__)

GRID_MIN = 10
GRID_MAX = 100
DEFAULT_GRID_COLUMNS = 50
DEFAULT_GRID_ROWS = 30

_DROP_ZONE_RE = re.compile(r"^cell-(\d+)-(\d+)$")


def drop_zone_id(x, y):
    return f"cell-{x}-{y}"


def parse_drop_zone(zone_id):
    match = _DROP_ZONE_RE.match(zone_id or "")
    if not match:
        raise HTTPException(status_code=400, detail="Invalid drop zone")
    return int(match.group(1)), int(match.group(2))


def grid_cells(columns, rows):
    """Droppable cells in row-major order, 1-based coordinates."""
    cells = []
    for index in range(columns * rows):
        x = (index % columns) + 1
        y = index // columns + 1
        cells.append({"id": drop_zone_id(x, y), "x": x, "y": y})
    return cells


def _check_cell(location, x, y):
    if not location.has_grid:
        raise HTTPException(status_code=400, detail="Grid dimensions are not set for this location")
    if not (1 <= x <= location.grid_columns and 1 <= y <= location.grid_rows):
        raise HTTPException(
            status_code=400,
            detail=f"Cell ({x}, {y}) is outside the {location.grid_columns}x{location.grid_rows} grid",
        )


def place_rack(db: Session, tenant_id, rack_id, x, y):
    rack = get_for_tenant(db, models.Rack, tenant_id, rack_id, "Rack not found")
    _check_cell(rack.location, x, y)
    taken = (
        db.query(models.Rack)
        .filter(models.Rack.location_id == rack.location_id)
        .filter(models.Rack.pos_x == x, models.Rack.pos_y == y)
        .filter(models.Rack.id != rack.id)
        .first()
    )
    if taken is not None:
        raise HTTPException(status_code=409, detail=f"Cell ({x}, {y}) is occupied by rack {taken.name}")
    rack.pos_x = x
    rack.pos_y = y
    db.commit()
    db.refresh(rack)
    logger.info("Placed rack %s at (%s, %s)", rack.id, x, y)
    return rack


def unplace_rack(db: Session, tenant_id, rack_id):
    rack = get_for_tenant(db, models.Rack, tenant_id, rack_id, "Rack not found")
    rack.pos_x = None
    rack.pos_y = None
    db.commit()
    db.refresh(rack)
    return rack


def _get_endpoint(db: Session, tenant_id, asset_id):
    asset = get_for_tenant(db, models.Asset, tenant_id, asset_id, "Endpoint not found")
    if asset.asset_type != asset_schemas.ENDPOINT_USER:
        raise HTTPException(status_code=400, detail="Only user endpoints can be placed on the floor plan")
    return asset


def place_endpoint(db: Session, tenant_id, asset_id, x, y):
    endpoint = _get_endpoint(db, tenant_id, asset_id)
    _check_cell(endpoint.location, x, y)
    endpoint.pos_x = x
    endpoint.pos_y = y
    db.commit()
    db.refresh(endpoint)
    logger.info("Placed endpoint %s at (%s, %s)", endpoint.id, x, y)
    return endpoint


def unplace_endpoint(db: Session, tenant_id, asset_id):
    endpoint = _get_endpoint(db, tenant_id, asset_id)
    endpoint.pos_x = None
    endpoint.pos_y = None
    db.commit()
    db.refresh(endpoint)
    return endpoint


def _rack_summary(rack):
    usage = rack_usage(rack.total_u, rack.assets)
    return {
        "id": rack.id,
        "name": rack.name,
        "total_u": rack.total_u,
        "pos_x": rack.pos_x,
        "pos_y": rack.pos_y,
        "status": rack.status,
        "asset_count": len(rack.assets),
        "used_u": usage["used"],
        "occupancy_percentage": usage["percentage"],
    }


def _endpoint_summary(asset):
    return {
        "id": asset.id,
        "name": asset.name,
        "status": asset.status,
        "pos_x": asset.pos_x,
        "pos_y": asset.pos_y,
        "connected": any(port.connection is not None for port in asset.ports),
    }


def location_details(db: Session, tenant_id, location_id):
    location = get_for_tenant(db, models.Location, tenant_id, location_id, "Location not found")
    racks = (
        db.query(models.Rack)
        .filter(models.Rack.location_id == location.id)
        .order_by(models.Rack.name)
        .all()
    )
    endpoints = (
        db.query(models.Asset)
        .filter(models.Asset.location_id == location.id)
        .filter(models.Asset.asset_type == asset_schemas.ENDPOINT_USER)
        .order_by(models.Asset.name)
        .all()
    )
    rack_rows = [_rack_summary(rack) for rack in racks]
    endpoint_rows = [_endpoint_summary(asset) for asset in endpoints]
    return {
        "location": {
            "id": location.id,
            "name": location.name,
            "description": location.description,
            "floor_plan_image_url": location.floor_plan_image_url,
            "grid_columns": location.grid_columns,
            "grid_rows": location.grid_rows,
        },
        "placed_racks": [r for r in rack_rows if r["pos_x"] is not None and r["pos_y"] is not None],
        "unplaced_racks": [r for r in rack_rows if r["pos_x"] is None or r["pos_y"] is None],
        "placed_endpoints": [e for e in endpoint_rows if e["pos_x"] is not None and e["pos_y"] is not None],
        "unplaced_endpoints": [e for e in endpoint_rows if e["pos_x"] is None or e["pos_y"] is None],
    }


def _check_grid(value, label):
    if not GRID_MIN <= value <= GRID_MAX:
        raise HTTPException(status_code=400, detail=f"{label} must be between {GRID_MIN} and {GRID_MAX}")


def crop_image(content: bytes, crop: CropArea) -> bytes:
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise HTTPException(status_code=400, detail="The uploaded file is not a supported image") from exc
    if crop.x + crop.width > image.width or crop.y + crop.height > image.height:
        raise HTTPException(status_code=400, detail="Crop area is outside the image")
    cropped = image.crop((crop.x, crop.y, crop.x + crop.width, crop.y + crop.height))
    if cropped.mode not in ("RGB", "RGBA"):
        cropped = cropped.convert("RGBA")
    buffer = io.BytesIO()
    cropped.save(buffer, format="PNG")
    return buffer.getvalue()


def floor_plan_path(tenant_id, location_id) -> Path:
    return Path(settings.upload_dir) / "floor-plans" / str(tenant_id) / f"location-{location_id}.png"


def floor_plan_url(tenant_id, location_id) -> str:
    prefix = settings.upload_url_prefix.rstrip("/")
    return f"{prefix}/floor-plans/{tenant_id}/location-{location_id}.png"


def notify_webhook(content, filename, content_type, location_id, tenant_id, crop: CropArea, grid_cols, grid_rows, client=None):
    """Hand the original upload to the floor-plan processing workflow."""
    url = settings.floorplan_webhook_url
    if not url:
        return "skipped"
    data = {
        "location_id": str(location_id),
        "tenant_id": str(tenant_id),
        "crop_data": json.dumps(crop.model_dump()),
        "grid_cols": str(grid_cols),
        "grid_rows": str(grid_rows),
    }
    files = {"file": (filename or "floor-plan", content, content_type or "application/octet-stream")}
    http = client or httpx
    try:
        response = http.post(url, data=data, files=files, timeout=settings.floorplan_webhook_timeout)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Floor-plan webhook failed for location %s: %s", location_id, exc)
        return "failed"
    return "sent"


def configure_floor_plan(
    db: Session,
    tenant_id,
    location_id,
    content: bytes,
    filename,
    content_type,
    crop: CropArea,
    grid_cols=DEFAULT_GRID_COLUMNS,
    grid_rows=DEFAULT_GRID_ROWS,
    client=None,
):
    """Crop and store a floor-plan image and set the location grid.

    Returns the updated location and the webhook outcome
    (``sent``, ``failed`` or ``skipped``).
    """
    location = get_for_tenant(db, models.Location, tenant_id, location_id, "Location not found")
    if not content:
        raise HTTPException(status_code=400, detail="An image file is required")
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(status_code=400, detail="The uploaded image is too large")
    _check_grid(grid_cols, "Grid columns")
    _check_grid(grid_rows, "Grid rows")

    png = crop_image(content, crop)
    path = floor_plan_path(tenant_id, location.id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(png)

    location.floor_plan_image_url = floor_plan_url(tenant_id, location.id)
    location.grid_columns = grid_cols
    location.grid_rows = grid_rows
    # Placements outside the new grid no longer point at a real cell
    endpoints = (
        db.query(models.Asset)
        .filter(models.Asset.location_id == location.id)
        .filter(models.Asset.pos_x.isnot(None))
        .all()
    )
    for item in list(location.racks) + endpoints:
        if item.is_placed and (item.pos_x > grid_cols or item.pos_y > grid_rows):
            item.pos_x = item.pos_y = None
    db.commit()
    db.refresh(location)
    logger.info("Configured floor plan for location %s (%sx%s)", location.id, grid_cols, grid_rows)

    webhook = notify_webhook(
        content, filename, content_type, location.id, tenant_id, crop, grid_cols, grid_rows, client=client
    )
    return location, webhook


def floor_plan_file(location):
    """Local path of a stored floor-plan image, if it exists."""
    if not location.floor_plan_image_url:
        return None
    path = floor_plan_path(location.tenant_id, location.id)
    return path if path.exists() else None
