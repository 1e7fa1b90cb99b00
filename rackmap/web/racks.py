"""Rack list, rack visualizer and everything reachable from the asset panel."""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from .. import asset_schemas, auth, cabling, inventory, models, reports
from ..database import get_db
from ..rack_layout import build_rack_layout, free_units, rack_usage
from ..templating import render

router = APIRouter()


def _asset_url(asset):
    if asset.rack_id is not None:
        return f"/racks/{asset.rack_id}?asset={asset.id}"
    return "/assets"


def _redirect(url):
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def _port_rows(asset):
    rows = []
    for port in asset.ports:
        connection = port.connection
        peer = port.peer
        rows.append({
            "port": port,
            "connection": connection,
            "peer": peer,
            "peer_asset": peer.asset if peer is not None else None,
            "is_rear": port.name.endswith(cabling.REAR_SUFFIX),
        })
    return rows


@router.get("/racks", response_class=HTMLResponse)
async def list_racks(
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    return render(
        request,
        "racks.html",
        user,
        racks=reports.racks_overview(db, user.tenant_id),
        locations=inventory.list_locations(db, user.tenant_id),
        default_total_u=inventory.DEFAULT_TOTAL_U,
    )


@router.post("/racks/add")
async def add_rack(
    name: str = Form(""),
    location_id: str = Form(""),
    total_u: int = Form(inventory.DEFAULT_TOTAL_U),
    notes: str = Form(""),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    rack = inventory.create_rack(db, user.tenant_id, name, location_id, total_u, notes)
    return _redirect(f"/racks/{rack.id}")


@router.get("/racks/{rack_id}", response_class=HTMLResponse)
async def view_rack(
    request: Request,
    rack_id: int,
    asset: Optional[int] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    rack = inventory.get_rack(db, user.tenant_id, rack_id)
    rows, skipped = build_rack_layout(rack.total_u, rack.assets)

    selected = None
    if asset is not None:
        selected = next((item for item in rack.assets if item.id == asset), None)

    return render(
        request,
        "rack_detail.html",
        user,
        rack=rack,
        rack_visual=rows,
        skipped=skipped,
        usage=rack_usage(rack.total_u, rack.assets),
        free_units=free_units(rack.total_u, rack.assets),
        selected=selected,
        ports=_port_rows(selected) if selected is not None else [],
        schema=(asset_schemas.schema_for(selected.asset_type) or []) if selected is not None else [],
        asset_types=asset_schemas.asset_type_options(),
        device_types=asset_schemas.device_type_options(),
        statuses=asset_schemas.ASSET_STATUSES,
        port_types=asset_schemas.PORT_TYPES,
        racks=db.query(models.Rack).filter(models.Rack.tenant_id == user.tenant_id).order_by(models.Rack.name).all(),
        locations=inventory.list_locations(db, user.tenant_id),
        patch_panel=asset_schemas.PATCH_PANEL,
    )


@router.post("/racks/{rack_id}/edit")
async def edit_rack(
    rack_id: int,
    name: str = Form(""),
    notes: str = Form(""),
    rack_status: str = Form("", alias="status"),
    total_u: int = Form(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    inventory.update_rack(db, user.tenant_id, rack_id, name=name, notes=notes, status=rack_status, total_u=total_u)
    return _redirect(f"/racks/{rack_id}")


@router.post("/racks/{rack_id}/delete")
async def delete_rack(
    rack_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    inventory.delete_rack(db, user.tenant_id, rack_id)
    return _redirect("/racks")


# --- Assets ---

@router.post("/racks/{rack_id}/assets/add")
async def add_asset(
    rack_id: int,
    name: str = Form(""),
    asset_type: str = Form(""),
    asset_status: str = Form(inventory.DEFAULT_ASSET_STATUS, alias="status"),
    start_u: int = Form(...),
    size_u: int = Form(1),
    details: str = Form(""),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    asset = inventory.create_asset(
        db, user.tenant_id, rack_id, start_u, name,
        asset_type=asset_type, status=asset_status, size_u=size_u, details=details,
    )
    return _redirect(_asset_url(asset))


@router.post("/assets/{asset_id}/edit")
async def edit_asset(
    asset_id: int,
    name: str = Form(""),
    asset_type: str = Form(""),
    asset_status: str = Form("", alias="status"),
    size_u: int = Form(1),
    details: str = Form(""),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    asset = inventory.update_asset(
        db, user.tenant_id, asset_id,
        name=name, asset_type=asset_type, status=asset_status, details=details, size_u=size_u,
    )
    return _redirect(_asset_url(asset))


@router.post("/assets/{asset_id}/move")
async def move_asset(
    asset_id: int,
    rack_id: str = Form(""),
    start_u: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    asset = inventory.move_asset(db, user.tenant_id, asset_id, rack_id, start_u)
    return _redirect(_asset_url(asset))


@router.post("/assets/{asset_id}/delete")
async def delete_asset(
    asset_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    rack_id = inventory.delete_asset(db, user.tenant_id, asset_id)
    return _redirect(f"/racks/{rack_id}" if rack_id is not None else "/assets")


# --- Ports and connections ---

@router.post("/assets/{asset_id}/ports/generate")
async def generate_ports(
    asset_id: int,
    count: int = Form(...),
    name_prefix: str = Form(""),
    start_number: int = Form(1),
    port_type: str = Form(cabling.DEFAULT_PORT_TYPE),
    create_rear_ports: bool = Form(False),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    cabling.generate_ports(
        db, user.tenant_id, asset_id, count, name_prefix, start_number, port_type, create_rear_ports
    )
    return _redirect(_asset_url(inventory.get_asset(db, user.tenant_id, asset_id)))


@router.post("/ports/{port_id}/delete")
async def delete_port(
    port_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    asset_id = cabling.delete_port(db, user.tenant_id, port_id)
    return _redirect(_asset_url(inventory.get_asset(db, user.tenant_id, asset_id)))


@router.get("/ports/{port_id}/connect", response_class=HTMLResponse)
async def connect_port_page(
    request: Request,
    port_id: int,
    target_asset_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    port = cabling.get_port(db, user.tenant_id, port_id)
    candidates = (
        db.query(models.Asset)
        .filter(models.Asset.tenant_id == user.tenant_id)
        .filter(models.Asset.ports.any())
        .order_by(models.Asset.name)
        .all()
    )
    target = None
    free_ports = []
    if target_asset_id is not None:
        target = inventory.get_asset(db, user.tenant_id, target_asset_id)
        free_ports = cabling.free_ports_for_asset(db, user.tenant_id, target.id, source_port=port)
    return render(
        request,
        "connect_port.html",
        user,
        port=port,
        candidates=candidates,
        target=target,
        free_ports=free_ports,
        back_url=_asset_url(port.asset),
    )


@router.post("/ports/{port_id}/connect")
async def connect_port(
    port_id: int,
    target_port_id: str = Form(""),
    brand: str = Form(""),
    color: str = Form(""),
    category: str = Form(""),
    length_m: str = Form(""),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    cable = cabling.clean_cable_details(brand, color, category, length_m)
    cabling.connect_ports(db, user.tenant_id, port_id, target_port_id, cable)
    return _redirect(_asset_url(cabling.get_port(db, user.tenant_id, port_id).asset))


@router.post("/connections/{connection_id}/delete")
async def delete_connection(
    connection_id: int,
    next_url: str = Form("/racks", alias="next"),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    cabling.disconnect(db, user.tenant_id, connection_id)
    # Only local paths are followed
    if not next_url.startswith("/") or next_url.startswith("//"):
        next_url = "/racks"
    return _redirect(next_url)


@router.post("/ports/{port_id}/endpoint")
async def create_endpoint(
    port_id: int,
    name: str = Form(""),
    location_id: str = Form(""),
    brand: str = Form(""),
    color: str = Form(""),
    category: str = Form(""),
    length_m: str = Form(""),
    device_name: str = Form(""),
    device_type: str = Form(""),
    device_details: str = Form(""),
    cord_brand: str = Form(""),
    cord_color: str = Form(""),
    cord_category: str = Form(""),
    cord_length_m: str = Form(""),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    device = cabling.clean_device_form(device_name, device_type, inventory.parse_details(device_details))
    cabling.create_endpoint(
        db,
        user.tenant_id,
        port_id,
        name,
        location_id,
        cable=cabling.clean_cable_details(brand, color, category, length_m),
        device=device,
        patch_cord=cabling.clean_cable_details(cord_brand, cord_color, cord_category, cord_length_m),
    )
    port = cabling.get_port(db, user.tenant_id, port_id)
    return _redirect(_asset_url(port.asset))
