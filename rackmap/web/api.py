"""JSON endpoints used by the floor-plan editor, the connect dialog and the assistant."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import asset_schemas, assistant, auth, cabling, floor_plan, models
from ..database import get_db
from ..schemas import AssistantQuery, AssistantReply, PositionRead, PositionUpdate

router = APIRouter(prefix="/api")


def _target_cell(payload: PositionUpdate):
    if payload.drop_zone is not None:
        return floor_plan.parse_drop_zone(payload.drop_zone)
    return payload.pos_x, payload.pos_y


def _port_json(port):
    return {"id": port.id, "name": port.name, "port_type": port.port_type}


@router.put("/racks/{rack_id}/position", response_model=PositionRead)
def set_rack_position(
    rack_id: int,
    payload: PositionUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_api_user),
):
    x, y = _target_cell(payload)
    rack = floor_plan.place_rack(db, user.tenant_id, rack_id, x, y)
    return PositionRead(id=rack.id, pos_x=rack.pos_x, pos_y=rack.pos_y)


@router.delete("/racks/{rack_id}/position", response_model=PositionRead)
def clear_rack_position(
    rack_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_api_user),
):
    rack = floor_plan.unplace_rack(db, user.tenant_id, rack_id)
    return PositionRead(id=rack.id, pos_x=rack.pos_x, pos_y=rack.pos_y)


@router.put("/endpoints/{asset_id}/position", response_model=PositionRead)
def set_endpoint_position(
    asset_id: int,
    payload: PositionUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_api_user),
):
    x, y = _target_cell(payload)
    endpoint = floor_plan.place_endpoint(db, user.tenant_id, asset_id, x, y)
    return PositionRead(id=endpoint.id, pos_x=endpoint.pos_x, pos_y=endpoint.pos_y)


@router.delete("/endpoints/{asset_id}/position", response_model=PositionRead)
def clear_endpoint_position(
    asset_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_api_user),
):
    endpoint = floor_plan.unplace_endpoint(db, user.tenant_id, asset_id)
    return PositionRead(id=endpoint.id, pos_x=endpoint.pos_x, pos_y=endpoint.pos_y)


@router.get("/locations/{location_id}")
def location_details(
    location_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_api_user),
):
    return floor_plan.location_details(db, user.tenant_id, location_id)


@router.get("/assets/{asset_id}/free-ports")
def free_ports(
    asset_id: int,
    source_port_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_api_user),
):
    source = cabling.get_port(db, user.tenant_id, source_port_id) if source_port_id is not None else None
    ports = cabling.free_ports_for_asset(db, user.tenant_id, asset_id, source_port=source)
    return [_port_json(port) for port in ports]


@router.get("/ports/{port_id}/trace")
def trace_port(
    port_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_api_user),
):
    return {"port_id": port_id, "hops": cabling.trace_port(db, user.tenant_id, port_id)}


@router.get("/asset-schemas/{asset_type}")
def asset_schema(asset_type: str, user: models.User = Depends(auth.get_api_user)):
    definitions = asset_schemas.schema_for(asset_type) or []
    return [
        {
            "name": definition.name,
            "label": definition.label,
            "type": definition.type,
            "placeholder": definition.placeholder,
            "options": [{"value": o.value, "label": o.label} for o in definition.options],
            "default": definition.default,
            "required": definition.required,
        }
        for definition in definitions
    ]


@router.post("/assistant", response_model=AssistantReply)
def ask_assistant(
    payload: AssistantQuery,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_api_user),
):
    return AssistantReply(response=assistant.ask_assistant(db, user.tenant_id, payload.query))
