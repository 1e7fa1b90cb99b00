"""Ports, cable connections and user endpoints."""

import logging

from fastapi import HTTPException
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from . import asset_schemas, models
from .common import clean_text, get_for_tenant, parse_optional_id, require_text
from .inventory import DEFAULT_ASSET_STATUS, check_plan_limit
from .schemas import CableDetails, EndpointDevice

logger = logging.getLogger(__name__)

MAX_BULK_PORTS = 100
FRONT_SUFFIX = "-F"
REAR_SUFFIX = "-R"
ENDPOINT_PORT_NAME = "Jack"
DEVICE_PORT_NAME = "eth0"
DEFAULT_PORT_TYPE = "RJ45"
FRONT_FACE = "front"
REAR_FACE = "rear"


def get_port(db: Session, tenant_id, port_id):
    return get_for_tenant(db, models.Port, tenant_id, port_id, "Port not found")


def get_connection(db: Session, tenant_id, connection_id):
    return get_for_tenant(db, models.Connection, tenant_id, connection_id, "Connection not found")


def clean_cable_details(brand=None, color=None, category=None, length_m=None):
    return CableDetails(brand=brand, color=color, category=category, length_m=length_m)


def bulk_port_names(count, name_prefix, start_number, paired):
    names = []
    for number in range(start_number, start_number + count):
        if paired:
            names.append(f"{name_prefix}{number}{FRONT_SUFFIX}")
            names.append(f"{name_prefix}{number}{REAR_SUFFIX}")
        else:
            names.append(f"{name_prefix}{number}")
    return names


def generate_ports(
    db: Session,
    tenant_id,
    asset_id,
    count,
    name_prefix,
    start_number,
    port_type,
    create_rear_ports=False,
):
    asset = get_for_tenant(db, models.Asset, tenant_id, asset_id, "Asset not found")
    if not 1 <= count <= MAX_BULK_PORTS:
        raise HTTPException(
            status_code=400,
            detail=f"Port count must be between 1 and {MAX_BULK_PORTS}",
        )
    if start_number < 0:
        raise HTTPException(status_code=400, detail="Start number must be 0 or greater")
    name_prefix = require_text(name_prefix, "Name prefix")
    port_type = require_text(port_type, "Port type")

    # Front/rear pairs only make sense on patch panels
    paired = bool(create_rear_ports) and asset.asset_type == asset_schemas.PATCH_PANEL
    names = bulk_port_names(count, name_prefix, start_number, paired)
    existing = {
        name
        for (name,) in db.query(models.Port.name)
        .filter(models.Port.asset_id == asset.id)
        .filter(models.Port.name.in_(names))
        .all()
    }
    if existing:
        raise HTTPException(
            status_code=409,
            detail=f"Ports already exist: {', '.join(sorted(existing))}",
        )
    ports = [
        models.Port(tenant_id=tenant_id, asset_id=asset.id, name=name, port_type=port_type)
        for name in names
    ]
    db.add_all(ports)
    db.commit()
    logger.info("Generated %s ports on asset %s", len(ports), asset.id)
    return ports


def delete_port(db: Session, tenant_id, port_id):
    port = get_port(db, tenant_id, port_id)
    asset_id = port.asset_id
    db.delete(port)
    db.commit()
    return asset_id


def is_port_free(db: Session, port_id):
    return (
        db.query(models.Connection.id)
        .filter(or_(models.Connection.port_a_id == port_id, models.Connection.port_b_id == port_id))
        .first()
        is None
    )


def is_endpoint_jack(port):
    """An endpoint jack carries the horizontal cable on its rear face
    (as ``port_b``) and one patch cord on its front face (as ``port_a``).
    """
    return (
        port.asset is not None
        and port.asset.asset_type == asset_schemas.ENDPOINT_USER
        and port.name == ENDPOINT_PORT_NAME
    )


def _face_in_use(db: Session, port, face):
    column = models.Connection.port_a_id if face == FRONT_FACE else models.Connection.port_b_id
    return db.query(models.Connection.id).filter(column == port.id).first() is not None


def _jack_face(source_port):
    """Face of a jack that a cable from ``source_port`` lands on."""
    if source_port is not None and source_port.asset.asset_type == asset_schemas.PATCH_PANEL:
        return REAR_FACE
    return FRONT_FACE


def free_ports_for_asset(db: Session, tenant_id, asset_id, source_port=None):
    """Ports of ``asset_id`` that take part in no connection.

    Cabling a switch to a patch panel lands on the panel's front face, so only
    ``-F`` ports are offered in that case. Endpoint jacks are offered while
    the face the cable would use is free.
    """
    asset = get_for_tenant(db, models.Asset, tenant_id, asset_id, "Asset not found")
    query = (
        db.query(models.Port)
        .filter(models.Port.asset_id == asset.id)
        .filter(models.Port.id.notin_(select(models.Connection.port_a_id)))
        .filter(models.Port.id.notin_(select(models.Connection.port_b_id)))
    )
    if source_port is not None:
        query = query.filter(models.Port.id != source_port.id)
    ports = query.all()
    if asset.asset_type == asset_schemas.ENDPOINT_USER:
        face = _jack_face(source_port)
        ports += [
            port for port in asset.ports
            if port not in ports and is_endpoint_jack(port)
            and not _face_in_use(db, port, face)
            and (source_port is None or port.id != source_port.id)
        ]
    ports.sort(key=lambda port: port.id)
    if (
        source_port is not None
        and source_port.asset.asset_type == asset_schemas.SWITCH
        and asset.asset_type == asset_schemas.PATCH_PANEL
    ):
        ports = [port for port in ports if port.name.endswith(FRONT_SUFFIX)]
    return ports


def _ensure_free(db: Session, port, face=None):
    if face is not None and is_endpoint_jack(port):
        in_use = _face_in_use(db, port, face)
    else:
        in_use = not is_port_free(db, port.id)
    if in_use:
        raise HTTPException(status_code=409, detail=f"Port {port.name} is already connected")


def _add_connection(db: Session, tenant_id, port_a, port_b, details):
    """Insert a cable between two free ports.

    Endpoint jacks only need the face the cable uses to be free: the front
    face as ``port_a``, the rear face as ``port_b``.
    """
    if port_a.id == port_b.id:
        raise HTTPException(status_code=400, detail="A port cannot be connected to itself")
    _ensure_free(db, port_a, FRONT_FACE)
    _ensure_free(db, port_b, REAR_FACE)
    connection = models.Connection(
        tenant_id=tenant_id,
        port_a_id=port_a.id,
        port_b_id=port_b.id,
        details=details,
    )
    db.add(connection)
    db.flush()
    return connection


def _orient(db: Session, port_a, port_b):
    """Order the two ends so an endpoint jack lands on the right face."""
    if is_endpoint_jack(port_a):
        jack, other = port_a, port_b
    elif is_endpoint_jack(port_b):
        jack, other = port_b, port_a
    else:
        return port_a, port_b
    # Horizontal cable from the panel, or the front already holds a cord
    if _jack_face(other) == REAR_FACE or _face_in_use(db, jack, FRONT_FACE):
        return other, jack
    return jack, other


def connect_ports(db: Session, tenant_id, port_a_id, port_b_id, cable: CableDetails | None = None):
    port_a = get_port(db, tenant_id, parse_optional_id(port_a_id))
    port_b = get_port(db, tenant_id, parse_optional_id(port_b_id))
    port_a, port_b = _orient(db, port_a, port_b)
    connection = _add_connection(db, tenant_id, port_a, port_b, cable.as_details() if cable else None)
    db.commit()
    db.refresh(connection)
    logger.info("Connected port %s to port %s (connection %s)", port_a.id, port_b.id, connection.id)
    return connection


def disconnect(db: Session, tenant_id, connection_id):
    connection = get_connection(db, tenant_id, connection_id)
    db.delete(connection)
    db.commit()
    logger.info("Removed connection %s", connection_id)


def create_endpoint(
    db: Session,
    tenant_id,
    rear_port_id,
    name,
    location_id,
    cable: CableDetails | None = None,
    device: EndpointDevice | None = None,
    patch_cord: CableDetails | None = None,
):
    """Create a user endpoint (jack) cabled to a patch-panel rear port.

    Optionally also creates the device plugged into the jack and its patch
    cord. Every row is committed together.
    """
    rear_port = get_port(db, tenant_id, rear_port_id)
    name = require_text(name, "Endpoint name")
    location = get_for_tenant(
        db, models.Location, tenant_id, parse_optional_id(location_id), "Select a valid location"
    )
    device_details = None
    if device is not None:
        if device.device_type not in asset_schemas.DEVICE_SCHEMAS:
            raise HTTPException(status_code=400, detail="Invalid device type")
        device_details = asset_schemas.clean_details(device.device_type, device.details)
    _ensure_free(db, rear_port)
    check_plan_limit(db, tenant_id, models.Asset, "asset_limit", "assets")

    try:
        endpoint = models.Asset(
            tenant_id=tenant_id,
            location_id=location.id,
            name=name,
            asset_type=asset_schemas.ENDPOINT_USER,
            status=DEFAULT_ASSET_STATUS,
        )
        db.add(endpoint)
        db.flush()
        jack = models.Port(
            tenant_id=tenant_id, asset_id=endpoint.id, name=ENDPOINT_PORT_NAME, port_type=DEFAULT_PORT_TYPE
        )
        db.add(jack)
        db.flush()
        _add_connection(db, tenant_id, rear_port, jack, cable.as_details() if cable else None)

        if device is not None:
            device_asset = models.Asset(
                tenant_id=tenant_id,
                location_id=location.id,
                name=require_text(device.name, "Device name"),
                asset_type=device.device_type,
                status=DEFAULT_ASSET_STATUS,
                details=device_details,
            )
            db.add(device_asset)
            db.flush()
            device_port = models.Port(
                tenant_id=tenant_id, asset_id=device_asset.id, name=DEVICE_PORT_NAME, port_type=DEFAULT_PORT_TYPE
            )
            db.add(device_port)
            db.flush()
            _add_connection(db, tenant_id, jack, device_port, patch_cord.as_details() if patch_cord else None)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(endpoint)
    logger.info("Created endpoint %s (%s) on rear port %s", endpoint.id, endpoint.name, rear_port.id)
    return endpoint


def paired_port(db: Session, port):
    """The other face of a patch-panel port (``P1-F`` <-> ``P1-R``)."""
    if port.asset is None or port.asset.asset_type != asset_schemas.PATCH_PANEL:
        return None
    if port.name.endswith(FRONT_SUFFIX):
        partner_name = port.name[: -len(FRONT_SUFFIX)] + REAR_SUFFIX
    elif port.name.endswith(REAR_SUFFIX):
        partner_name = port.name[: -len(REAR_SUFFIX)] + FRONT_SUFFIX
    else:
        return None
    return (
        db.query(models.Port)
        .filter(models.Port.asset_id == port.asset_id)
        .filter(models.Port.name == partner_name)
        .first()
    )


def _hop(port):
    asset = port.asset
    return {
        "port_id": port.id,
        "port_name": port.name,
        "port_type": port.port_type,
        "asset_id": asset.id,
        "asset_name": asset.name,
        "asset_type": asset.asset_type,
    }


def trace_port(db: Session, tenant_id, port_id):
    """Follow the cable path from ``port_id`` through patch-panel pairs.

    Returns the list of hops in order; each hop is a port with its asset and,
    when it continues over a cable, the cable details.
    """
    port = get_port(db, tenant_id, port_id)
    hops = [_hop(port)]
    seen = set()
    connection = port.connection
    while connection is not None and connection.id not in seen:
        seen.add(connection.id)
        hops[-1]["cable"] = connection.details
        hops[-1]["connection_id"] = connection.id
        peer = connection.port_b if connection.port_a_id == port.id else connection.port_a
        hops.append(_hop(peer))

        # A jack passes the signal on through its own second cable
        onward = _other_connection(peer, connection)
        if onward is not None:
            port, connection = peer, onward
            continue
        partner = paired_port(db, peer)
        if partner is None:
            break
        hops[-1]["via_pair"] = partner.name
        hops.append(_hop(partner))
        port, connection = partner, partner.connection
    return hops


def _other_connection(port, connection):
    for link in port.connections_as_a + port.connections_as_b:
        if link.id != connection.id:
            return link
    return None


def clean_device_form(name, device_type, details):
    """Endpoint wizard: the optional device section is skipped when blank."""
    name = clean_text(name)
    device_type = clean_text(device_type)
    if name is None and device_type is None:
        return None
    if name is None or device_type is None:
        raise HTTPException(status_code=400, detail="Device name and type are required to connect a device")
    return EndpointDevice(name=name, device_type=device_type, details=details or {})
