"""Field definitions for the free-form ``details`` JSON of each asset type.

The rack forms render these definitions, and :func:`clean_details` applies
them on the server so that stored details always carry the required keys.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import HTTPException


@dataclass(frozen=True)
class FieldOption:
    value: str
    label: str


@dataclass(frozen=True)
class FieldDefinition:
    name: str  # key in the details object
    label: str
    type: str = "text"  # text | number | select | textarea
    placeholder: Optional[str] = None
    options: tuple = field(default_factory=tuple)
    default: Any = None
    required: bool = False


ASSET_STATUSES = [
    FieldOption("IN_PRODUCTION", "In production"),
    FieldOption("IN_STORAGE", "In storage"),
    FieldOption("MAINTENANCE", "Maintenance"),
    FieldOption("OFFLINE", "Offline"),
    FieldOption("DECOMMISSIONED", "Decommissioned"),
]

PORT_TYPES = [
    FieldOption("RJ45", "RJ45"),
    FieldOption("SFP+", "SFP+"),
    FieldOption("QSFP", "QSFP"),
    FieldOption("LC_FIBER", "LC fiber"),
    FieldOption("SC_FIBER", "SC fiber"),
    FieldOption("POWER_C13", "Power C13"),
    FieldOption("POWER_C19", "Power C19"),
]

PATCH_PANEL = "PATCH_PANEL"
SWITCH = "SWITCH"
ENDPOINT_USER = "ENDPOINT_USER"

ASSET_SCHEMAS = {
    "SERVER": [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. Dell, HP", required=True),
        FieldDefinition("model", "Model", placeholder="e.g. PowerEdge R740", required=True),
        FieldDefinition("serial_number", "Serial number", placeholder="e.g. ABC123XYZ"),
        FieldDefinition("ip_management", "Management IP", placeholder="e.g. 192.168.1.10"),
        FieldDefinition("operating_system", "Operating system", placeholder="e.g. Ubuntu Server 22.04"),
        FieldDefinition("ram_gb", "RAM (GB)", type="number", placeholder="e.g. 64", default=16),
        FieldDefinition("storage_gb", "Storage (GB)", type="number", placeholder="e.g. 1024", default=256),
    ],
    SWITCH: [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. Cisco, Juniper", required=True),
        FieldDefinition("model", "Model", placeholder="e.g. Catalyst 9300", required=True),
        FieldDefinition("serial_number", "Serial number", placeholder="e.g. DEF456ABC"),
        FieldDefinition("ip_management", "Management IP", placeholder="e.g. 192.168.1.20"),
        FieldDefinition("port_count", "Port count", type="number", placeholder="e.g. 24", default=24, required=True),
        FieldDefinition(
            "port_type",
            "Predominant port type",
            type="select",
            options=(
                FieldOption("RJ45_1G", "RJ45 1Gbps"),
                FieldOption("RJ45_10G", "RJ45 10Gbps"),
                FieldOption("SFP+", "SFP+"),
                FieldOption("QSFP", "QSFP"),
            ),
            default="RJ45_1G",
            required=True,
        ),
    ],
    PATCH_PANEL: [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. Panduit, Leviton"),
        FieldDefinition("model", "Model", placeholder="e.g. CP24BLY"),
        FieldDefinition("port_count", "Port count", type="number", placeholder="e.g. 24", default=24, required=True),
        FieldDefinition(
            "connector_type",
            "Connector type",
            type="select",
            options=(
                FieldOption("RJ45_CAT6", "RJ45 CAT6"),
                FieldOption("RJ45_CAT6A", "RJ45 CAT6A"),
                FieldOption("LC_FIBER", "LC fiber"),
                FieldOption("SC_FIBER", "SC fiber"),
            ),
            default="RJ45_CAT6",
            required=True,
        ),
    ],
    ENDPOINT_USER: [
        FieldDefinition(
            "device_type",
            "Device type",
            type="select",
            options=(
                FieldOption("LAPTOP", "Laptop"),
                FieldOption("DESKTOP", "Desktop"),
                FieldOption("IP_PHONE", "IP phone"),
                FieldOption("PRINTER", "Printer"),
                FieldOption("OTHER", "Other"),
            ),
            default="LAPTOP",
            required=True,
        ),
        FieldDefinition("assigned_user", "Assigned user", placeholder="e.g. Jane Doe"),
        FieldDefinition("department", "Department", placeholder="e.g. Sales, IT"),
        FieldDefinition("hostname", "Hostname", placeholder="e.g. SALES-LT-01"),
    ],
    "PDU": [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. APC, Eaton"),
        FieldDefinition("model", "Model", placeholder="e.g. AP8853"),
        FieldDefinition("outlet_count", "Outlet count", type="number", placeholder="e.g. 24", default=8),
        FieldDefinition(
            "input_plug_type",
            "Input plug type",
            type="select",
            options=(
                FieldOption("NEMA_5_15P", "NEMA 5-15P"),
                FieldOption("NEMA_L5_30P", "NEMA L5-30P"),
                FieldOption("IEC_C14", "IEC C14"),
                FieldOption("IEC_C20", "IEC C20"),
            ),
            default="NEMA_5_15P",
        ),
    ],
    "UPS": [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. APC, CyberPower"),
        FieldDefinition("model", "Model", placeholder="e.g. SMT1500RM2U"),
        FieldDefinition("capacity_va", "Capacity (VA)", type="number", placeholder="e.g. 1500"),
        FieldDefinition("battery_type", "Battery type", placeholder="e.g. Sealed lead-acid"),
    ],
}

# Devices that sit behind a user endpoint jack
DEVICE_SCHEMAS = {
    "CCTV_CAMERA": [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. Hikvision, Axis", required=True),
        FieldDefinition("model", "Model", placeholder="e.g. DS-2CD2143G0-I", required=True),
        FieldDefinition("ip_address", "IP address", placeholder="e.g. 192.168.1.100"),
        FieldDefinition("resolution", "Resolution", placeholder="e.g. 4MP, 1080p"),
    ],
    "VOIP_PHONE": [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. Yealink, Polycom", required=True),
        FieldDefinition("model", "Model", placeholder="e.g. T46S", required=True),
        FieldDefinition("extension", "Extension", placeholder="e.g. 101"),
        FieldDefinition("mac_address", "MAC address", placeholder="e.g. 00:1A:2B:3C:4D:5E"),
    ],
    "ACCESS_POINT": [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. Ubiquiti, Aruba", required=True),
        FieldDefinition("model", "Model", placeholder="e.g. UAP-AC-PRO", required=True),
        FieldDefinition("ip_management", "Management IP", placeholder="e.g. 192.168.1.200"),
        FieldDefinition("ssid", "Primary SSID", placeholder="e.g. CorporateWiFi"),
    ],
    "PRINTER": [
        FieldDefinition("manufacturer", "Manufacturer", placeholder="e.g. HP, Brother", required=True),
        FieldDefinition("model", "Model", placeholder="e.g. LaserJet Pro M404dn", required=True),
        FieldDefinition("ip_address", "IP address", placeholder="e.g. 192.168.1.150"),
    ],
}


def _options(schemas):
    return [FieldOption(key, key.replace("_", " ")) for key in schemas]


def asset_type_options():
    return _options(ASSET_SCHEMAS)


def device_type_options():
    return _options(DEVICE_SCHEMAS)


def schema_for(asset_type):
    if not asset_type:
        return None
    return ASSET_SCHEMAS.get(asset_type) or DEVICE_SCHEMAS.get(asset_type)


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_number(definition, value):
    if isinstance(value, bool):
        raise HTTPException(status_code=400, detail=f"{definition.label} must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        number = value
    else:
        try:
            number = float(str(value).strip())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"{definition.label} must be a number") from exc
    # nan/inf cannot be serialized back to JSON
    if not math.isfinite(number):
        raise HTTPException(status_code=400, detail=f"{definition.label} must be a finite number")
    return int(number) if number.is_integer() else number


def clean_details(asset_type, details):
    """Validate ``details`` for ``asset_type`` and fill schema defaults.

    Returns ``None`` when there is nothing to store. Keys that the schema does
    not describe are kept as they are.
    """
    if details is None:
        details = {}
    if not isinstance(details, dict):
        raise HTTPException(status_code=400, detail="Details must be a JSON object")
    definitions = schema_for(asset_type)
    if definitions is None:
        return details or None

    cleaned = dict(details)
    for definition in definitions:
        value = cleaned.get(definition.name)
        if _is_blank(value):
            if definition.default is not None:
                cleaned[definition.name] = definition.default
                continue
            if definition.required:
                raise HTTPException(status_code=400, detail=f"{definition.label} is required")
            cleaned.pop(definition.name, None)
            continue
        if definition.type == "number":
            cleaned[definition.name] = _coerce_number(definition, value)
        elif definition.type == "select":
            allowed = {option.value for option in definition.options}
            if value not in allowed:
                raise HTTPException(status_code=400, detail=f"Invalid {definition.label.lower()}")
    return cleaned or None
