"""Small helpers shared by the service modules."""

from fastapi import HTTPException


def get_for_tenant(db, model, tenant_id, obj_id, detail=None):
    """Fetch a tenant-scoped row or raise 404.

    Rows owned by another tenant are reported exactly like missing rows.
    """
    obj = None
    if obj_id is not None:
        obj = (
            db.query(model)
            .filter(model.id == obj_id)
            .filter(model.tenant_id == tenant_id)
            .first()
        )
    if obj is None:
        raise HTTPException(status_code=404, detail=detail or f"{model.__name__} not found")
    return obj


def clean_text(value):
    if value is None:
        return None
    value = value.strip()
    return value or None


def require_text(value, label):
    value = clean_text(value)
    if value is None:
        raise HTTPException(status_code=400, detail=f"{label} is required")
    return value


def parse_optional_id(value):
    """Form selects send "" or "NONE" for "no selection"."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    value = str(value).strip()
    if value in ("", "NONE", "none", "null"):
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid identifier") from exc
