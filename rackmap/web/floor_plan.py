from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from .. import auth, export, floor_plan, inventory, models, reports
from ..database import get_db
from ..schemas import CropArea, ExportOptions
from ..templating import render

router = APIRouter()


def _validated(model, **values):
    try:
        return model(**values)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "value"
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {first.get('msg')}") from exc


@router.get("/floor-plan", response_class=HTMLResponse)
async def floor_plan_list(
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    return render(request, "floor_plan_list.html", user, locations=inventory.list_locations(db, user.tenant_id))


@router.get("/floor-plan/{location_id}", response_class=HTMLResponse)
async def floor_plan_page(
    request: Request,
    location_id: int,
    edit: bool = False,
    message: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    details = floor_plan.location_details(db, user.tenant_id, location_id)
    location = details["location"]
    cells = []
    if location["grid_columns"] and location["grid_rows"]:
        cells = floor_plan.grid_cells(location["grid_columns"], location["grid_rows"])
    return render(
        request,
        "floor_plan.html",
        user,
        details=details,
        cells=cells,
        edit=edit,
        message=message,
        unconnected_ids={endpoint.id for endpoint in reports.unconnected_endpoints(db, user.tenant_id)},
        grid_min=floor_plan.GRID_MIN,
        grid_max=floor_plan.GRID_MAX,
        default_columns=floor_plan.DEFAULT_GRID_COLUMNS,
        default_rows=floor_plan.DEFAULT_GRID_ROWS,
        capacity_color=export.capacity_color,
    )


@router.post("/floor-plan/{location_id}/setup")
async def setup_floor_plan(
    location_id: int,
    file: UploadFile = File(...),
    crop_x: int = Form(0),
    crop_y: int = Form(0),
    crop_width: int = Form(...),
    crop_height: int = Form(...),
    grid_cols: int = Form(floor_plan.DEFAULT_GRID_COLUMNS),
    grid_rows: int = Form(floor_plan.DEFAULT_GRID_ROWS),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    crop = _validated(CropArea, x=crop_x, y=crop_y, width=crop_width, height=crop_height)
    content = await file.read()
    _, webhook = floor_plan.configure_floor_plan(
        db,
        user.tenant_id,
        location_id,
        content,
        file.filename,
        file.content_type,
        crop,
        grid_cols=grid_cols,
        grid_rows=grid_rows,
    )
    url = f"/floor-plan/{location_id}?edit=1"
    if webhook == "failed":
        url += "&message=webhook-failed"
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/floor-plan/{location_id}/export")
def export_floor_plan(
    location_id: int,
    format: str = "png",
    quality: str = "high",
    include_background: bool = True,
    include_grid: bool = True,
    include_labels: bool = True,
    include_metadata: bool = True,
    theme: str = "default",
    paper_size: str = "a4",
    custom_width: Optional[str] = None,
    custom_height: Optional[str] = None,
    file_name: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    options = _validated(
        ExportOptions,
        format=format,
        quality=quality,
        include_background=include_background,
        include_grid=include_grid,
        include_labels=include_labels,
        include_metadata=include_metadata,
        theme=theme,
        paper_size=paper_size,
        custom_width=custom_width or None,
        custom_height=custom_height or None,
        file_name=file_name or None,
    )
    details = floor_plan.location_details(db, user.tenant_id, location_id)
    location = inventory.get_location(db, user.tenant_id, location_id)
    content, media_type, name = export.export_floor_plan(
        details, options, background_path=floor_plan.floor_plan_file(location)
    )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )
