from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from .. import auth, inventory, models
from ..database import get_db
from ..templating import render

router = APIRouter()


@router.get("/locations", response_class=HTMLResponse)
async def list_locations(
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    locations = inventory.list_locations(db, user.tenant_id)
    paths = {location.id: " / ".join(inventory.location_path(location)) for location in locations}
    return render(request, "locations.html", user, locations=locations, paths=paths)


@router.post("/locations/add")
async def add_location(
    name: str = Form(""),
    parent_location_id: str = Form(""),
    description: str = Form(""),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    inventory.create_location(db, user.tenant_id, name, parent_location_id, description)
    return RedirectResponse(url="/locations", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/locations/{location_id}/delete")
async def delete_location(
    location_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    inventory.delete_location(db, user.tenant_id, location_id)
    return RedirectResponse(url="/locations", status_code=status.HTTP_303_SEE_OTHER)
