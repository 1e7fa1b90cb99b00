from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from .. import asset_schemas, auth, models, reports
from ..database import get_db
from ..templating import render

router = APIRouter()


@router.get("/assets", response_class=HTMLResponse)
async def list_assets(
    request: Request,
    search: Optional[str] = None,
    asset_type: str = "all",
    status: str = "all",
    sort_by: str = "name",
    order: str = "asc",
    page: int = 1,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    result = reports.paginated_assets(
        db,
        user.tenant_id,
        search=search,
        asset_type=asset_type,
        status=status,
        sort_by=sort_by,
        ascending=order != "desc",
        page=page,
    )
    return render(
        request,
        "assets.html",
        user,
        result=result,
        filters={
            "search": search or "",
            "asset_type": asset_type,
            "status": status,
            "sort_by": sort_by,
            "order": order,
        },
        asset_types=asset_schemas.asset_type_options() + asset_schemas.device_type_options(),
        statuses=asset_schemas.ASSET_STATUSES,
    )
