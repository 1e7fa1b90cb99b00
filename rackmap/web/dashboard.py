from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from .. import auth, models, reports, todos
from ..database import get_db
from ..templating import render

router = APIRouter()


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    return render(
        request,
        "dashboard.html",
        user,
        snapshot=reports.dashboard_snapshot(db, user.tenant_id),
        racks=reports.racks_overview(db, user.tenant_id),
        unconnected=reports.unconnected_endpoints(db, user.tenant_id),
        todos=todos.list_todos(db, user.id),
    )


@router.post("/todos/add")
async def add_todo(
    text: str = Form(""),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    todos.add_todo(db, user.id, text)
    return RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/todos/{todo_id}/toggle")
async def toggle_todo(
    todo_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    todos.toggle_todo(db, user.id, todo_id)
    return RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/todos/{todo_id}/delete")
async def delete_todo(
    todo_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    todos.delete_todo(db, user.id, todo_id)
    return RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)
