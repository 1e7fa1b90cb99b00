from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from .. import auth, models
from ..database import get_db
from ..templating import render

router = APIRouter()


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request):
    return render(request, "login.html")


@router.post("/login")
async def login(request: Request, email: str = Form(...), password: str = Form(...), db: Session = Depends(get_db)):
    user = auth.authenticate(db, email, password)
    if not user:
        return render(request, "login.html", error="Invalid email or password", email=email, status_code=400)
    response = RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    return auth.set_login_cookie(response, user)


@router.get("/logout")
async def logout():
    response = RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(auth.COOKIE_NAME)
    return response


@router.get("/")
async def root():
    return RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/profile", response_class=HTMLResponse)
async def profile_page(request: Request, user: models.User = Depends(auth.get_current_user_required)):
    return render(request, "profile.html", user)


@router.post("/profile", response_class=HTMLResponse)
async def update_profile(
    request: Request,
    full_name: str = Form(""),
    role: str = Form(""),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    user = auth.update_profile(db, user, full_name, role)
    return render(request, "profile.html", user, message="Profile updated")


@router.post("/profile/change-password", response_class=HTMLResponse)
async def change_password(
    request: Request,
    current_password: str = Form(...),
    new_password: str = Form(...),
    confirm_password: str = Form(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(auth.get_current_user_required),
):
    try:
        user = auth.change_password(db, user, current_password, new_password, confirm_password)
    except HTTPException as exc:
        return render(request, "profile.html", user, error=exc.detail, status_code=exc.status_code)
    return render(request, "profile.html", user, message="Password changed successfully")
