from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Form
from fastapi.responses import JSONResponse

from surveydesk.auth.deps import SESSION_COOKIE
from surveydesk.core.config import settings
from surveydesk.core.security import verify_password, sign_session

logger = logging.getLogger("surveydesk.auth")

router = APIRouter(tags=["auth"])


@router.post("/login")
def login(username: str = Form(...), password: str = Form(...)):
    name_ok = hmac.compare_digest((username or "").strip().encode(), settings.ADMIN_USERNAME.encode())
    if not name_ok or not verify_password(password, settings.ADMIN_PASSWORD_HASH):
        logger.warning("Failed admin login for %r", username)
        return JSONResponse(status_code=400, content={"detail": "Wrong username or password."})

    sid = sign_session({"admin": settings.ADMIN_USERNAME})
    resp = JSONResponse({"ok": True, "admin": settings.ADMIN_USERNAME})
    resp.set_cookie(
        SESSION_COOKIE,
        sid,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
    )
    return resp


@router.post("/logout")
def logout():
    resp = JSONResponse({"ok": True})
    resp.delete_cookie(SESSION_COOKIE)
    return resp
