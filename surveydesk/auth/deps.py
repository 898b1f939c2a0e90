from fastapi import Request, HTTPException
from surveydesk.core.config import settings
from surveydesk.core.security import verify_session

SESSION_COOKIE = "sid"


def get_current_admin(request: Request) -> str:
    """Administrator guard for survey management, templates and statistics."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload = verify_session(token)
    if not payload or "admin" not in payload:
        raise HTTPException(status_code=401, detail="Invalid session")
    if payload["admin"] != settings.ADMIN_USERNAME:
        raise HTTPException(status_code=401, detail="Unknown administrator")
    return payload["admin"]
