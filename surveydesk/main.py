from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, HTTPException
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.responses import JSONResponse

from surveydesk.core.config import settings
from surveydesk.core.errors import SurveyDeskError, TransientError
from surveydesk.core.registry import OrganizationRegistry, load_registry

# Import models to populate SQLAlchemy metadata (needed for create_all)
import surveydesk.db.models  # noqa: F401

from surveydesk.auth.router import router as auth_router
from surveydesk.modules.orgs.router import router as orgs_router
from surveydesk.modules.surveys.router import router as surveys_router
from surveydesk.modules.submissions.router import router as submissions_router
from surveydesk.modules.coverage.router import router as coverage_router
from surveydesk.modules.templates.router import router as templates_router


logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("surveydesk")

app = FastAPI(title=settings.APP_NAME)

# Replaced by the real registry on startup; tests swap in a synthetic one.
app.state.registry = OrganizationRegistry()

# CORS (Access-Control-Allow-*) - configurable
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
)

# Compression for large coverage/submission listings
app.add_middleware(GZipMiddleware, minimum_size=800)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start = time.perf_counter()
    resp = await call_next(request)
    resp.headers["X-Process-Time-ms"] = f"{(time.perf_counter() - start) * 1000:.2f}"
    return resp


@app.middleware("http")
async def add_cache_headers(request: Request, call_next):
    resp = await call_next(request)
    # Window status and coverage change with the clock and with every submission.
    resp.headers.setdefault("Cache-Control", "no-store")
    return resp


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    resp = await call_next(request)
    resp.headers["X-Content-Type-Options"] = "nosniff"
    resp.headers["X-Frame-Options"] = "SAMEORIGIN"
    resp.headers["Referrer-Policy"] = "same-origin"
    return resp


@app.exception_handler(SurveyDeskError)
async def surveydesk_exc_handler(request: Request, exc: SurveyDeskError):
    if exc.status_code >= 500:
        logger.warning("%s %s -> %s", request.method, request.url.path, exc.code)
    resp = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    if isinstance(exc, TransientError):
        resp.headers["Retry-After"] = str(exc.retry_after_seconds)
    return resp


@app.exception_handler(HTTPException)
async def http_exc_handler(request: Request, exc: HTTPException):
    if exc.status_code == 401:
        resp = JSONResponse(status_code=401, content={"detail": exc.detail or "Session expired"})
        resp.headers["X-Session-Expired"] = "1"
        resp.delete_cookie("sid")
        return resp
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


# Routers
app.include_router(auth_router)
app.include_router(orgs_router)
app.include_router(surveys_router)
app.include_router(submissions_router)
app.include_router(coverage_router)
app.include_router(templates_router)


@app.on_event("startup")
def on_startup():
    # DB migrations are handled by the separate "migrate" service.
    app.state.registry = load_registry(settings.ORG_REGISTRY_PATH)


@app.get("/health", response_class=JSONResponse)
def health():
    return {"status": "ok", "app": settings.APP_NAME, "organizations": len(app.state.registry)}
