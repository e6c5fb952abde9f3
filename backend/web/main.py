"""
ASGI entry point for the casework API.

Run locally with `uvicorn backend.web.main:app --reload`.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.web import config as _cfg
from backend.web.routes.casework import casework_router

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

app = FastAPI(title="Casework API", description="Roster & assignment resolution for case-chat sections", version="0.1.0")


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    # Baseline defensive headers; the API serves JSON only.
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


app.include_router(casework_router)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    # Security: include no-store to avoid caching any runtime status.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})
