"""
API middleware: shared-secret authentication and CORS.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zhir.config import config

# Endpoints that never require the API key
PUBLIC_ENDPOINTS = {"/health", "/docs", "/redoc", "/openapi.json"}


async def api_key_middleware(request, call_next):
    """
    Verify the shared API key for all endpoints except public ones.
    If ZHIR_API_KEY is not configured, all requests are allowed (dev mode).
    """
    if request.url.path in PUBLIC_ENDPOINTS:
        return await call_next(request)

    if not config.ZHIR_API_KEY:
        return await call_next(request)

    api_key = request.headers.get("X-API-Key")
    if not api_key:
        return JSONResponse(
            status_code=401,
            content={
                "error": "Missing API key. Include 'X-API-Key' header.",
                "code": "MISSING_API_KEY",
            },
        )

    if api_key != config.ZHIR_API_KEY:
        return JSONResponse(
            status_code=403,
            content={"error": "Invalid API key", "code": "INVALID_API_KEY"},
        )

    return await call_next(request)


def register_middleware(app: FastAPI) -> None:
    """Attach all middleware to the FastAPI app."""
    # API key authentication
    app.middleware("http")(api_key_middleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
