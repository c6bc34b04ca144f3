"""FastAPI application setup for the SkyCheck dashboard API."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router as api_router
from .config import settings

app = FastAPI(title="SkyCheck")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    """Liveness probe."""
    return {"ok": True, "service": "skycheck"}


# API routes
app.include_router(api_router, prefix="/v1")
