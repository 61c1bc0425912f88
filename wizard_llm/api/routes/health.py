"""Health check endpoint."""

from fastapi import APIRouter

router = APIRouter()

SERVICE = "wizard-llm"
VERSION = "0.1.0"


@router.get("/health")
async def health():
    return {"status": "ok", "service": SERVICE, "version": VERSION}


@router.get("/")
async def root():
    return {"service": SERVICE, "version": VERSION}
