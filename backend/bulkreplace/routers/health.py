from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session, text

from bulkreplace.db import get_session
from bulkreplace.dependencies import get_record_store
from bulkreplace.services.catalog import BASE_CATALOG
from bulkreplace.services.store import RecordStore

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(
    session: Session = Depends(get_session),
    store: RecordStore = Depends(get_record_store),
):
    db_status = "ok"
    try:
        session.exec(text("SELECT 1"))
    except Exception as exc:
        db_status = f"error: {exc}"

    # Content tables: how many of the base catalog the host database carries
    catalog_status: dict = {"status": "unknown"}
    if db_status == "ok":
        try:
            present = sum(1 for spec in BASE_CATALOG if store.table_exists(spec.table))
            catalog_status = {
                "status": "ok" if present else "empty",
                "tables_present": present,
                "tables_expected": len(BASE_CATALOG),
            }
        except Exception:
            catalog_status = {"status": "error"}

    is_healthy = db_status == "ok" and catalog_status.get("status") != "error"

    return {
        "status": "healthy" if is_healthy else "unhealthy",
        "service": "bulkreplace-backend",
        "version": "0.1.0",
        "checks": {
            "database": db_status,
            "catalog": catalog_status,
        },
    }


@router.get("/health/ready")
async def readiness(session: Session = Depends(get_session)):
    try:
        session.exec(text("SELECT 1"))
    except Exception as exc:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "service": "bulkreplace-backend",
                "error": str(exc),
            },
        )

    return {
        "status": "ready",
        "service": "bulkreplace-backend",
    }
