from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import bulkreplace.models  # noqa: F401  (registers SQLModel tables)

from bulkreplace.config import get_settings
from bulkreplace.db import create_db_and_tables
from bulkreplace.routers import health, replace


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    create_db_and_tables()
    logging.getLogger(__name__).info(
        "Bulk replace ready (table prefix %r, optional tables %s)",
        settings.table_prefix,
        "on" if settings.include_optional_tables else "off",
    )
    yield


app = FastAPI(
    title="Bulk Replace",
    description="Search and replace text across LMS content tables",
    version="0.1.0",
    lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.site_url,
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(replace.router)
