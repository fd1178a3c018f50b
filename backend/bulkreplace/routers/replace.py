"""Scan, preview and execute bulk text replacement."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, col, select

from bulkreplace.config import get_settings
from bulkreplace.db import get_session
from bulkreplace.dependencies import get_replace_engine
from bulkreplace.models.audit import ReplacementAudit, ReplacementAuditRead
from bulkreplace.services.catalog import searched_tables
from bulkreplace.services.engine import ReplaceEngine
from bulkreplace.services.errors import ReplaceError
from bulkreplace.services.replacer import ReplaceResult, ReplaceStatus

router = APIRouter(prefix="/api/replace", tags=["replace"])


# --- Schemas ---


class ScanRequest(BaseModel):
    term: str
    case_sensitive: bool = False
    wildcard: bool = False


class PreviewRequest(BaseModel):
    items: list[str]  # "table|id|field" keys from a scan
    term: str
    case_sensitive: bool = False
    replacement_text: str


class ReplaceRequest(PreviewRequest):
    dry_run: bool = True
    backup_confirmed: bool = False
    user_id: str | None = None


class OccurrenceResponse(BaseModel):
    position: int
    context: str
    match: str


class MatchItemResponse(BaseModel):
    item_key: str
    table: str
    field: str
    record_id: int
    location: str
    url: str | None
    preview: str
    content_snapshot: str
    occurrence_count: int
    occurrences: list[OccurrenceResponse]


class StatsResponse(BaseModel):
    items_found: int
    items_replaced: int
    items_failed: int


class OutputMessageResponse(BaseModel):
    message: str
    type: str
    time: datetime


class ScanResponse(BaseModel):
    items: list[MatchItemResponse]
    total: int
    stats: StatsResponse
    warnings: list[str]
    output: list[OutputMessageResponse]


class LogEntryResponse(BaseModel):
    table: str
    field: str
    record_id: int
    status: str
    message: str


class LogSummary(BaseModel):
    total: int
    success: int
    failed: int


class ReplaceResponse(BaseModel):
    dry_run: bool
    stats: StatsResponse
    items_processed: int
    occurrences_replaced: int
    log: list[LogEntryResponse]
    summary: LogSummary
    output: list[OutputMessageResponse]


class DefaultsResponse(BaseModel):
    search_term: str
    dry_run: bool
    tables: list[str]


# --- Helpers ---


def _stats_response(stats) -> StatsResponse:
    return StatsResponse(
        items_found=stats.items_found,
        items_replaced=stats.items_replaced,
        items_failed=stats.items_failed,
    )


def _output_response(engine: ReplaceEngine) -> list[OutputMessageResponse]:
    return [
        OutputMessageResponse(message=m.message, type=m.type, time=m.time)
        for m in engine.output
    ]


def _replace_response(engine: ReplaceEngine, result: ReplaceResult) -> ReplaceResponse:
    success_states = (ReplaceStatus.SUCCESS, ReplaceStatus.PREVIEW)
    return ReplaceResponse(
        dry_run=result.dry_run,
        stats=_stats_response(result.stats),
        items_processed=result.items_processed,
        occurrences_replaced=result.occurrences_replaced,
        log=[
            LogEntryResponse(
                table=entry.table,
                field=entry.field,
                record_id=entry.record_id,
                status=entry.status.value,
                message=entry.message,
            )
            for entry in result.log
        ],
        summary=LogSummary(
            total=len(result.log),
            success=sum(1 for e in result.log if e.status in success_states),
            failed=sum(1 for e in result.log if e.status is ReplaceStatus.FAILED),
        ),
        output=_output_response(engine),
    )


# --- Endpoints ---


@router.get("/defaults", response_model=DefaultsResponse)
async def get_defaults(
    engine: ReplaceEngine = Depends(get_replace_engine),
) -> DefaultsResponse:
    """Initial form values and the tables a scan will visit."""
    settings = get_settings()
    return DefaultsResponse(
        search_term=settings.default_search_term,
        dry_run=settings.default_dry_run,
        tables=searched_tables(engine.catalog),
    )


@router.post("/scan", response_model=ScanResponse)
async def scan(
    body: ScanRequest,
    engine: ReplaceEngine = Depends(get_replace_engine),
) -> ScanResponse:
    """Find every catalogued field containing the search term."""
    try:
        result = engine.scan(body.term, body.case_sensitive, wildcard=body.wildcard)
    except ReplaceError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return ScanResponse(
        items=[
            MatchItemResponse(
                item_key=item.item_key,
                table=item.table,
                field=item.field,
                record_id=item.record_id,
                location=item.location,
                url=item.url,
                preview=item.preview,
                content_snapshot=item.content_snapshot,
                occurrence_count=len(item.occurrences),
                occurrences=[
                    OccurrenceResponse(position=o.position, context=o.context, match=o.match)
                    for o in item.occurrences
                ],
            )
            for item in result.items
        ],
        total=len(result.items),
        stats=_stats_response(result.stats),
        warnings=result.warnings,
        output=_output_response(engine),
    )


@router.post("/preview", response_model=ReplaceResponse)
async def preview(
    body: PreviewRequest,
    engine: ReplaceEngine = Depends(get_replace_engine),
) -> ReplaceResponse:
    """Dry run: report what would be replaced in the selected items."""
    if not body.items:
        raise HTTPException(status_code=422, detail="Please select at least one item to update.")
    try:
        result = engine.preview(body.items, body.term, body.case_sensitive, body.replacement_text)
    except ReplaceError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _replace_response(engine, result)


@router.post("/execute", response_model=ReplaceResponse)
async def execute(
    body: ReplaceRequest,
    engine: ReplaceEngine = Depends(get_replace_engine),
) -> ReplaceResponse:
    """Replace text in the selected items (or preview when ``dry_run``)."""
    if not body.items:
        raise HTTPException(status_code=422, detail="Please select at least one item to update.")
    try:
        result = engine.replace(
            body.items,
            body.term,
            body.case_sensitive,
            body.replacement_text,
            dry_run=body.dry_run,
            backup_confirmed=body.backup_confirmed,
            user_id=body.user_id,
        )
    except ReplaceError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _replace_response(engine, result)


@router.get("/history", response_model=list[ReplacementAuditRead])
async def history(
    limit: int = Query(20, ge=1, le=200, description="Max operations to return"),
    session: Session = Depends(get_session),
) -> list[ReplacementAuditRead]:
    """Most recent replace operations, newest first."""
    rows = session.exec(
        select(ReplacementAudit)
        .order_by(col(ReplacementAudit.created_at).desc())
        .limit(limit)
    ).all()
    return [ReplacementAuditRead.model_validate(r) for r in rows]
