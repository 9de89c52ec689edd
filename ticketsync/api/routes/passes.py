from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ticketsync.dependencies.sync import get_sync_service
from ticketsync.tickets.service import PassResult, PassTrigger, TicketSyncService

router = APIRouter(tags=["sync"])


class PassRequest(BaseModel):
    trigger: PassTrigger = Field(default=PassTrigger.CHANGE)


class DedupResponse(BaseModel):
    scanned: int
    removed: list[int]


class ReconcileResponse(BaseModel):
    processed: int
    touched: int
    failed: int
    skipped: int
    writes: int


class PassResponse(BaseModel):
    trigger: PassTrigger
    skipped: bool
    reason: str | None
    dedup: DedupResponse
    reconcile: ReconcileResponse


class StatusReportResponse(BaseModel):
    open_count: int
    message: str
    delivered: bool
    skipped: bool
    reason: str | None


SyncServiceDep = Annotated[TicketSyncService, Depends(get_sync_service)]


def _to_response(result: PassResult) -> PassResponse:
    return PassResponse(
        trigger=result.trigger,
        skipped=result.skipped,
        reason=result.reason,
        dedup=DedupResponse(scanned=result.dedup.scanned, removed=list(result.dedup.removed)),
        reconcile=ReconcileResponse(
            processed=result.reconcile.processed,
            touched=result.reconcile.touched,
            failed=result.reconcile.failed,
            skipped=result.reconcile.skipped,
            writes=result.reconcile.writes,
        ),
    )


@router.post("/passes", response_model=PassResponse)
async def run_pass(service: SyncServiceDep, payload: PassRequest | None = None) -> PassResponse:
    trigger = payload.trigger if payload is not None else PassTrigger.CHANGE
    result = await service.run_pass(trigger)
    return _to_response(result)


@router.post("/reports/status", response_model=StatusReportResponse)
async def send_status_report(service: SyncServiceDep) -> StatusReportResponse:
    report = await service.send_status_report()
    return StatusReportResponse(
        open_count=report.open_count,
        message=report.message,
        delivered=report.delivered,
        skipped=report.skipped,
        reason=report.reason,
    )
