from __future__ import annotations

from fastapi import HTTPException, Request

from ticketsync.tickets.service import TicketSyncService


async def get_sync_service(request: Request) -> TicketSyncService:
    service = getattr(request.app.state, "sync_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket sync service is not configured")
    return service
