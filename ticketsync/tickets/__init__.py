"""Ticket record model and the enrichment pipeline built around it."""

from .models import ColumnRole, TicketRecord, TicketStatus, decode_reference, decorate_reference

__all__ = [
    "ColumnRole",
    "TicketRecord",
    "TicketStatus",
    "decode_reference",
    "decorate_reference",
]
