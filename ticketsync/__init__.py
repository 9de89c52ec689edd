"""Ticket enrichment and reconciliation service."""
