"""API router for v1 endpoints."""

from fastapi import APIRouter

from contact_engine.api import captures, contacts

router = APIRouter()

# Quick capture: pasted text + screenshots -> draft contact
router.include_router(captures.router, tags=["captures"])

# Existing contacts: ingest new info, deep research
router.include_router(contacts.router, tags=["contacts"])
