from typing import Optional

from fastapi import Header, Query

from core.dame_service import DameEventsService, DameTicketsService
from core.helper import resolve_locale
from core.pending_intent import InMemoryPendingIntentStore

pending_intent_store = InMemoryPendingIntentStore()


def get_tickets_service() -> DameTicketsService:
    return DameTicketsService()


def get_events_service() -> DameEventsService:
    return DameEventsService()


def get_pending_intent_store() -> InMemoryPendingIntentStore:
    return pending_intent_store


def get_locale(
    lang: Optional[str] = Query(default=None),
    accept_language: Optional[str] = Header(default=None),
) -> str:
    return resolve_locale(lang, accept_language)
