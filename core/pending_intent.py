import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional

from pydantic import BaseModel

from settings import PENDING_INTENT_TTL_MINUTES


class PendingIntent(BaseModel):
    """Action a user attempted before logging in, replayed after login."""

    slug: str
    timestamp: datetime
    return_path: Optional[str] = None

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.timestamp > ttl


class InMemoryPendingIntentStore:
    """In-memory single-use store for pending actions with a TTL"""

    def __init__(self, ttl_minutes: int = PENDING_INTENT_TTL_MINUTES):
        self.ttl = timedelta(minutes=ttl_minutes)
        self._intents: Dict[str, PendingIntent] = {}
        self._lock = asyncio.Lock()

    async def save(
        self, slug: str, now: datetime, return_path: Optional[str] = None
    ) -> str:
        """
        Store a pending action

        Args:
            slug: Context key of the action (event slug)
            now: Creation time
            return_path: Path + query to send the user back to after login

        Returns:
            intent_id the client keeps until it comes back from login
        """
        intent_id = uuid.uuid4().hex
        async with self._lock:
            self._intents[intent_id] = PendingIntent(
                slug=slug, timestamp=now, return_path=return_path
            )
        return intent_id

    async def consume(self, intent_id: str, now: datetime) -> Optional[PendingIntent]:
        """
        Read and delete a pending action in one step

        The entry is deleted whatever the outcome, so a second call for the same
        intent_id always returns None. Expired entries also return None.
        """
        async with self._lock:
            intent = self._intents.pop(intent_id, None)
        if intent is None or intent.is_expired(now, self.ttl):
            return None
        return intent

    async def cleanup_expired(self, now: datetime) -> int:
        """Drop expired entries, returns how many were removed"""
        async with self._lock:
            expired = [
                key
                for key, intent in self._intents.items()
                if intent.is_expired(now, self.ttl)
            ]
            for key in expired:
                del self._intents[key]
        return len(expired)

    async def count(self) -> int:
        async with self._lock:
            return len(self._intents)
