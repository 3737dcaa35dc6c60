from typing import Optional

from fastapi import APIRouter, Depends

from core.dependencies import get_locale, get_pending_intent_store
from core.exceptions import AuthRequiredError
from core.helper import get_current_time_in_timezone
from core.log import logger
from core.pending_intent import InMemoryPendingIntentStore, PendingIntent
from core.responses import NotFound, Ok, common_response, ticketing_error_response
from core.security import get_session_from_token, oauth2_scheme
from schemas.common import AuthRequiredResponse, NotFoundResponse

router = APIRouter(prefix="/intent", tags=["Pending intent"])


@router.post(
    "/{intent_id}/consume",
    responses={
        "200": {"model": PendingIntent},
        "401": {"model": AuthRequiredResponse},
        "404": {"model": NotFoundResponse},
    },
)
async def consume_intent(
    intent_id: str,
    locale: str = Depends(get_locale),
    token: Optional[str] = Depends(oauth2_scheme),
    store: InMemoryPendingIntentStore = Depends(get_pending_intent_store),
):
    """
    Resume the action the user attempted before logging in.

    Only a logged in user can consume an intent; it is gone after the first
    call, and once PENDING_INTENT_TTL_MINUTES have passed it is dropped
    without being returned.
    """
    if get_session_from_token(token) is None:
        return ticketing_error_response(AuthRequiredError(), locale=locale)

    intent = await store.consume(intent_id, now=get_current_time_in_timezone())
    if intent is None:
        logger.info(f"Pending intent {intent_id} is missing or expired")
        return common_response(NotFound(message="Pending action not found or expired"))
    return common_response(Ok(data=intent.model_dump(mode="json")))
