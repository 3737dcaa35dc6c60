import traceback

from fastapi import APIRouter, Depends

from core.dame_service import DameEventsService
from core.dependencies import get_events_service, get_locale
from core.exceptions import TicketingError
from core.log import logger
from core.responses import (
    InternalServerError,
    Ok,
    common_response,
    ticketing_error_response,
)
from schemas.common import (
    InternalServerErrorResponse,
    NotFoundResponse,
    ServerRejectedResponse,
)
from schemas.event import EventDetailResponse

router = APIRouter(prefix="/event", tags=["Event"])


@router.get(
    "/{slug}",
    responses={
        "200": {"model": EventDetailResponse},
        "404": {"model": NotFoundResponse},
        "502": {"model": ServerRejectedResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
async def get_event(
    slug: str,
    locale: str = Depends(get_locale),
    service: DameEventsService = Depends(get_events_service),
):
    try:
        event = await service.get_event_by_slug(slug)
    except TicketingError as e:
        return ticketing_error_response(e, locale=locale)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in get_event: {e}")
        return common_response(InternalServerError(error=str(e)))

    response = EventDetailResponse(
        data=event,
        title=event.localized_title(locale),
        summary=event.localized_summary(locale),
    )
    return common_response(Ok(data=response.model_dump(mode="json")))
