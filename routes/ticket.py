import traceback
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.dame_service import DameTicketsService
from core.dependencies import (
    get_locale,
    get_pending_intent_store,
    get_tickets_service,
)
from core.exceptions import AuthRequiredError, TicketingError
from core.helper import get_current_time_in_timezone
from core.log import logger
from core.offer_resolver import find_at_door_offer, resolve_offers
from core.pending_intent import InMemoryPendingIntentStore
from core.reservation import ReservationSubmitter
from core.responses import (
    Created,
    InternalServerError,
    NotFound,
    Ok,
    common_response,
    ticketing_error_response,
)
from core.security import get_session_from_token, oauth2_scheme
from schemas.common import (
    AuthRequiredResponse,
    BadRequestResponse,
    InternalServerErrorResponse,
    NotFoundResponse,
    ServerRejectedResponse,
    ValidationErrorResponse,
)
from schemas.ticket import (
    AtDoorRegistrationRequest,
    AtDoorRegistrationResponse,
    OfferListResponse,
    OnlinePurchaseRequest,
    OnlinePurchaseResponse,
    ReserveRequest,
    ReserveResponse,
    TicketOwnershipResponse,
    TicketPage,
    TicketTypeOffer,
)

router = APIRouter(prefix="/ticket", tags=["Ticket"])

SUBMISSION_RESPONSES = {
    "400": {"model": BadRequestResponse},
    "401": {"model": AuthRequiredResponse},
    "404": {"model": NotFoundResponse},
    "409": {"model": BadRequestResponse},
    "422": {"model": ValidationErrorResponse},
    "502": {"model": ServerRejectedResponse},
    "500": {"model": InternalServerErrorResponse},
}


async def fetch_offers(
    service: DameTicketsService, event_id: int, locale: str
) -> OfferListResponse:
    page = await service.get_ticket_types(event_id)
    now = get_current_time_in_timezone()
    return OfferListResponse(
        results=page.results, summary=resolve_offers(page.results, now, locale)
    )


async def find_offer(
    service: DameTicketsService, event_id: int, ticket_type_id: int
) -> Optional[TicketTypeOffer]:
    page = await service.get_ticket_types(event_id)
    return next((offer for offer in page.results if offer.id == ticket_type_id), None)


async def find_at_door(
    service: DameTicketsService, event_id: int, ticket_type_id: int
) -> Optional[TicketTypeOffer]:
    # only the offer the event page would open the at-door form for
    page = await service.get_ticket_types(event_id)
    offer = find_at_door_offer(page.results)
    if offer is None or offer.id != ticket_type_id:
        return None
    return offer


async def submission_error_response(
    e: TicketingError,
    store: InMemoryPendingIntentStore,
    locale: str,
    event_slug: Optional[str],
    return_path: Optional[str],
):
    intent_id = None
    if isinstance(e, AuthRequiredError):
        if e.return_path is None:
            e.return_path = return_path
        if event_slug:
            now = get_current_time_in_timezone()
            await store.cleanup_expired(now)
            intent_id = await store.save(
                slug=event_slug, now=now, return_path=e.return_path
            )
    return ticketing_error_response(e, locale=locale, intent_id=intent_id)


def offer_not_found(ticket_type_id: int):
    return common_response(
        NotFound(message=f"Ticket type {ticket_type_id} is not available for this event")
    )


@router.get(
    "/events/{event_id}/offers",
    responses={
        "200": {"model": OfferListResponse},
        "502": {"model": ServerRejectedResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
async def list_offers(
    event_id: int,
    locale: str = Depends(get_locale),
    service: DameTicketsService = Depends(get_tickets_service),
):
    try:
        offers = await fetch_offers(service, event_id, locale)
    except TicketingError as e:
        return ticketing_error_response(e, locale=locale)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in list_offers: {e}")
        return common_response(InternalServerError(error=str(e)))
    return common_response(Ok(data=offers.model_dump(mode="json")))


@router.post(
    "/purchase",
    responses={"201": {"model": OnlinePurchaseResponse}, **SUBMISSION_RESPONSES},
)
async def purchase(
    payload: OnlinePurchaseRequest,
    locale: str = Depends(get_locale),
    token: Optional[str] = Depends(oauth2_scheme),
    service: DameTicketsService = Depends(get_tickets_service),
    store: InMemoryPendingIntentStore = Depends(get_pending_intent_store),
):
    refreshed: Optional[OfferListResponse] = None

    async def refresh_offers() -> None:
        nonlocal refreshed
        refreshed = await fetch_offers(service, payload.event_id, locale)

    try:
        offer = await find_offer(service, payload.event_id, payload.ticket_type_id)
        if offer is None:
            return offer_not_found(payload.ticket_type_id)
        submitter = ReservationSubmitter(
            service,
            offer,
            token,
            on_success=refresh_offers,
            locale=locale,
            return_path=payload.return_path,
        )
        tickets = await submitter.submit_online(payload.quantity, payload.buyer)
    except TicketingError as e:
        return await submission_error_response(
            e, store, locale, payload.event_slug, payload.return_path
        )
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in purchase: {e}")
        return common_response(InternalServerError(error=str(e)))

    response = OnlinePurchaseResponse(
        tickets=tickets,
        checkout_url=submitter.checkout_url,
        payment_intent_id=submitter.payment_intent_id,
        offers=refreshed,
    )
    return common_response(Created(data=response.model_dump(mode="json")))


@router.post(
    "/reserve",
    responses={"201": {"model": ReserveResponse}, **SUBMISSION_RESPONSES},
)
async def reserve(
    payload: ReserveRequest,
    locale: str = Depends(get_locale),
    token: Optional[str] = Depends(oauth2_scheme),
    service: DameTicketsService = Depends(get_tickets_service),
    store: InMemoryPendingIntentStore = Depends(get_pending_intent_store),
):
    refreshed: Optional[OfferListResponse] = None

    async def refresh_offers() -> None:
        nonlocal refreshed
        refreshed = await fetch_offers(service, payload.event_id, locale)

    try:
        offer = await find_offer(service, payload.event_id, payload.ticket_type_id)
        if offer is None:
            return offer_not_found(payload.ticket_type_id)
        submitter = ReservationSubmitter(
            service,
            offer,
            token,
            on_success=refresh_offers,
            locale=locale,
            return_path=payload.return_path,
        )
        ticket = await submitter.submit_reservation(
            payload.attendee,
            notes=payload.additional_notes,
            terms_accepted=payload.terms_accepted,
        )
    except TicketingError as e:
        return await submission_error_response(
            e, store, locale, payload.event_slug, payload.return_path
        )
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in reserve: {e}")
        return common_response(InternalServerError(error=str(e)))

    response = ReserveResponse(ticket=ticket, offers=refreshed)
    return common_response(Created(data=response.model_dump(mode="json")))


@router.post(
    "/at-door",
    responses={"201": {"model": AtDoorRegistrationResponse}, **SUBMISSION_RESPONSES},
)
async def register_at_door(
    payload: AtDoorRegistrationRequest,
    locale: str = Depends(get_locale),
    token: Optional[str] = Depends(oauth2_scheme),
    service: DameTicketsService = Depends(get_tickets_service),
    store: InMemoryPendingIntentStore = Depends(get_pending_intent_store),
):
    """Register a group at the door, one ticket per attendee.

    On success the offers are read again so the stepper shows the new stock.
    """
    refreshed: Optional[OfferListResponse] = None

    async def refresh_offers() -> None:
        nonlocal refreshed
        refreshed = await fetch_offers(service, payload.event_id, locale)

    try:
        offer = await find_at_door(service, payload.event_id, payload.ticket_type_id)
        if offer is None:
            return offer_not_found(payload.ticket_type_id)
        submitter = ReservationSubmitter(
            service,
            offer,
            token,
            on_success=refresh_offers,
            locale=locale,
            return_path=payload.return_path,
        )
        tickets = await submitter.submit_at_door(payload.quantity, payload.attendees)
    except TicketingError as e:
        return await submission_error_response(
            e, store, locale, payload.event_slug, payload.return_path
        )
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in register_at_door: {e}")
        return common_response(InternalServerError(error=str(e)))

    response = AtDoorRegistrationResponse(tickets=tickets, offers=refreshed)
    return common_response(Created(data=response.model_dump(mode="json")))


async def _my_tickets(
    scope: str,
    page: int,
    token: Optional[str],
    locale: str,
    service: DameTicketsService,
):
    try:
        if get_session_from_token(token) is None:
            raise AuthRequiredError()
        result = await service.get_my_tickets(token=token, scope=scope, page=page)
    except TicketingError as e:
        return ticketing_error_response(e, locale=locale)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in get_my_tickets ({scope}): {e}")
        return common_response(InternalServerError(error=str(e)))
    return common_response(Ok(data=result.model_dump(mode="json")))


@router.get(
    "/me/current",
    responses={
        "200": {"model": TicketPage},
        "401": {"model": AuthRequiredResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
async def get_my_current_tickets(
    page: int = Query(default=1, ge=1),
    locale: str = Depends(get_locale),
    token: Optional[str] = Depends(oauth2_scheme),
    service: DameTicketsService = Depends(get_tickets_service),
):
    return await _my_tickets("current", page, token, locale, service)


@router.get(
    "/me/past",
    responses={
        "200": {"model": TicketPage},
        "401": {"model": AuthRequiredResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
async def get_my_past_tickets(
    page: int = Query(default=1, ge=1),
    locale: str = Depends(get_locale),
    token: Optional[str] = Depends(oauth2_scheme),
    service: DameTicketsService = Depends(get_tickets_service),
):
    return await _my_tickets("past", page, token, locale, service)


@router.get(
    "/me/{ticket_id}",
    responses={
        "401": {"model": AuthRequiredResponse},
        "404": {"model": NotFoundResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
async def get_my_ticket_detail(
    ticket_id: int,
    locale: str = Depends(get_locale),
    token: Optional[str] = Depends(oauth2_scheme),
    service: DameTicketsService = Depends(get_tickets_service),
):
    try:
        if get_session_from_token(token) is None:
            raise AuthRequiredError()
        result = await service.get_my_ticket_detail(token=token, ticket_id=ticket_id)
    except TicketingError as e:
        return ticketing_error_response(e, locale=locale)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in get_my_ticket_detail: {e}")
        return common_response(InternalServerError(error=str(e)))

    if not result.success or result.ticket is None:
        return common_response(NotFound(message=result.error or "Ticket not found"))
    return common_response(Ok(data={"data": result.ticket.model_dump(mode="json")}))


@router.get(
    "/events/{event_id}/ownership",
    responses={
        "200": {"model": TicketOwnershipResponse},
        "401": {"model": AuthRequiredResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
async def get_ticket_ownership(
    event_id: int,
    slug: Optional[str] = None,
    locale: str = Depends(get_locale),
    token: Optional[str] = Depends(oauth2_scheme),
    service: DameTicketsService = Depends(get_tickets_service),
):
    """Whether the user already holds a ticket that is not cancelled for the event."""
    try:
        if get_session_from_token(token) is None:
            raise AuthRequiredError()
        has_ticket = await service.holds_ticket_for_event(
            token=token, event_id=event_id, slug=slug
        )
    except TicketingError as e:
        return ticketing_error_response(e, locale=locale)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in get_ticket_ownership: {e}")
        return common_response(InternalServerError(error=str(e)))
    return common_response(
        Ok(data=TicketOwnershipResponse(has_ticket=has_ticket).model_dump())
    )


@router.get(
    "/status/{ticket_code}",
    responses={
        "404": {"model": NotFoundResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
async def get_ticket_status(
    ticket_code: str,
    locale: str = Depends(get_locale),
    service: DameTicketsService = Depends(get_tickets_service),
):
    try:
        result = await service.get_ticket_status(ticket_code)
    except TicketingError as e:
        return ticketing_error_response(e, locale=locale)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in get_ticket_status: {e}")
        return common_response(InternalServerError(error=str(e)))

    if not result.success or result.ticket is None:
        return common_response(NotFound(message=result.error or "Ticket not found"))
    return common_response(Ok(data={"data": result.ticket.model_dump(mode="json")}))


@router.get(
    "/hash/{ticket_hash}",
    responses={
        "404": {"model": NotFoundResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
async def get_ticket_by_hash(
    ticket_hash: str,
    locale: str = Depends(get_locale),
    service: DameTicketsService = Depends(get_tickets_service),
):
    try:
        result = await service.get_ticket_by_hash(ticket_hash)
    except TicketingError as e:
        return ticketing_error_response(e, locale=locale)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in get_ticket_by_hash: {e}")
        return common_response(InternalServerError(error=str(e)))

    if not result.success or result.ticket is None:
        return common_response(NotFound(message=result.error or "Ticket not found"))
    return common_response(Ok(data={"data": result.ticket.model_dump(mode="json")}))
