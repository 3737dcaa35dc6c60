import traceback
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from core.exceptions import AuthRequiredError, NetworkError, ServerRejectedError
from core.log import logger
from schemas.event import EventDetail
from schemas.ticket import (
    PurchaseTicketResult,
    ReserveTicketResult,
    TicketChannel,
    TicketDetailResult,
    TicketPage,
    TicketStatus,
    TicketStatusResult,
    TicketTypeOfferPage,
)
from settings import DAME_API_TIMEOUT, DAME_API_URL, MY_TICKETS_MAX_PAGES

ModelT = TypeVar("ModelT", bound=BaseModel)

MY_TICKETS_SCOPES = ("current", "past")


def extract_error(response: httpx.Response) -> Tuple[str, Dict[str, Any]]:
    """
    Build a user-facing message out of a DAME API error body.

    Returns:
        Tuple of (message, field_errors). When the body carries a field error
        map under ``errors`` the message lists every field, e.g.
        "email: Enter a valid email | quantity: Not enough stock".
    """
    try:
        data = response.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    message = (
        data.get("message")
        or data.get("error")
        or data.get("detail")
        or f"HTTP error! status: {response.status_code}"
    )
    field_errors = data.get("errors")
    if not isinstance(field_errors, dict):
        field_errors = {}

    if field_errors:
        parts = []
        for field, error in field_errors.items():
            if isinstance(error, list):
                error = ", ".join(str(e) for e in error)
            parts.append(f"{field}: {error}")
        message = " | ".join(parts)

    return str(message), field_errors


class BaseDameService:
    def __init__(
        self,
        base_url: str = DAME_API_URL,
        timeout: Optional[float] = DAME_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send one request to the DAME API.

        Raises:
            AuthRequiredError: the API answered 401
            ServerRejectedError: any other non-2xx answer, or a body that is not JSON
            NetworkError: the API could not be reached
        """
        endpoint = f"{self.base_url}{path}"
        headers = dict(self.headers)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.timeout
            ) as client:
                response = await client.request(
                    method,
                    endpoint,
                    json=json,
                    params=params,
                    headers=headers,
                )
                response.raise_for_status()
                result = response.json()
                logger.info(f"DAME API {method} {path}: status:{response.status_code}")
                return result
        except httpx.HTTPStatusError as e:
            logger.error(
                f"DAME API returned error {e.response.status_code}: {e.response.text}"
            )
            logger.debug(f"Request URL: {e.request.url}")
            message, field_errors = extract_error(e.response)
            if e.response.status_code == 401:
                raise AuthRequiredError(message=message) from e
            raise ServerRejectedError(
                status_code=e.response.status_code,
                message=message,
                field_errors=field_errors,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Request to DAME API failed: {repr(e)}")
            raise NetworkError(
                str(e) or "Could not reach the ticketing service"
            ) from e
        except ValueError as e:
            logger.error(f"DAME API {method} {path} returned a non JSON body: {e}")
            logger.debug(traceback.format_exc())
            raise ServerRejectedError(
                status_code=502, message="Unexpected response from ticketing service"
            ) from e

    def _parse(self, model: Type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected DAME API payload for {model.__name__}: {e}")
            raise ServerRejectedError(
                status_code=502, message="Unexpected response from ticketing service"
            ) from e


class DameTicketsService(BaseDameService):
    """Client of the DAME ticketing API (/tickets/...)."""

    async def get_ticket_types(
        self, event_id: int, ticket_type: Optional[TicketChannel] = None
    ) -> TicketTypeOfferPage:
        """
        Ticket types of an event from the public endpoint.

        The endpoint needs no authentication and only returns visible offers.
        """
        params = {"ticket_type": ticket_type.value} if ticket_type else None
        result = await self._request(
            "GET", f"/tickets/events/{event_id}/ticket-types/", params=params
        )
        if isinstance(result, list):
            result = {"count": len(result), "results": result}
        return self._parse(TicketTypeOfferPage, result)

    async def purchase_ticket(
        self, payload: Dict[str, Any], token: str
    ) -> PurchaseTicketResult:
        """Online purchase, and at-door registration with the attendee_data payload."""
        result = self._parse(
            PurchaseTicketResult,
            await self._request("POST", "/tickets/purchase/", token=token, json=payload),
        )
        if not result.success:
            raise ServerRejectedError(
                status_code=400, message=result.error or "Purchase was not accepted"
            )
        return result

    async def purchase_ticket_at_door(
        self, ticket_type_id: int, attendee_data: List[Dict[str, Any]], token: str
    ) -> PurchaseTicketResult:
        """One request for the whole group, the backend creates one ticket per attendee."""
        return await self.purchase_ticket(
            {
                "ticket_type_id": ticket_type_id,
                "quantity": len(attendee_data),
                "attendee_data": attendee_data,
            },
            token=token,
        )

    async def reserve_ticket(
        self, payload: Dict[str, Any], token: str
    ) -> ReserveTicketResult:
        result = self._parse(
            ReserveTicketResult,
            await self._request("POST", "/tickets/reserve/", token=token, json=payload),
        )
        if not result.success or result.ticket is None:
            raise ServerRejectedError(
                status_code=400, message=result.error or "Reservation was not accepted"
            )
        return result

    async def get_my_tickets(
        self, token: str, scope: str = "current", page: int = 1
    ) -> TicketPage:
        if scope not in MY_TICKETS_SCOPES:
            raise ValueError(f"scope must be one of {MY_TICKETS_SCOPES}, got {scope}")
        result = await self._request(
            "GET",
            f"/tickets/my-tickets/{scope}/",
            token=token,
            params={"page": page},
        )
        return self._parse(TicketPage, result)

    async def get_my_current_tickets(self, token: str, page: int = 1) -> TicketPage:
        return await self.get_my_tickets(token=token, scope="current", page=page)

    async def get_my_past_tickets(self, token: str, page: int = 1) -> TicketPage:
        return await self.get_my_tickets(token=token, scope="past", page=page)

    async def iter_my_tickets(
        self, token: str, scope: str = "current", max_pages: int = MY_TICKETS_MAX_PAGES
    ) -> AsyncIterator[TicketPage]:
        """
        Yield pages of the user's tickets starting at page 1 until ``next`` is null.

        The sequence is finite and not restartable: iterate again to re-query.
        """
        page = 1
        while page <= max_pages:
            result = await self.get_my_tickets(token=token, scope=scope, page=page)
            yield result
            if not result.next:
                return
            page += 1
        logger.warning(f"Stopped reading {scope} tickets after {max_pages} pages")

    async def holds_ticket_for_event(
        self, token: str, event_id: int, slug: Optional[str] = None
    ) -> bool:
        async for page in self.iter_my_tickets(token=token, scope="current"):
            for ticket in page.results:
                if ticket.status == TicketStatus.CANCELLED:
                    continue
                if ticket.event_id == event_id:
                    return True
                if slug and ticket.event_slug == slug:
                    return True
        return False

    async def get_my_ticket_detail(self, token: str, ticket_id: int) -> TicketDetailResult:
        result = await self._request(
            "GET", f"/tickets/my-tickets/{ticket_id}/", token=token
        )
        return self._parse(TicketDetailResult, result)

    async def get_ticket_status(self, ticket_code: str) -> TicketStatusResult:
        result = await self._request(
            "GET", f"/tickets/status/{quote(ticket_code, safe='')}/"
        )
        return self._parse(TicketStatusResult, result)

    async def get_ticket_by_hash(self, ticket_hash: str) -> TicketDetailResult:
        result = await self._request(
            "GET", f"/tickets/hash/{quote(ticket_hash, safe='')}/"
        )
        return self._parse(TicketDetailResult, result)


class DameEventsService(BaseDameService):
    """Client of the DAME events API (/events/...)."""

    async def get_event_by_slug(self, slug: str) -> EventDetail:
        result = await self._request("GET", f"/events/{quote(slug, safe='')}/")
        return self._parse(EventDetail, result)
