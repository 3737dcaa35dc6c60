"""Submission of online purchases, reservations and at-door registrations.

One ReservationSubmitter is created per offer the user is submitting for. It
runs every client-side check before anything is sent, guards against double
submission and notifies ``on_success`` so the caller can re-fetch the offers;
the re-fetched stock is the only authoritative one.
"""

from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from core.dame_service import DameTicketsService
from core.exceptions import (
    AuthRequiredError,
    FormValidationError,
    QuantityOutOfRangeError,
    SubmissionStateError,
)
from core.helper import get_current_time_in_timezone
from core.log import logger
from core.offer_resolver import is_hidden, is_orderable, max_quantity
from core.security import AuthSession, get_session_from_token
from schemas.ticket import AttendeeRecord, Ticket, TicketChannel, TicketTypeOffer
from validators.attendee import validate_attendee, validate_batch

T = TypeVar("T")

OnSuccess = Callable[[], Awaitable[None]]

# stepper cap when the offer has no stock limit
UNLIMITED_STOCK_QUANTITY = 999

MESSAGES = {
    "terms": {
        "en": "You must accept the terms and conditions to proceed",
        "es": "Debes aceptar los términos y condiciones para continuar",
    },
    "attendee_count": {
        "en": "{expected} attendee(s) expected, {received} received",
        "es": "Se esperaban {expected} invitado(s), se recibieron {received}",
    },
    "channel": {
        "en": "This ticket type cannot be used for this action",
        "es": "Este tipo de entrada no admite esta acción",
    },
    "not_orderable": {
        "en": "This ticket type is not on sale right now",
        "es": "Este tipo de entrada no está a la venta en este momento",
    },
}


def _message(key: str, locale: str, **kwargs) -> str:
    return MESSAGES[key].get(locale, MESSAGES[key]["es"]).format(**kwargs)


class SubmissionState(str, Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    SUBMITTING = "SUBMITTING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


def resize_attendees(
    attendees: Sequence[AttendeeRecord], quantity: int, available_stock: Optional[int]
) -> List[AttendeeRecord]:
    """
    Grow or shrink the attendee list to match the quantity stepper.

    The quantity is clamped to [1, available_stock] (or [1, 999] without a
    stock limit). Entries already filled in are kept, new ones are blank.
    """
    maximum = (
        available_stock if available_stock is not None else UNLIMITED_STOCK_QUANTITY
    )
    valid_quantity = max(1, min(maximum, quantity))
    resized = [attendee.model_copy() for attendee in attendees[:valid_quantity]]
    resized.extend(AttendeeRecord() for _ in range(valid_quantity - len(resized)))
    return resized


class ReservationSubmitter:
    def __init__(
        self,
        service: DameTicketsService,
        offer: TicketTypeOffer,
        token: Optional[str],
        on_success: Optional[OnSuccess] = None,
        locale: str = "es",
        return_path: Optional[str] = None,
        now: Optional[datetime] = None,
    ):
        self.service = service
        self.offer = offer
        self.token = token
        self.on_success = on_success
        self.locale = locale
        self.return_path = return_path
        self.now = now
        self.state = SubmissionState.IDLE
        self.checkout_url: Optional[str] = None
        self.payment_intent_id: Optional[str] = None

    def require_session(self) -> AuthSession:
        session = get_session_from_token(self.token)
        if session is None:
            raise AuthRequiredError(return_path=self.return_path)
        return session

    def check_channel(self, channel: TicketChannel) -> None:
        if self.offer.channel != channel:
            raise FormValidationError(
                message=_message("channel", self.locale), field="ticket_type_id"
            )

    def check_orderable(self) -> None:
        now = self.now or get_current_time_in_timezone()
        if is_hidden(self.offer) or not is_orderable(self.offer, now):
            raise FormValidationError(
                message=_message("not_orderable", self.locale), field="ticket_type_id"
            )

    def check_quantity(self, quantity: int) -> None:
        maximum = max_quantity(self.offer)
        if quantity < 1 or (maximum is not None and quantity > maximum):
            raise QuantityOutOfRangeError(quantity=quantity, minimum=1, maximum=maximum)

    async def _run(
        self, validate: Callable[[], None], send: Callable[[], Awaitable[T]]
    ) -> T:
        if self.state in (SubmissionState.VALIDATING, SubmissionState.SUBMITTING):
            raise SubmissionStateError("A submission is already in progress")
        if self.state == SubmissionState.SUCCESS:
            raise SubmissionStateError("This submission has already been completed")

        # FAILED is left as is until the next attempt, which starts validating again
        self.state = SubmissionState.VALIDATING
        try:
            validate()
            self.state = SubmissionState.SUBMITTING
            result = await send()
        except Exception as e:
            self.state = SubmissionState.FAILED
            logger.info(f"Submission for ticket type {self.offer.id} failed: {e}")
            raise

        self.state = SubmissionState.SUCCESS
        await self._notify_success()
        return result

    async def _notify_success(self) -> None:
        if self.on_success is None:
            return
        try:
            await self.on_success()
        except Exception as e:
            logger.warning(
                f"Refreshing offers after submission for ticket type {self.offer.id} failed: {e}"
            )

    async def submit_online(
        self, quantity: int, buyer: AttendeeRecord
    ) -> List[Ticket]:
        """
        Buy tickets of an ONLINE offer.

        When the backend hands payment to an external gateway the returned list
        may be empty and ``checkout_url`` is set instead.
        """

        def validate() -> None:
            self.require_session()
            self.check_channel(TicketChannel.ONLINE)
            self.check_orderable()
            validate_attendee(buyer, self.offer, locale=self.locale).raise_for_error()
            self.check_quantity(quantity)

        async def send() -> List[Ticket]:
            payload = {
                "ticket_type": self.offer.id,
                "quantity": quantity,
                **buyer.to_payload(self.offer),
            }
            result = await self.service.purchase_ticket(payload, token=self.token)
            self.checkout_url = result.checkout_url
            self.payment_intent_id = result.payment_intent_id
            return result.tickets

        return await self._run(validate, send)

    async def submit_reservation(
        self,
        attendee: AttendeeRecord,
        notes: Optional[str] = None,
        terms_accepted: bool = False,
    ) -> Ticket:
        def validate() -> None:
            self.require_session()
            self.check_channel(TicketChannel.RESERVATION)
            self.check_orderable()
            validate_attendee(attendee, self.offer, locale=self.locale).raise_for_error()
            if not terms_accepted:
                raise FormValidationError(
                    message=_message("terms", self.locale), field="terms_accepted"
                )
            self.check_quantity(1)

        async def send() -> Ticket:
            payload = {
                "ticket_type": self.offer.id,
                **attendee.to_payload(self.offer),
                "terms_accepted": True,
            }
            if notes and notes.strip():
                payload["additional_notes"] = notes.strip()
            result = await self.service.reserve_ticket(payload, token=self.token)
            return result.ticket

        return await self._run(validate, send)

    async def submit_at_door(
        self, quantity: int, attendees: Sequence[AttendeeRecord]
    ) -> List[Ticket]:
        """Register ``quantity`` attendees at the door, one ticket per attendee."""

        def validate() -> None:
            self.require_session()
            self.check_channel(TicketChannel.AT_DOOR)
            self.check_quantity(quantity)
            if len(attendees) != quantity:
                raise FormValidationError(
                    message=_message(
                        "attendee_count",
                        self.locale,
                        expected=quantity,
                        received=len(attendees),
                    ),
                    field="attendees",
                )
            validate_batch(attendees, self.offer, locale=self.locale).raise_for_error()

        async def send() -> List[Ticket]:
            result = await self.service.purchase_ticket_at_door(
                ticket_type_id=self.offer.id,
                attendee_data=[a.to_payload(self.offer) for a in attendees],
                token=self.token,
            )
            if len(result.tickets) != quantity:
                logger.warning(
                    f"At-door registration for ticket type {self.offer.id} returned "
                    f"{len(result.tickets)} tickets for {quantity} attendees"
                )
            return result.tickets

        return await self._run(validate, send)
