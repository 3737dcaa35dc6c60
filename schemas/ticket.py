from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, computed_field, field_validator, model_validator

from core.helper import localized


class TicketChannel(str, Enum):
    ONLINE = "ONLINE"
    RESERVATION = "RESERVA"
    AT_DOOR = "EN_PUERTA"


class PricingType(str, Enum):
    FIXED = "FIXED"
    DATE_SCALED = "DATE_SCALED"
    SALES_SCALED = "SALES_SCALED"


class Gender(str, Enum):
    MALE = "M"
    FEMALE = "F"
    OTHER = "O"


class DanceRole(str, Enum):
    LEADER = "LEADER"
    FOLLOWER = "FOLLOWER"


class TicketStatus(str, Enum):
    PURCHASED = "PURCHASED"
    RESERVED = "RESERVED"
    CANCELLED = "CANCELLED"
    REDEEMED = "REDEEMED"


class TicketLifecycle(str, Enum):
    CONFIRMED = "CONFIRMED"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"


TICKET_STATUS_LIFECYCLE = {
    TicketStatus.PURCHASED: TicketLifecycle.CONFIRMED,
    TicketStatus.REDEEMED: TicketLifecycle.CONFIRMED,
    TicketStatus.RESERVED: TicketLifecycle.PENDING,
    TicketStatus.CANCELLED: TicketLifecycle.CANCELLED,
}


def _price_to_str(value: Any) -> Any:
    # the API sends decimals as strings, but numbers show up too
    if value is None or isinstance(value, str):
        return value
    return str(value)


class PriceScale(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    scale_type: PricingType
    until_date: Optional[datetime] = None
    until_sales_count: Optional[int] = None
    price: str = "0"
    order: int = 0

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, value: Any) -> Any:
        return _price_to_str(value)


class EventBasic(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title_es: Optional[str] = None
    start_datetime: Optional[datetime] = None
    slug: Optional[str] = None


class TicketTypeOffer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    event: Optional[EventBasic] = None
    title_es: str = ""
    title_en: Optional[str] = None
    description_es: Optional[str] = None
    description_en: Optional[str] = None
    ticket_type: TicketChannel
    payment_gateway: Optional[str] = None
    base_price: Optional[str] = "0"
    current_price: Optional[str] = None
    currency: str = "EUR"
    pricing_type: PricingType = PricingType.FIXED
    stock: Optional[int] = None
    available_stock: Optional[int] = None
    tickets_sold_count: int = 0
    is_visible: Optional[bool] = None
    is_on_sale: bool = False
    sale_start_date: Optional[datetime] = None
    sale_end_date: Optional[datetime] = None
    attendees_per_ticket: int = 1
    require_phone: bool = False
    require_gender: bool = False
    require_role: bool = False
    require_document: bool = False
    require_country: bool = False
    require_city: bool = False
    price_scales: List[PriceScale] = []

    @field_validator("base_price", "current_price", mode="before")
    @classmethod
    def coerce_prices(cls, value: Any) -> Any:
        return _price_to_str(value)

    @property
    def channel(self) -> TicketChannel:
        return self.ticket_type

    def localized_title(self, locale: str) -> str:
        return localized(locale, self.title_es, self.title_en)

    def localized_description(self, locale: str) -> str:
        return localized(locale, self.description_es, self.description_en)


class TicketTypeOfferPage(BaseModel):
    count: int = 0
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[TicketTypeOffer] = []


class AttendeeRecord(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    gender: Optional[Gender] = None
    role: Optional[DanceRole] = None
    id_document: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    additional_notes: Optional[str] = None

    @field_validator("gender", "role", mode="before")
    @classmethod
    def blank_choice_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_payload(self, offer: TicketTypeOffer) -> Dict[str, Any]:
        """Trimmed attendee fields, optional ones only when the offer asks for them."""
        payload: Dict[str, Any] = {
            "full_name": self.full_name.strip(),
            "email": self.email.strip(),
        }
        if offer.require_phone and self.phone:
            payload["phone"] = self.phone.strip()
        if offer.require_gender and self.gender:
            payload["gender"] = self.gender.value
        if offer.require_role and self.role:
            payload["role"] = self.role.value
        if offer.require_document and self.id_document:
            payload["id_document"] = self.id_document.strip()
        if offer.require_country and self.country:
            payload["country"] = self.country.strip()
        if offer.require_city and self.city:
            payload["city"] = self.city.strip()
        if self.additional_notes and self.additional_notes.strip():
            payload["additional_notes"] = self.additional_notes.strip()
        return payload


class Ticket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    ticket_type: Optional[int] = None
    ticket_type_title: str = ""
    event_title: str = ""
    event_date: Optional[str] = None
    event_slug: Optional[str] = None
    event_id: Optional[int] = None
    status: TicketStatus = TicketStatus.PURCHASED
    full_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    gender: Optional[Gender] = None
    role: Optional[DanceRole] = None
    id_document: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    purchase_price: str = "0"
    purchase_currency: str = "EUR"
    purchase_date: Optional[str] = None
    ticket_code: str = ""
    hash: Optional[str] = None
    is_manual: bool = False
    referral_code: Optional[str] = None
    redeemed_at: Optional[str] = None

    @field_validator("purchase_price", mode="before")
    @classmethod
    def coerce_price(cls, value: Any) -> Any:
        return _price_to_str(value)

    @model_validator(mode="before")
    @classmethod
    def resolve_qr_hash(cls, data: Any) -> Any:
        # the QR hash has been sent under three different keys
        if isinstance(data, dict) and not data.get("hash"):
            metadata = data.get("ticket_metadata") or {}
            resolved = (
                data.get("ticket_hash")
                or metadata.get("hash")
                or metadata.get("ticket_hash")
            )
            if resolved:
                data = {**data, "hash": resolved}
        return data

    @computed_field
    @property
    def lifecycle(self) -> TicketLifecycle:
        return TICKET_STATUS_LIFECYCLE[self.status]


class TicketPage(BaseModel):
    count: int = 0
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[Ticket] = []


class PurchaseTicketResult(BaseModel):
    success: bool = True
    tickets: List[Ticket] = []
    payment_intent_id: Optional[str] = None
    checkout_url: Optional[str] = None
    error: Optional[str] = None


class ReserveTicketResult(BaseModel):
    success: bool = True
    ticket: Optional[Ticket] = None
    error: Optional[str] = None


class TicketDetailResult(BaseModel):
    success: bool = True
    ticket: Optional[Ticket] = None
    error: Optional[str] = None


class TicketStatusInfo(BaseModel):
    ticket_code: str
    full_name: str = ""
    status: TicketStatus
    event_title: str = ""
    event_date: Optional[str] = None
    purchase_date: Optional[str] = None


class TicketStatusResult(BaseModel):
    success: bool = True
    ticket: Optional[TicketStatusInfo] = None
    error: Optional[str] = None


# Requests from the frontend


class OnlinePurchaseRequest(BaseModel):
    event_id: int
    ticket_type_id: int
    quantity: int = 1
    buyer: AttendeeRecord
    event_slug: Optional[str] = None
    return_path: Optional[str] = None


class ReserveRequest(BaseModel):
    event_id: int
    ticket_type_id: int
    attendee: AttendeeRecord
    additional_notes: Optional[str] = None
    terms_accepted: bool = False
    event_slug: Optional[str] = None
    return_path: Optional[str] = None


class AtDoorRegistrationRequest(BaseModel):
    event_id: int
    ticket_type_id: int
    quantity: int = 1
    attendees: List[AttendeeRecord]
    event_slug: Optional[str] = None
    return_path: Optional[str] = None


# Responses to the frontend


class OfferState(BaseModel):
    id: int
    channel: TicketChannel
    title: str
    description: str = ""
    is_orderable: bool
    display_price: str
    price_label: str
    max_quantity: Optional[int] = None


class OfferSummary(BaseModel):
    has_orderable_offers: bool
    min_display_price: Optional[str] = None
    at_door_offer_id: Optional[int] = None
    offers: List[OfferState] = []


class OfferListResponse(BaseModel):
    results: List[TicketTypeOffer]
    summary: OfferSummary


class OnlinePurchaseResponse(BaseModel):
    tickets: List[Ticket]
    checkout_url: Optional[str] = None
    payment_intent_id: Optional[str] = None
    offers: Optional[OfferListResponse] = None


class ReserveResponse(BaseModel):
    ticket: Ticket
    offers: Optional[OfferListResponse] = None


class AtDoorRegistrationResponse(BaseModel):
    tickets: List[Ticket]
    offers: Optional[OfferListResponse] = None


class TicketOwnershipResponse(BaseModel):
    has_ticket: bool
