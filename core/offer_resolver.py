"""Derived display and orderability facts for the ticket offers of an event.

Every function here is pure: it reads a snapshot of offers fetched from the
DAME ticket-types endpoint and never mutates it. Stock and visibility are owned
by the backend; the snapshot is refreshed by re-fetching after a submission.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Sequence

from core.helper import ensure_aware
from schemas.ticket import (
    OfferState,
    OfferSummary,
    PricingType,
    TicketChannel,
    TicketTypeOffer,
)

CENT = Decimal("0.01")

FREE_LABEL = {"en": "FREE", "es": "GRATIS"}
FREE_PRICE_LABEL = {"en": "Free", "es": "Gratuito"}


def parse_price(value: Any) -> Decimal:
    """Parse a decimal price string, malformed or missing values count as 0."""
    if value is None:
        return Decimal("0")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return amount


def format_amount(amount: Decimal) -> str:
    return f"{amount.quantize(CENT, rounding=ROUND_HALF_UP)}€"


def format_price(amount: Decimal, locale: str) -> str:
    if amount <= 0:
        return FREE_PRICE_LABEL.get(locale, FREE_PRICE_LABEL["es"])
    return format_amount(amount)


def is_hidden(offer: TicketTypeOffer) -> bool:
    # the public endpoint already filters; only an explicit False hides
    return offer.is_visible is False


def _visible(offers: Iterable[TicketTypeOffer]) -> List[TicketTypeOffer]:
    return [offer for offer in offers if not is_hidden(offer)]


def _listed_price(offer: TicketTypeOffer) -> Decimal:
    return parse_price(offer.current_price or offer.base_price or "0")


def scaled_price(offer: TicketTypeOffer, now: datetime) -> Optional[Decimal]:
    """Price of the active scale step, or None when no step applies."""
    if offer.pricing_type == PricingType.FIXED or not offer.price_scales:
        return None
    for scale in sorted(offer.price_scales, key=lambda s: s.order):
        if scale.scale_type == PricingType.DATE_SCALED:
            if scale.until_date is not None and ensure_aware(scale.until_date) >= now:
                return parse_price(scale.price)
        elif scale.scale_type == PricingType.SALES_SCALED:
            if (
                scale.until_sales_count is not None
                and offer.tickets_sold_count < scale.until_sales_count
            ):
                return parse_price(scale.price)
    return None


def display_price(offer: TicketTypeOffer, now: datetime) -> Decimal:
    """current_price as computed by the backend, else the active scale, else base."""
    if offer.current_price:
        return parse_price(offer.current_price)
    scaled = scaled_price(offer, now)
    if scaled is not None:
        return scaled
    return parse_price(offer.base_price)


def total_price(offer: TicketTypeOffer, quantity: int, now: datetime) -> Decimal:
    return (display_price(offer, now) * quantity).quantize(CENT, rounding=ROUND_HALF_UP)


def has_orderable_offers(offers: Sequence[TicketTypeOffer]) -> bool:
    return len(_visible(offers)) > 0


def min_display_price(offers: Sequence[TicketTypeOffer], locale: str) -> Optional[str]:
    visible = _visible(offers)
    if not visible:
        return None
    prices = [price for price in map(_listed_price, visible) if price > 0]
    if not prices:
        return FREE_LABEL.get(locale, FREE_LABEL["es"])
    return format_amount(min(prices))


def find_at_door_offer(offers: Sequence[TicketTypeOffer]) -> Optional[TicketTypeOffer]:
    """First at-door offer usable for walk-in registration.

    At-door offers are often not on advance sale, so ``is_on_sale`` is ignored;
    an explicit stock of zero still excludes the offer.
    """
    for offer in offers:
        if offer.channel != TicketChannel.AT_DOOR:
            continue
        if is_hidden(offer) or offer.available_stock == 0:
            continue
        return offer
    return None


def is_orderable(offer: TicketTypeOffer, now: datetime) -> bool:
    if not offer.is_on_sale:
        return False
    if offer.available_stock is not None and offer.available_stock <= 0:
        return False
    sale_start = ensure_aware(offer.sale_start_date)
    if sale_start is not None and sale_start > now:
        return False
    sale_end = ensure_aware(offer.sale_end_date)
    if sale_end is not None and sale_end < now:
        return False
    return True


def max_quantity(offer: TicketTypeOffer) -> Optional[int]:
    """Upper bound for the quantity stepper, None when stock is unlimited."""
    if offer.available_stock is None:
        return None
    return max(0, offer.available_stock)


def resolve_offers(
    offers: Sequence[TicketTypeOffer], now: datetime, locale: str
) -> OfferSummary:
    at_door = find_at_door_offer(offers)
    states = []
    for offer in _visible(offers):
        price = display_price(offer, now)
        states.append(
            OfferState(
                id=offer.id,
                channel=offer.channel,
                title=offer.localized_title(locale),
                description=offer.localized_description(locale),
                # at-door registration has its own rule, see find_at_door_offer
                is_orderable=(
                    at_door is not None and offer.id == at_door.id
                    if offer.channel == TicketChannel.AT_DOOR
                    else is_orderable(offer, now)
                ),
                display_price=str(price.quantize(CENT, rounding=ROUND_HALF_UP)),
                price_label=format_price(price, locale),
                max_quantity=max_quantity(offer),
            )
        )
    return OfferSummary(
        has_orderable_offers=has_orderable_offers(offers),
        min_display_price=min_display_price(offers, locale),
        at_door_offer_id=at_door.id if at_door else None,
        offers=states,
    )
