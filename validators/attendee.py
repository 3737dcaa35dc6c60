from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from core.exceptions import FormValidationError
from schemas.ticket import AttendeeRecord, TicketTypeOffer

MESSAGES = {
    "full_name": {
        "en": "Full name required for attendee {position}",
        "es": "Nombre completo requerido para el invitado {position}",
    },
    "email": {
        "en": "Valid email required for attendee {position}",
        "es": "Email válido requerido para el invitado {position}",
    },
    "phone": {
        "en": "Phone required for attendee {position}",
        "es": "Teléfono requerido para el invitado {position}",
    },
    "gender": {
        "en": "Gender required for attendee {position}",
        "es": "Género requerido para el invitado {position}",
    },
    "role": {
        "en": "Role required for attendee {position}",
        "es": "Rol requerido para el invitado {position}",
    },
    "id_document": {
        "en": "ID document required for attendee {position}",
        "es": "Documento de identidad requerido para el invitado {position}",
    },
    "country": {
        "en": "Country required for attendee {position}",
        "es": "País requerido para el invitado {position}",
    },
    "city": {
        "en": "City required for attendee {position}",
        "es": "Ciudad requerida para el invitado {position}",
    },
}


class ValidationResult(BaseModel):
    is_valid: bool
    field: Optional[str] = None
    message: Optional[str] = None
    attendee_position: Optional[int] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    def raise_for_error(self) -> None:
        if not self.is_valid:
            raise FormValidationError(
                message=self.message or "Invalid attendee data",
                field=self.field,
                attendee_position=self.attendee_position,
            )


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _valid_email(value: str) -> bool:
    # only looks for "@", the backend validates the address
    return _present(value) and "@" in value


# (field, applies to offer, passes for record), checked in this order
RULES: List[
    Tuple[
        str,
        Callable[[TicketTypeOffer], bool],
        Callable[[AttendeeRecord], bool],
    ]
] = [
    ("full_name", lambda offer: True, lambda r: _present(r.full_name)),
    ("email", lambda offer: True, lambda r: _valid_email(r.email)),
    ("phone", lambda offer: offer.require_phone, lambda r: _present(r.phone)),
    ("gender", lambda offer: offer.require_gender, lambda r: r.gender is not None),
    ("role", lambda offer: offer.require_role, lambda r: r.role is not None),
    (
        "id_document",
        lambda offer: offer.require_document,
        lambda r: _present(r.id_document),
    ),
    ("country", lambda offer: offer.require_country, lambda r: _present(r.country)),
    ("city", lambda offer: offer.require_city, lambda r: _present(r.city)),
]


def validate_attendee(
    record: AttendeeRecord,
    offer: TicketTypeOffer,
    position: int = 1,
    locale: str = "es",
) -> ValidationResult:
    """
    Validate one attendee against the required-field policy of an offer

    Args:
        record: Attendee data as entered in the form
        offer: Offer the attendee is registering for
        position: 1-based ordinal of the attendee in the form
        locale: 'es' or 'en' for the message

    Returns:
        ValidationResult: the first failing rule only, or a valid result
    """
    for field, applies, passes in RULES:
        if applies(offer) and not passes(record):
            template = MESSAGES[field].get(locale, MESSAGES[field]["es"])
            return ValidationResult(
                is_valid=False,
                field=field,
                message=template.format(position=position),
                attendee_position=position,
            )
    return ValidationResult.ok()


def validate_batch(
    records: Sequence[AttendeeRecord], offer: TicketTypeOffer, locale: str = "es"
) -> ValidationResult:
    """Fail-fast over attendees in form order."""
    for index, record in enumerate(records):
        result = validate_attendee(record, offer, position=index + 1, locale=locale)
        if not result.is_valid:
            return result
    return ValidationResult.ok()
