from unittest import TestCase

from core.exceptions import FormValidationError
from schemas.ticket import AttendeeRecord, TicketTypeOffer
from validators.attendee import validate_attendee, validate_batch


def make_offer(**kwargs) -> TicketTypeOffer:
    return TicketTypeOffer.model_validate(
        {"id": 10, "ticket_type": "EN_PUERTA", "base_price": "15", **kwargs}
    )


def make_attendee(**kwargs) -> AttendeeRecord:
    data = {"full_name": "Ana López", "email": "ana@example.com"}
    data.update(kwargs)
    return AttendeeRecord.model_validate(data)


class TestValidateAttendee(TestCase):
    def test_valid_attendee_without_extra_requirements(self):
        result = validate_attendee(make_attendee(), make_offer())
        self.assertTrue(result.is_valid)
        self.assertIsNone(result.field)

    def test_blank_name_fails(self):
        result = validate_attendee(make_attendee(full_name="   "), make_offer())
        self.assertFalse(result.is_valid)
        self.assertEqual(result.field, "full_name")

    def test_name_checked_before_email(self):
        result = validate_attendee(AttendeeRecord(), make_offer())
        self.assertEqual(result.field, "full_name")

    def test_email_without_at_sign_fails(self):
        result = validate_attendee(make_attendee(email="ana.example.com"), make_offer())
        self.assertFalse(result.is_valid)
        self.assertEqual(result.field, "email")

    def test_optional_fields_ignored_when_not_required(self):
        attendee = make_attendee(phone="", id_document=None, city=" ")
        self.assertTrue(validate_attendee(attendee, make_offer()).is_valid)

    def test_required_document_message_names_position(self):
        offer = make_offer(require_document=True)
        result = validate_attendee(make_attendee(), offer, position=2, locale="en")
        self.assertFalse(result.is_valid)
        self.assertEqual(result.field, "id_document")
        self.assertEqual(result.attendee_position, 2)
        self.assertEqual(result.message, "ID document required for attendee 2")

    def test_spanish_message(self):
        offer = make_offer(require_city=True)
        result = validate_attendee(make_attendee(), offer, position=3, locale="es")
        self.assertEqual(result.message, "Ciudad requerida para el invitado 3")

    def test_first_failure_only_in_field_order(self):
        offer = make_offer(
            require_phone=True,
            require_gender=True,
            require_role=True,
            require_document=True,
            require_country=True,
            require_city=True,
        )
        result = validate_attendee(make_attendee(), offer)
        self.assertEqual(result.field, "phone")

        result = validate_attendee(make_attendee(phone="600000000", gender="F"), offer)
        self.assertEqual(result.field, "role")

        complete = make_attendee(
            phone="600000000",
            gender="F",
            role="FOLLOWER",
            id_document="12345678Z",
            country="España",
            city="Madrid",
        )
        self.assertTrue(validate_attendee(complete, offer).is_valid)

    def test_blank_gender_counts_as_missing(self):
        offer = make_offer(require_gender=True)
        result = validate_attendee(make_attendee(gender=""), offer)
        self.assertEqual(result.field, "gender")

    def test_raise_for_error(self):
        offer = make_offer(require_phone=True)
        result = validate_attendee(make_attendee(), offer, position=4)
        with self.assertRaises(FormValidationError) as ctx:
            result.raise_for_error()
        self.assertEqual(ctx.exception.field, "phone")
        self.assertEqual(ctx.exception.attendee_position, 4)

        validate_attendee(make_attendee(phone="600"), offer).raise_for_error()


class TestValidateBatch(TestCase):
    def test_reports_first_invalid_attendee(self):
        offer = make_offer(require_document=True)
        attendees = [
            make_attendee(id_document="X1"),
            make_attendee(full_name="Luis", id_document=""),
            make_attendee(full_name="", id_document=""),
        ]
        result = validate_batch(attendees, offer, locale="en")
        self.assertFalse(result.is_valid)
        self.assertEqual(result.attendee_position, 2)
        self.assertEqual(result.field, "id_document")
        self.assertEqual(result.message, "ID document required for attendee 2")

    def test_all_valid(self):
        attendees = [make_attendee(), make_attendee(full_name="Luis", email="l@x.es")]
        self.assertTrue(validate_batch(attendees, make_offer()).is_valid)
