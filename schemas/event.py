from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from core.helper import localized

ORGANIZER_LOGO_KEYS = ("logo_url", "image_url", "avatar_url", "photo_url")


class EventPlace(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    name: str = ""
    address: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class EventOrganizer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    email: Optional[str] = None
    logo_url: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    youtube: Optional[str] = None
    website: Optional[str] = None
    whatsapp_group: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def resolve_logo_url(cls, data: Any) -> Any:
        # organizers come with the logo under any of these keys
        if isinstance(data, dict):
            logo = next((data.get(key) for key in ORGANIZER_LOGO_KEYS if data.get(key)), None)
            data = {**data, "logo_url": logo}
        return data


class EventDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    slug: str
    title_es: str = ""
    title_en: Optional[str] = None
    summary_es: Optional[str] = None
    summary_en: Optional[str] = None
    description_es: Optional[str] = None
    description_en: Optional[str] = None
    start_datetime: datetime
    end_datetime: Optional[datetime] = None
    price_amount: Optional[str] = None
    price_currency: str = "EUR"
    capacity: Optional[int] = None
    main_photo_url: Optional[str] = None
    is_recurring_weekly: bool = False
    place: Optional[EventPlace] = None
    organizers: List[EventOrganizer] = []

    @field_validator("price_amount", mode="before")
    @classmethod
    def coerce_price(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def localized_title(self, locale: str) -> str:
        return localized(locale, self.title_es, self.title_en)

    def localized_summary(self, locale: str) -> str:
        return localized(locale, self.summary_es, self.summary_en)


class EventDetailResponse(BaseModel):
    data: EventDetail
    title: str
    summary: str
