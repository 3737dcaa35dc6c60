from datetime import datetime
from typing import Optional

import pytz

from settings import DEFAULT_LOCALE, TZ

SUPPORTED_LOCALES = ("es", "en")


def _get_timezone(timezone_str: str):
    try:
        return pytz.timezone(timezone_str)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def get_current_time_in_timezone(timezone_str: str = TZ) -> datetime:
    """Get Current Time in Specified Timezone

    Args:
        timezone_str (str): Timezone string (e.g., "Europe/Madrid")

    Returns:
        datetime: Current datetime in the specified timezone
    """
    return datetime.now(_get_timezone(timezone_str))


def ensure_aware(value: Optional[datetime], timezone_str: str = TZ) -> Optional[datetime]:
    """Backend timestamps without offset are wall-clock times in TZ."""
    if value is None:
        return None
    if value.tzinfo is None:
        return _get_timezone(timezone_str).localize(value)
    return value


def resolve_locale(
    lang: Optional[str] = None, accept_language: Optional[str] = None
) -> str:
    """Pick the response locale from ?lang= first, then Accept-Language.

    Example:
        >>> resolve_locale(None, "en-GB,en;q=0.9")
        'en'
    """
    for candidate in (lang, accept_language):
        if not candidate:
            continue
        primary = candidate.split(",")[0].split(";")[0].strip().lower()
        if primary.startswith("en"):
            return "en"
        if primary.startswith("es"):
            return "es"
    return DEFAULT_LOCALE if DEFAULT_LOCALE in SUPPORTED_LOCALES else "es"


def localized(locale: str, text_es: Optional[str], text_en: Optional[str]) -> str:
    if locale == "en" and text_en:
        return text_en
    return text_es or text_en or ""
