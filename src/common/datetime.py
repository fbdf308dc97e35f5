"""Datetime utilities."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TZINFOS = {
    "EST": timezone(timedelta(hours=-5)),
    "EDT": timezone(timedelta(hours=-4)),
    "CST": timezone(timedelta(hours=-6)),
    "CDT": timezone(timedelta(hours=-5)),
    "MST": timezone(timedelta(hours=-7)),
    "MDT": timezone(timedelta(hours=-6)),
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
    "GMT": timezone.utc,
    "UTC": timezone.utc,
    "BST": timezone(timedelta(hours=1)),
    "CET": timezone(timedelta(hours=1)),
    "CEST": timezone(timedelta(hours=2)),
    "BRT": timezone(timedelta(hours=-3)),
}

# Leading weekday token such as "Qui," or "Mié.," in localized feed dates.
_WEEKDAY_PREFIX = re.compile(r"^\s*[^\W\d_]+\.?,\s*")


class _PortugueseInfo(date_parser.parserinfo):
    JUMP = date_parser.parserinfo.JUMP + ["de", "às"]
    MONTHS = [
        ("jan", "janeiro"),
        ("fev", "fevereiro"),
        ("mar", "março", "marco"),
        ("abr", "abril"),
        ("mai", "maio"),
        ("jun", "junho"),
        ("jul", "julho"),
        ("ago", "agosto"),
        ("set", "setembro"),
        ("out", "outubro"),
        ("nov", "novembro"),
        ("dez", "dezembro"),
    ]


class _SpanishInfo(date_parser.parserinfo):
    JUMP = date_parser.parserinfo.JUMP + ["de", "del"]
    MONTHS = [
        ("ene", "enero"),
        ("feb", "febrero"),
        ("mar", "marzo"),
        ("abr", "abril"),
        ("may", "mayo"),
        ("jun", "junio"),
        ("jul", "julio"),
        ("ago", "agosto"),
        ("sep", "sept", "septiembre", "set", "setiembre"),
        ("oct", "octubre"),
        ("nov", "noviembre"),
        ("dic", "diciembre"),
    ]


class _FrenchInfo(date_parser.parserinfo):
    MONTHS = [
        ("jan", "janv", "janvier"),
        ("fév", "fev", "févr", "fevr", "février", "fevrier"),
        ("mars",),
        ("avr", "avril"),
        ("mai",),
        ("juin",),
        ("juil", "juillet"),
        ("aoû", "aou", "août", "aout"),
        ("sep", "sept", "septembre"),
        ("oct", "octobre"),
        ("nov", "novembre"),
        ("déc", "dec", "décembre", "decembre"),
    ]


class _GermanInfo(date_parser.parserinfo):
    MONTHS = [
        ("jan", "januar", "jänner"),
        ("feb", "februar"),
        ("mär", "mrz", "märz", "maerz"),
        ("apr", "april"),
        ("mai",),
        ("jun", "juni"),
        ("jul", "juli"),
        ("aug", "august"),
        ("sep", "sept", "september"),
        ("okt", "oktober"),
        ("nov", "november"),
        ("dez", "dezember"),
    ]


class _ItalianInfo(date_parser.parserinfo):
    MONTHS = [
        ("gen", "gennaio"),
        ("feb", "febbraio"),
        ("mar", "marzo"),
        ("apr", "aprile"),
        ("mag", "maggio"),
        ("giu", "giugno"),
        ("lug", "luglio"),
        ("ago", "agosto"),
        ("set", "settembre"),
        ("ott", "ottobre"),
        ("nov", "novembre"),
        ("dic", "dicembre"),
    ]


LOCALE_PARSERINFOS: dict[str, date_parser.parserinfo] = {
    "en": date_parser.parserinfo(),
    "pt-BR": _PortugueseInfo(),
    "es": _SpanishInfo(),
    "fr": _FrenchInfo(),
    "de": _GermanInfo(dayfirst=True),
    "it": _ItalianInfo(),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_date(value: str | None) -> datetime:
    """Parse a feed date string, trying each supported locale in turn.

    Feeds publish dates in RFC 822, ISO 8601 and a handful of localized
    variants (e.g. "Qui, 17 Abr 2025 10:15:04 -0300"). The default parser
    is tried first, then every locale month table with the leading weekday
    removed.

    Args:
        value: Raw date string from a feed or page.

    Returns:
        Timezone-aware datetime. Unparseable input yields the current time.
    """
    if not value or not value.strip():
        return utc_now()

    text = value.strip()
    try:
        return _ensure_aware(date_parser.parse(text, tzinfos=TZINFOS))
    except (ValueError, OverflowError):
        pass

    stripped = _WEEKDAY_PREFIX.sub("", text)
    for locale, info in LOCALE_PARSERINFOS.items():
        try:
            return _ensure_aware(date_parser.parse(stripped, parserinfo=info, tzinfos=TZINFOS))
        except (ValueError, OverflowError):
            continue

    logger.warning("Unparseable date %r, using current time", value)
    return utc_now()


def parse_optional_date(value: str | None) -> datetime | None:
    """Like parse_date, but returns None instead of now for missing values."""
    if not value or not value.strip():
        return None
    return parse_date(value)


def parse_datetime(value) -> datetime:
    """Parse datetime from ISO string or return as-is if already datetime."""
    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_optional_datetime(value) -> datetime | None:
    if value is None:
        return None
    return parse_datetime(value)


def to_epoch_ms(dt: datetime) -> int:
    return int(_ensure_aware(dt).timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def now_ms() -> int:
    return to_epoch_ms(utc_now())
