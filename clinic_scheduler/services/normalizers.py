"""Free-text date normalizers.

The coordinator only depends on the two protocols below, so a hosted
text-understanding model can be plugged in. The default implementations run
``dateparser`` in Portuguese over the forms patients actually type
("04/09/2025 19:05", "amanhã às 14h", "8 de outubro de 2025 às 14:00",
"terça", "dia 4 às 7 da noite") without any network call.
"""
import logging
import re
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo

import dateparser
from dateparser.date import DateDataParser

from clinic_scheduler.core.errors import InvalidDateFormat, InvalidDateTime
from clinic_scheduler.core.timezones import civil_to_utc, local_date, local_ymd, utc_now

logger = logging.getLogger(__name__)

LANGUAGES = ["pt"]


@dataclass(frozen=True)
class NormalizedDateTime:
    iso_utc: datetime
    has_time: bool
    ymd_local: str


class DateTimeNormalizer(Protocol):
    async def normalize(self, text: str, tz: str) -> NormalizedDateTime | None: ...


class BirthdateNormalizer(Protocol):
    async def normalize(self, text: str) -> str | None: ...


_ISO = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[t ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:z|[+-]\d{2}:\d{2})?)?$")
_CLOCK = re.compile(r"\b\d{1,2}:\d{2}\b")
_YEAR = re.compile(r"\b\d{4}\b")


def fold(text: str) -> str:
    """Lower-case, strip diacritics and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", str(text or ""))
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return re.sub(r"\s+", " ", stripped).strip().lower()


def _afternoon(match: re.Match) -> str:
    hour = int(match.group(1))
    return f"{hour + 12 if hour < 12 else hour}:00"


def prepare_for_dateparser(text: str) -> str:
    """Rewrite pt-BR time phrasings into ``H:MM`` and drop filler words."""
    s = re.sub(r"\s+", " ", str(text or "")).strip().lower()
    s = re.sub(r"(\d{1,2})\s*(?::00\s*)?(?:h\s*)?da (?:noite|tarde)", _afternoon, s)
    s = re.sub(r"(\d{1,2})\s*(?:h\s*)?da manhã", r"\1:00", s)
    s = re.sub(r"(\d{1,2})h(\d{2})\b", r"\1:\2", s)
    s = re.sub(r"(\d{1,2})\s*(?:hs|horas?|h)\b", r"\1:00", s)
    s = re.sub(r"\b(?:às|ás|as|a|para as|por volta das)\s+(?=\d)", "", s)
    s = re.sub(r"\b(?:(?:no|do|para o)\s+)?dia\s+", "", s)
    s = re.sub(r"^(?:na|no|nesta|neste)\s+", "", s)
    s = s.replace(",", " ")
    # "18:00 25 de setembro de 2025" -> "25 de setembro de 2025 18:00"
    s = re.sub(r"^(\d{1,2}:\d{2})\s+(.+)$", r"\2 \1", s)
    return re.sub(r"\s+", " ", s).strip()


def _from_iso(text: str, tz: str) -> NormalizedDateTime | None:
    s = text.strip().upper().replace("Z", "+00:00")
    try:
        if len(s) == 10:
            d = date.fromisoformat(s)
            return NormalizedDateTime(
                iso_utc=civil_to_utc(tz, d.year, d.month, d.day), has_time=False, ymd_local=d.isoformat()
            )
        parsed = datetime.fromisoformat(s)
    except (ValueError, InvalidDateFormat):
        return None
    if parsed.tzinfo is not None:
        instant = parsed.astimezone(UTC)
    else:
        instant = civil_to_utc(tz, parsed.year, parsed.month, parsed.day, parsed.hour, parsed.minute)
    return NormalizedDateTime(iso_utc=instant, has_time=True, ymd_local=local_ymd(instant, tz))


class PtBrDateTimeNormalizer:
    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    def _parser(self, tz: str) -> DateDataParser:
        now_local = self._clock().astimezone(ZoneInfo(tz))
        return DateDataParser(
            languages=LANGUAGES,
            settings={
                "PREFER_DATES_FROM": "future",
                "RELATIVE_BASE": now_local.replace(tzinfo=None),  # dateparser expects naive datetime
                "TIMEZONE": tz,
                "RETURN_AS_TIMEZONE_AWARE": True,
                "RETURN_TIME_AS_PERIOD": True,
                "DATE_ORDER": "DMY",
            },
        )

    async def normalize(self, text: str, tz: str) -> NormalizedDateTime | None:
        raw = str(text or "").strip()
        if not raw:
            return None
        if _ISO.match(raw.lower()):
            return _from_iso(raw, tz)

        prepared = prepare_for_dateparser(raw)
        data = self._parser(tz).get_date_data(prepared)
        if data is None or data.date_obj is None:
            logger.debug("Date text not understood: %r (as %r)", text, prepared)
            return None

        local = data.date_obj.astimezone(ZoneInfo(tz))
        has_time = data.period == "time" or _CLOCK.search(prepared) is not None
        try:
            if has_time:
                instant = civil_to_utc(tz, local.year, local.month, local.day, local.hour, local.minute)
            else:
                instant = civil_to_utc(tz, local.year, local.month, local.day)
        except InvalidDateFormat:
            return None
        logger.debug("Date text %r -> %s (has_time=%s)", text, instant.isoformat(), has_time)
        return NormalizedDateTime(iso_utc=instant, has_time=has_time, ymd_local=local.date().isoformat())


class PtBrBirthdateNormalizer:
    def __init__(self, clock: Callable[[], datetime] = utc_now, tz: str = "America/Sao_Paulo"):
        self._clock = clock
        self._tz = tz

    async def normalize(self, text: str) -> str | None:
        raw = str(text or "").strip()
        # a birthdate without a year is not a birthdate
        if not _YEAR.search(raw):
            return None
        today = local_date(self._clock(), self._tz)
        if _ISO.match(raw) and len(raw) == 10:
            try:
                born = date.fromisoformat(raw)
            except ValueError:
                return None
        else:
            parsed = dateparser.parse(
                prepare_for_dateparser(raw),
                languages=LANGUAGES,
                settings={
                    "PREFER_DATES_FROM": "past",
                    "DATE_ORDER": "DMY",
                    "REQUIRE_PARTS": ["day", "month", "year"],
                },
            )
            if parsed is None:
                return None
            born = parsed.date()
        if born.year < 1900 or born > today:
            return None
        return born.isoformat()


async def validate_date_time(
    normalizer: DateTimeNormalizer, text: str, tz: str, now: datetime | None = None
) -> NormalizedDateTime:
    """Normalize a patient's date/time and reject the past.

    With a time the instant must be strictly in the future; a bare day is
    accepted from the clinic's civil today onwards.
    """
    now = now or utc_now()
    when = await normalizer.normalize(text, tz)
    if when is None:
        raise InvalidDateTime()
    if when.has_time:
        if when.iso_utc <= now:
            raise InvalidDateTime("A data/hora deve ser no futuro. Informe um horário válido.")
    elif when.ymd_local < local_ymd(now, tz):
        raise InvalidDateTime("A data informada já passou. Informe uma data a partir de hoje.")
    return when
