from datetime import UTC, datetime

import pytest

from clinic_scheduler.core.errors import InvalidDateTime
from clinic_scheduler.services.normalizers import (
    PtBrBirthdateNormalizer,
    PtBrDateTimeNormalizer,
    fold,
    prepare_for_dateparser,
    validate_date_time,
)
from conftest import NOW, fixed_clock

SP = "America/Sao_Paulo"


@pytest.fixture
def normalizer():
    return PtBrDateTimeNormalizer(fixed_clock())


def test_fold():
    assert fold("  Amanhã  às  14h ") == "amanha as 14h"


@pytest.mark.parametrize(
    "text,prepared",
    [
        ("Amanhã às 14h", "amanhã 14:00"),
        ("amanhã às 9h30", "amanhã 9:30"),
        ("04/09/2025 às 7 da noite", "04/09/2025 19:00"),
        ("dia 4 às 19:05", "4 19:05"),
        ("18 horas do dia 25 de setembro de 2025", "25 de setembro de 2025 18:00"),
        ("na quarta, às 10 da manhã", "quarta 10:00"),
    ],
)
def test_prepare_for_dateparser(text, prepared):
    assert prepare_for_dateparser(text) == prepared


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text,iso",
    [
        ("04/09/2025 19:05", datetime(2025, 9, 4, 22, 5, tzinfo=UTC)),
        ("04/09 às 14h", datetime(2025, 9, 4, 17, 0, tzinfo=UTC)),
        ("8 de outubro de 2025 às 14:00", datetime(2025, 10, 8, 17, 0, tzinfo=UTC)),
        ("18 horas do dia 25 de setembro de 2025", datetime(2025, 9, 25, 21, 0, tzinfo=UTC)),
        ("2025-09-04 10:30", datetime(2025, 9, 4, 13, 30, tzinfo=UTC)),
        ("2025-09-04T19:05:00-03:00", datetime(2025, 9, 4, 22, 5, tzinfo=UTC)),
        ("amanhã às 9h30", datetime(2025, 9, 2, 12, 30, tzinfo=UTC)),
        ("04/09/2025 às 7 da noite", datetime(2025, 9, 4, 22, 0, tzinfo=UTC)),
    ],
)
async def test_normalize_with_time(normalizer, text, iso):
    result = await normalizer.normalize(text, SP)
    assert result is not None
    assert result.has_time
    assert result.iso_utc == iso


@pytest.mark.asyncio
async def test_normalize_day_only(normalizer):
    result = await normalizer.normalize("quarta", SP)
    assert result.has_time is False
    assert result.ymd_local == "2025-09-03"
    assert result.iso_utc == datetime(2025, 9, 3, 3, 0, tzinfo=UTC)


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "quando der"])
async def test_normalize_rejects_garbage(normalizer, text):
    assert await normalizer.normalize(text, SP) is None


@pytest.mark.asyncio
async def test_validate_rejects_yesterday(normalizer):
    with pytest.raises(InvalidDateTime):
        await validate_date_time(normalizer, "ontem", SP, NOW)


@pytest.mark.asyncio
async def test_validate_accepts_today_without_time(normalizer):
    when = await validate_date_time(normalizer, "hoje", SP, NOW)
    assert when.has_time is False
    assert when.ymd_local == "2025-09-01"


@pytest.mark.asyncio
async def test_validate_rejects_earlier_today_with_time(normalizer):
    # NOW is 09:00 local
    with pytest.raises(InvalidDateTime):
        await validate_date_time(normalizer, "hoje às 8h", SP, NOW)
    when = await validate_date_time(normalizer, "hoje às 10h", SP, NOW)
    assert when.has_time


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text,expected",
    [
        ("15/03/1990", "1990-03-15"),
        ("1990-03-15", "1990-03-15"),
        ("15 de março de 1990", "1990-03-15"),
        ("15/03", None),
        ("15/03/2030", None),
        ("01/01/1850", None),
        ("ontem", None),
    ],
)
async def test_birthdate(text, expected):
    assert await PtBrBirthdateNormalizer(fixed_clock(), SP).normalize(text) == expected
