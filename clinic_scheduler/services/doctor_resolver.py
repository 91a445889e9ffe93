"""Fuzzy doctor-name resolution.

Patients type partial names, nicknames and honorifics ("Dra. Ana", "doutor
Lucas"). The resolver ranks catalog doctors by similarity and only picks one on
its own when the match is unique or clearly dominant; otherwise the caller
must ask the patient which doctor they meant.
"""
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from rapidfuzz import fuzz
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.services.catalog_service import list_doctors
from clinic_scheduler.services.normalizers import fold

logger = logging.getLogger(__name__)

_HONORIFICS = re.compile(r"^(?:(?:dr|dra|doutor|doutora|doc)\.?\s+)+")


@dataclass(frozen=True)
class DoctorCandidate:
    id: int
    name: str
    specialty_id: int | None
    score: float


@dataclass
class DoctorResolution:
    candidates: list[DoctorCandidate] = field(default_factory=list)
    has_more: bool = False
    resolved_id: int | None = None
    resolved_by: str | None = None  # "unique" | "fuzzy"
    confidence: float | None = None
    needs_query: bool = False

    @property
    def ambiguous(self) -> bool:
        return self.resolved_id is None and len(self.candidates) > 1


def fold_name(name: str) -> str:
    return _HONORIFICS.sub("", fold(name)).strip()


def similarity(query: str, name: str) -> float:
    """Best of an accent-insensitive token score and a raw (case-folded) whole-string score, in [0, 1].

    Both compare whole words, so a short query never matches inside another
    name ("Ana" does not hit "Mariana").
    """
    normalized = fuzz.token_set_ratio(fold_name(query), fold_name(name)) / 100
    raw = fuzz.ratio(query.strip().lower(), name.lower()) / 100
    return max(normalized, raw)


def decide(
    candidates: Sequence[DoctorCandidate], has_more: bool, config: ClinicConfig
) -> tuple[int | None, str | None, float | None]:
    """Auto-resolution policy: (resolved_id, resolved_by, confidence)."""
    if len(candidates) == 1 and not has_more:
        return candidates[0].id, "unique", 1.0
    if not candidates:
        return None, None, None
    top = sorted(candidates, key=lambda c: c.score, reverse=True)[:2]
    best = top[0]
    margin_ok = len(top) == 1 or best.score - top[1].score >= config.doctor_min_margin
    if best.score >= config.doctor_high_confidence and margin_ok:
        return best.id, "fuzzy", round(best.score, 3)
    return None, None, None


class DoctorResolver:
    def __init__(self, session: AsyncSession, config: ClinicConfig):
        self.session = session
        self.config = config

    async def similarity_search(self, query: str) -> list[DoctorCandidate]:
        """Every catalog doctor scoring at least ``doctor_min_similarity``, best first."""
        scored = []
        for doctor in await list_doctors(self.session):
            score = similarity(query, doctor.name)
            if score >= self.config.doctor_min_similarity:
                scored.append(DoctorCandidate(doctor.id, doctor.name, doctor.specialty_id, score))
        scored.sort(key=lambda c: (-c.score, c.name))
        return scored

    async def resolve(self, query: str | None, page_size: int | None = None) -> DoctorResolution:
        if not query or not query.strip():
            return DoctorResolution(needs_query=True)
        page_size = min(page_size or self.config.doctors_default_limit, self.config.doctors_max_limit)

        ranked = await self.similarity_search(query)
        page = ranked[:page_size]
        has_more = len(ranked) > page_size
        resolved_id, resolved_by, confidence = decide(page, has_more, self.config)
        if resolved_id is not None:
            logger.info("Doctor %r resolved to id=%s (%s, %.3f)", query, resolved_id, resolved_by, confidence)
        elif page:
            logger.info("Doctor %r ambiguous among %d candidate(s)", query, len(page))
        return DoctorResolution(
            candidates=page,
            has_more=has_more,
            resolved_id=resolved_id,
            resolved_by=resolved_by,
            confidence=confidence,
        )
