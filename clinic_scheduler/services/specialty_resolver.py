import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.core.errors import StoreFailure
from clinic_scheduler.models.catalog import Specialty
from clinic_scheduler.services.catalog_service import list_specialties
from clinic_scheduler.services.normalizers import fold

logger = logging.getLogger(__name__)

# Practitioner titles patients use -> specialty noun in the catalog (folded)
SPECIALTY_ALIASES = {
    "cardiologista": "cardiologia",
    "dermatologista": "dermatologia",
    "pediatra": "pediatria",
    "ortopedista": "ortopedia",
    "ginecologista": "ginecologia",
    "obstetra": "obstetricia",
    "oftalmologista": "oftalmologia",
    "oculista": "oftalmologia",
    "neurologista": "neurologia",
    "psiquiatra": "psiquiatria",
    "psicologo": "psicologia",
    "psicologa": "psicologia",
    "urologista": "urologia",
    "endocrinologista": "endocrinologia",
    "endocrino": "endocrinologia",
    "otorrino": "otorrinolaringologia",
    "otorrinolaringologista": "otorrinolaringologia",
    "gastro": "gastroenterologia",
    "gastroenterologista": "gastroenterologia",
    "clinico geral": "clinica geral",
    "clinico": "clinica geral",
    "nutricionista": "nutricao",
    "fisioterapeuta": "fisioterapia",
}

# Applied in order, first hit wins
SUFFIX_RULES = (
    ("logistas", "logia"),
    ("logista", "logia"),
    ("logos", "logia"),
    ("logo", "logia"),
    ("logas", "logia"),
    ("loga", "logia"),
    ("iatras", "iatria"),
    ("iatra", "iatria"),
    ("istas", "ia"),
    ("ista", "ia"),
)


def normalize_specialty_term(term: str) -> str:
    folded = fold(term)
    if folded in SPECIALTY_ALIASES:
        return SPECIALTY_ALIASES[folded]
    for suffix, replacement in SUFFIX_RULES:
        if folded.endswith(suffix):
            return folded[: -len(suffix)] + replacement
    return folded


class SpecialtyResolver:
    def __init__(self, session: AsyncSession, config: ClinicConfig):
        self.session = session
        self.config = config

    async def resolve_ids(self, name_or_id: int | str | None) -> list[int]:
        """Catalog ids for a specialty id or free-text name; [] when nothing matches."""
        if name_or_id is None:
            return []
        if isinstance(name_or_id, int):
            return [name_or_id]
        term = str(name_or_id).strip()
        if not term:
            return []

        try:
            result = await self.session.execute(
                select(Specialty.id).where(Specialty.name.icontains(term, autoescape=True)).order_by(Specialty.id)
            )
        except SQLAlchemyError as e:
            raise StoreFailure("Erro ao buscar especialidades.", detail=str(e)) from e
        ids = list(result.scalars().all())
        if ids:
            return ids

        normalized = normalize_specialty_term(term)
        if not normalized:
            return []
        ids = sorted(s.id for s in await list_specialties(self.session) if normalized in fold(s.name))
        logger.debug("Specialty %r resolved via %r -> %s", term, normalized, ids)
        return ids
