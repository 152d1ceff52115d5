"""
Rubric Store - versioned scoring criteria and their outcome tags
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Dict, Iterable, Tuple
import logging

from defensehub.core.exceptions import RubricNotFoundError
from defensehub.models.rubric import Rubric, RubricCriterion
from defensehub.schemas.rubric import RubricCreate, CriteriaReplace

logger = logging.getLogger(__name__)


def outcome_mapping(criteria: Iterable[RubricCriterion]) -> Tuple[Dict[str, str], Dict[str, str]]:
    """
    Build ``criterion_id -> CLO`` and ``CLO -> PI`` for outcome reports.

    Criteria without a CLO get no column. A CLO takes the first PI declared for
    it in rubric order; a CLO that no criterion ties to a PI is grouped under "".
    """
    criterion_to_clo: Dict[str, str] = {}
    clo_to_pi: Dict[str, str] = {}

    for criterion in criteria:
        clo = (criterion.clo or "").strip()
        pi = (criterion.pi or "").strip()
        if not clo:
            continue
        criterion_to_clo[criterion.id] = clo
        if pi and not clo_to_pi.get(clo):
            clo_to_pi[clo] = pi
        else:
            clo_to_pi.setdefault(clo, "")

    return criterion_to_clo, clo_to_pi


class RubricStore:

    async def create_rubric(self, db: AsyncSession, data: RubricCreate) -> Rubric:
        rubric = Rubric(name=data.name, description=data.description, version=1)
        rubric.criteria = [
            RubricCriterion(position=index, **criterion.model_dump())
            for index, criterion in enumerate(data.criteria)
        ]
        db.add(rubric)
        await db.commit()

        logger.info(f"Rubric created: {rubric.name} with {len(data.criteria)} criteria")
        return await self.get_rubric(db, rubric.id)

    async def get_rubric(self, db: AsyncSession, rubric_id: str) -> Rubric:
        result = await db.execute(
            select(Rubric)
            .where(Rubric.id == rubric_id)
            .execution_options(populate_existing=True)
        )
        rubric = result.scalar_one_or_none()
        if rubric is None:
            raise RubricNotFoundError(rubric_id)
        return rubric

    async def replace_criteria(self, db: AsyncSession, rubric_id: str, data: CriteriaReplace) -> Rubric:
        """
        Replace the criteria list and bump the rubric version.

        Criteria are matched by id and updated in place, so stored evaluation
        scores keep pointing at the same criterion.
        """
        rubric = await self.get_rubric(db, rubric_id)
        existing = {c.id: c for c in rubric.criteria}

        updated = []
        for index, incoming in enumerate(data.criteria):
            criterion = existing.get(incoming.id)
            if criterion is None:
                criterion = RubricCriterion(id=incoming.id)
            for name, value in incoming.model_dump(exclude={"id"}).items():
                setattr(criterion, name, value)
            criterion.position = index
            updated.append(criterion)

        removed = set(existing) - {c.id for c in updated}
        rubric.criteria = updated
        rubric.version = rubric.version + 1
        await db.commit()

        logger.info(
            f"Rubric {rubric_id} criteria replaced (v{rubric.version}, "
            f"{len(updated)} criteria, {len(removed)} removed)"
        )
        return await self.get_rubric(db, rubric_id)


rubric_store = RubricStore()
