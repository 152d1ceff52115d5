"""
Defense Session Service
"""

from sqlalchemy.ext.asyncio import AsyncSession
import logging

from defensehub.core.exceptions import DefenseSessionNotFoundError, RubricNotFoundError
from defensehub.models.defense_session import DefenseSession
from defensehub.models.rubric import Rubric
from defensehub.schemas.session import DefenseSessionCreate

logger = logging.getLogger(__name__)

RUBRIC_SLOTS = (
    "council_graduation_rubric_id",
    "council_internship_rubric_id",
    "supervisor_graduation_rubric_id",
    "company_internship_rubric_id",
)


class DefenseSessionService:

    async def create_session(self, db: AsyncSession, data: DefenseSessionCreate) -> DefenseSession:
        for slot in RUBRIC_SLOTS:
            rubric_id = getattr(data, slot)
            if rubric_id and await db.get(Rubric, rubric_id) is None:
                raise RubricNotFoundError(rubric_id)

        session = DefenseSession(**data.model_dump())
        db.add(session)
        await db.commit()
        await db.refresh(session)

        logger.info(f"Defense session created: {session.name} ({session.session_type.value}, {session.id})")
        return session

    async def get_session(self, db: AsyncSession, session_id: str) -> DefenseSession:
        session = await db.get(DefenseSession, session_id)
        if session is None:
            raise DefenseSessionNotFoundError(session_id)
        return session


session_service = DefenseSessionService()
