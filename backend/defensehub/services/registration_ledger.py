"""
Registration Ledger - one record per (student, defense session)

Records are created administratively before topic allocation opens. The
ledger only owns identity and the reporting flags; topic fields belong to the
allocation engine and submission statuses to the status tracks.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from typing import List
import logging

from defensehub.core.exceptions import (
    DefenseSessionNotFoundError,
    DuplicateRegistrationError,
    RegistrationNotFoundError,
)
from defensehub.core.types import utcnow
from defensehub.models.defense_session import DefenseSession
from defensehub.models.evaluation import EvaluationType
from defensehub.models.registration import Registration
from defensehub.schemas.registration import RegistrationCreate, ReportingStatusUpdate

logger = logging.getLogger(__name__)


class RegistrationLedger:

    async def create_registration(self, db: AsyncSession, data: RegistrationCreate) -> Registration:
        """Create a student's registration; one per session"""
        session = await db.get(DefenseSession, data.session_id)
        if session is None:
            raise DefenseSessionNotFoundError(data.session_id)

        result = await db.execute(
            select(Registration.id).where(
                Registration.session_id == data.session_id,
                Registration.student_doc_id == data.student_doc_id,
            )
        )
        if result.first() is not None:
            raise DuplicateRegistrationError(data.session_id, data.student_doc_id)

        registration = Registration(**data.model_dump())
        db.add(registration)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race against a concurrent create for the same student
            await db.rollback()
            raise DuplicateRegistrationError(data.session_id, data.student_doc_id)
        await db.refresh(registration)

        logger.info(f"Registration created: student {registration.student_id} in session {registration.session_id}")
        return registration

    async def get_registration(self, db: AsyncSession, registration_id: str) -> Registration:
        registration = await db.get(Registration, registration_id)
        if registration is None:
            raise RegistrationNotFoundError(registration_id)
        return registration

    async def list_registrations(self, db: AsyncSession, session_id: str) -> List[Registration]:
        """All registrations of a session ordered by student number"""
        result = await db.execute(
            select(Registration)
            .where(Registration.session_id == session_id)
            .order_by(Registration.student_id, Registration.id)
        )
        return list(result.scalars().all())

    async def set_reporting_status(
        self,
        db: AsyncSession,
        registration_id: str,
        update: ReportingStatusUpdate,
    ) -> Registration:
        """Withdraw, exempt or restore a student for graduation or internship reporting"""
        registration = await self.get_registration(db, registration_id)

        if update.report_type == EvaluationType.graduation:
            registration.graduation_status = update.status
            registration.graduation_status_note = update.note
        else:
            registration.internship_status = update.status
            registration.internship_status_note = update.note
        registration.updated_at = utcnow()

        await db.commit()
        await db.refresh(registration)

        logger.info(
            f"Reporting status for {registration.student_id} ({update.report_type.value}) "
            f"set to {update.status.value}"
        )
        return registration

    async def assign_internship_supervisor(
        self,
        db: AsyncSession,
        registration_ids: List[str],
        supervisor_id: str,
        supervisor_name: str,
    ) -> List[Registration]:
        """
        Set the internship (company) supervisor on existing registrations.

        All or nothing: an unknown id fails the whole batch before anything
        is written. Company-source outcome reports select evaluations by this
        supervisor.
        """
        unique_ids = list(dict.fromkeys(registration_ids))
        result = await db.execute(
            select(Registration)
            .where(Registration.id.in_(unique_ids))
            .order_by(Registration.student_id, Registration.id)
        )
        registrations = list(result.scalars().all())

        found = {r.id for r in registrations}
        for registration_id in unique_ids:
            if registration_id not in found:
                raise RegistrationNotFoundError(registration_id)

        now = utcnow()
        for registration in registrations:
            registration.internship_supervisor_id = supervisor_id
            registration.internship_supervisor_name = supervisor_name
            registration.updated_at = now

        await db.commit()

        logger.info(
            f"Internship supervisor {supervisor_name} ({supervisor_id}) assigned to "
            f"{len(registrations)} registrations"
        )
        return registrations


registration_ledger = RegistrationLedger()
