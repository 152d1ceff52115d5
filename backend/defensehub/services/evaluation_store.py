"""
Evaluation Store - rubric scores attributed to one evaluator

An evaluation is identified by (evaluator, registration, rubric). Saving again
under the same identity re-scores it; nobody can write into an evaluation that
belongs to another evaluator.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
import logging

from defensehub.core.exceptions import (
    EvaluationNotFoundError,
    EvaluationOwnershipError,
    RegistrationNotFoundError,
    ScoreValidationError,
    ValidationError,
)
from defensehub.core.types import utcnow
from defensehub.models.evaluation import Evaluation, EvaluationType
from defensehub.models.registration import Registration
from defensehub.models.rubric import Rubric
from defensehub.schemas.evaluation import EvaluationSave, EvaluationRescore, ScoreEntry
from defensehub.services.rubric_store import rubric_store

logger = logging.getLogger(__name__)


def validate_scores(rubric: Rubric, scores: List[ScoreEntry]) -> float:
    """Check every entry against the rubric and return the total"""
    criteria = {c.id: c for c in rubric.criteria}
    total = 0.0
    for entry in scores:
        criterion = criteria.get(entry.criterion_id)
        if criterion is None:
            raise ScoreValidationError(
                entry.criterion_id,
                f"Criterion '{entry.criterion_id}' is not part of rubric '{rubric.name}'",
            )
        if entry.score < 0 or entry.score > criterion.max_score:
            raise ScoreValidationError(
                entry.criterion_id,
                f"Score for '{criterion.name}' must be between 0 and {criterion.max_score:g}",
            )
        total += entry.score
    return total


class EvaluationStore:

    async def _find(
        self,
        db: AsyncSession,
        evaluator_id: str,
        registration_id: str,
        rubric_id: str,
    ) -> Optional[Evaluation]:
        result = await db.execute(
            select(Evaluation)
            .where(
                Evaluation.evaluator_id == evaluator_id,
                Evaluation.registration_id == registration_id,
                Evaluation.rubric_id == rubric_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def save_evaluation(self, db: AsyncSession, data: EvaluationSave) -> Evaluation:
        """Create the caller's evaluation or re-score it"""
        registration = await db.get(Registration, data.registration_id)
        if registration is None:
            raise RegistrationNotFoundError(data.registration_id)

        rubric = await rubric_store.get_rubric(db, data.rubric_id)
        total = validate_scores(rubric, data.scores)
        scores = [entry.model_dump() for entry in data.scores]

        evaluation = await self._find(db, data.evaluator_id, data.registration_id, data.rubric_id)
        if evaluation is None:
            evaluation = Evaluation(
                session_id=registration.session_id,
                registration_id=registration.id,
                evaluator_id=data.evaluator_id,
                rubric_id=rubric.id,
                evaluation_type=data.evaluation_type,
                scores=scores,
                total_score=total,
                comments=data.comments,
            )
            db.add(evaluation)
            try:
                await db.commit()
            except IntegrityError:
                # Same evaluator saved concurrently; fall through to a re-score
                await db.rollback()
                evaluation = await self._find(db, data.evaluator_id, data.registration_id, data.rubric_id)
                if evaluation is None:
                    raise
            else:
                await db.refresh(evaluation)
                logger.info(
                    f"Evaluation created: {evaluation.evaluator_id} -> {evaluation.registration_id} "
                    f"({evaluation.evaluation_type.value}, total {total:g})"
                )
                return evaluation

        if evaluation.evaluation_type != data.evaluation_type:
            raise ValidationError(
                f"Evaluation is of type '{evaluation.evaluation_type.value}' and cannot change type",
                field="evaluation_type",
            )
        return await self._rescore(db, evaluation, scores, total, data.comments)

    async def rescore_evaluation(
        self,
        db: AsyncSession,
        evaluation_id: str,
        data: EvaluationRescore,
    ) -> Evaluation:
        """Replace scores on an evaluation addressed by id"""
        evaluation = await self.get_evaluation(db, evaluation_id)
        if evaluation.evaluator_id != data.evaluator_id:
            raise EvaluationOwnershipError(evaluation.id, data.evaluator_id)

        rubric = await rubric_store.get_rubric(db, evaluation.rubric_id)
        total = validate_scores(rubric, data.scores)
        return await self._rescore(
            db, evaluation, [entry.model_dump() for entry in data.scores], total, data.comments
        )

    async def _rescore(self, db: AsyncSession, evaluation: Evaluation, scores, total: float, comments) -> Evaluation:
        evaluation.scores = scores
        evaluation.total_score = total
        evaluation.comments = comments
        evaluation.updated_at = utcnow()
        await db.commit()
        await db.refresh(evaluation)

        logger.info(f"Evaluation re-scored: {evaluation.id} by {evaluation.evaluator_id} (total {total:g})")
        return evaluation

    async def get_evaluation(self, db: AsyncSession, evaluation_id: str) -> Evaluation:
        evaluation = await db.get(Evaluation, evaluation_id)
        if evaluation is None:
            raise EvaluationNotFoundError(evaluation_id)
        return evaluation

    async def list_for_registration(self, db: AsyncSession, registration_id: str) -> List[Evaluation]:
        result = await db.execute(
            select(Evaluation)
            .where(Evaluation.registration_id == registration_id)
            .order_by(Evaluation.evaluated_at, Evaluation.id)
        )
        return list(result.scalars().all())

    async def list_for_session(
        self,
        db: AsyncSession,
        session_id: str,
        evaluation_type: Optional[EvaluationType] = None,
        rubric_id: Optional[str] = None,
    ) -> List[Evaluation]:
        query = select(Evaluation).where(Evaluation.session_id == session_id)
        if evaluation_type is not None:
            query = query.where(Evaluation.evaluation_type == evaluation_type)
        if rubric_id is not None:
            query = query.where(Evaluation.rubric_id == rubric_id)
        result = await db.execute(query.order_by(Evaluation.evaluated_at, Evaluation.id))
        return list(result.scalars().all())


evaluation_store = EvaluationStore()
