"""
Outcome Aggregation - per-student CLO averages for outcome reports

For every eligible student the matrix holds one cell per CLO: the plain mean of
every individual criterion score mapped to that CLO, pooled over all selected
evaluations. Evaluations with more criteria on a CLO therefore weigh more; this
matches the reports already in circulation and is kept as is.

Headers are grouped by PI, PIs and CLOs both in string order, and rows are
ordered by student number, so two runs over the same data are identical.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from defensehub.core.exceptions import RubricNotFoundError
from defensehub.models.defense_session import DefenseSession
from defensehub.models.evaluation import Evaluation, EvaluationType
from defensehub.models.registration import Registration, ReportingStatus
from defensehub.models.rubric import Rubric
from defensehub.schemas.outcomes import (
    EvaluationSource,
    OutcomeHeader,
    OutcomeMatrix,
    OutcomeRow,
)
from defensehub.services.evaluation_store import evaluation_store
from defensehub.services.registration_ledger import registration_ledger
from defensehub.services.rubric_store import outcome_mapping, rubric_store
from defensehub.services.session_service import session_service

logger = logging.getLogger(__name__)

# (source, report type) -> rubric slot on the defense session
RUBRIC_SLOTS: Dict[Tuple[EvaluationSource, EvaluationType], str] = {
    (EvaluationSource.council, EvaluationType.graduation): "council_graduation_rubric_id",
    (EvaluationSource.council, EvaluationType.internship): "council_internship_rubric_id",
    (EvaluationSource.supervisor, EvaluationType.graduation): "supervisor_graduation_rubric_id",
    (EvaluationSource.company, EvaluationType.internship): "company_internship_rubric_id",
}


def _is_eligible(registration: Registration, report_type: EvaluationType) -> bool:
    if report_type == EvaluationType.graduation:
        return registration.graduation_status == ReportingStatus.reporting
    return registration.internship_status == ReportingStatus.reporting


def _evaluator_for(registration: Registration, source: EvaluationSource) -> Optional[str]:
    if source == EvaluationSource.supervisor:
        return registration.supervisor_id
    if source == EvaluationSource.company:
        return registration.internship_supervisor_id
    return None


def _build_headers(clo_to_pi: Dict[str, str]) -> List[OutcomeHeader]:
    grouped: Dict[str, List[str]] = defaultdict(list)
    for clo, pi in clo_to_pi.items():
        grouped[pi].append(clo)
    return [OutcomeHeader(pi=pi, clos=sorted(grouped[pi])) for pi in sorted(grouped)]


def aggregate_outcomes(
    report_type: EvaluationType,
    evaluation_source: EvaluationSource,
    registrations: Iterable[Registration],
    evaluations: Iterable[Evaluation],
    rubric: Optional[Rubric],
) -> OutcomeMatrix:
    """Roll raw criterion scores up into the per-student CLO matrix"""
    report_type = EvaluationType(report_type)
    evaluation_source = EvaluationSource(evaluation_source)

    if rubric is None:
        return OutcomeMatrix(report_type=report_type, evaluation_source=evaluation_source)

    criterion_to_clo, clo_to_pi = outcome_mapping(rubric.criteria)
    headers = _build_headers(clo_to_pi)
    columns = [clo for header in headers for clo in header.clos]

    by_registration: Dict[str, List[Evaluation]] = defaultdict(list)
    for evaluation in evaluations:
        if evaluation.evaluation_type != report_type or evaluation.rubric_id != rubric.id:
            continue
        by_registration[evaluation.registration_id].append(evaluation)

    eligible = [r for r in registrations if _is_eligible(r, report_type)]
    eligible.sort(key=lambda r: (r.student_id or "", r.id))

    rows: List[OutcomeRow] = []
    for registration in eligible:
        evaluator_id = _evaluator_for(registration, evaluation_source)
        selected = by_registration.get(registration.id, [])
        if evaluation_source != EvaluationSource.council:
            # No bound supervisor means nobody's scores qualify
            selected = [e for e in selected if evaluator_id and e.evaluator_id == evaluator_id]

        sums: Dict[str, float] = defaultdict(float)
        counts: Dict[str, int] = defaultdict(int)
        for evaluation in selected:
            for entry in evaluation.scores or []:
                clo = criterion_to_clo.get(entry.get("criterion_id"))
                score = entry.get("score")
                if clo is None or score is None:
                    continue
                sums[clo] += float(score)
                counts[clo] += 1

        rows.append(
            OutcomeRow(
                registration_id=registration.id,
                student_id=registration.student_id,
                student_name=registration.student_name,
                scores={clo: (sums[clo] / counts[clo] if counts[clo] else None) for clo in columns},
            )
        )

    return OutcomeMatrix(
        report_type=report_type,
        evaluation_source=evaluation_source,
        rubric_id=rubric.id,
        headers=headers,
        rows=rows,
    )


async def build_outcome_report(
    db: AsyncSession,
    session_id: str,
    report_type: EvaluationType,
    evaluation_source: EvaluationSource,
) -> OutcomeMatrix:
    """
    Outcome matrix for a defense session, using the rubric assigned to the
    (source, report type) slot. A pair without a slot, an empty slot or a
    deleted rubric yields an empty matrix instead of an error.
    """
    session: DefenseSession = await session_service.get_session(db, session_id)

    rubric = None
    slot = RUBRIC_SLOTS.get((evaluation_source, report_type))
    rubric_id = getattr(session, slot) if slot else None
    if rubric_id:
        try:
            rubric = await rubric_store.get_rubric(db, rubric_id)
        except RubricNotFoundError:
            logger.warning(f"Session {session_id} points at missing rubric {rubric_id} ({slot})")

    if rubric is None:
        return OutcomeMatrix(report_type=report_type, evaluation_source=evaluation_source)

    registrations = await registration_ledger.list_registrations(db, session_id)
    evaluations = await evaluation_store.list_for_session(
        db, session_id, evaluation_type=report_type, rubric_id=rubric.id
    )
    matrix = aggregate_outcomes(report_type, evaluation_source, registrations, evaluations, rubric)

    logger.info(
        f"Outcome report built: session {session_id}, {report_type.value}/{evaluation_source.value}, "
        f"{len(matrix.rows)} rows, {len(matrix.clo_columns())} CLO columns"
    )
    return matrix
