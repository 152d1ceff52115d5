"""
Status Tracks - gated submission state machines on a registration

Three tracks carry a status (proposal, report, internship) and share the same
shape; every change goes through ``TRANSITIONS`` so an illegal move fails here
instead of depending on a well-behaved client. The post-defense track has no
status of its own: it is a link that becomes writable once the report is
approved.

``check_track`` / ``can_write_track`` are pure and only look at persisted
state, so any page can re-derive whether a form should be shown.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from defensehub.core.config import settings
from defensehub.core.exceptions import (
    DefenseSessionNotFoundError,
    RegistrationNotFoundError,
    TrackNotWritableError,
    InvalidTransitionError,
    ValidationError,
)
from defensehub.core.logging_config import logger
from defensehub.core.types import utcnow, as_naive_utc
from defensehub.models.defense_session import DefenseSession, SessionStatus
from defensehub.models.registration import (
    Registration,
    ProjectRegistrationStatus,
    SubmissionStatus,
    Track,
)
from defensehub.schemas.registration import (
    ProposalSubmission,
    ReportSubmission,
    InternshipSubmission,
    PostDefenseSubmission,
)
from defensehub.schemas.settings import FeatureFlags
from defensehub.services.settings_service import settings_service

S = SubmissionStatus

# (from, to) -> flag that must be set, or None when always allowed
TRANSITIONS: Dict[Tuple[SubmissionStatus, SubmissionStatus], Optional[str]] = {
    (S.not_submitted, S.pending_approval): None,
    (S.pending_approval, S.pending_approval): None,  # edit while awaiting review
    (S.rejected, S.pending_approval): None,
    (S.pending_approval, S.approved): None,
    (S.pending_approval, S.rejected): None,
    (S.approved, S.pending_approval): "allow_edit_approved",
    # Submissions that skip review (report approval switched off)
    (S.not_submitted, S.approved): "auto_approve",
    (S.rejected, S.approved): "auto_approve",
}

TRACK_STATUS_FIELDS = {
    Track.proposal: "proposal_status",
    Track.report: "report_status",
    Track.internship: "internship_registration_status",
}

TRACK_NOTE_FIELDS = {
    Track.proposal: "proposal_review_note",
    Track.report: "report_review_note",
    Track.internship: "internship_review_note",
}


def validate_transition(
    track: Track,
    current: Optional[SubmissionStatus],
    target: SubmissionStatus,
    *,
    allow_edit_approved: bool = False,
    auto_approve: bool = False,
) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is in the table"""
    current = current or S.not_submitted
    key = (current, target)
    if key not in TRANSITIONS:
        raise InvalidTransitionError(track.value, current.value, target.value)

    required = TRANSITIONS[key]
    enabled = {"allow_edit_approved": allow_edit_approved, "auto_approve": auto_approve}
    if required is not None and not enabled[required]:
        raise InvalidTransitionError(track.value, current.value, target.value)


def report_window(expected_report_date: datetime) -> Tuple[datetime, datetime]:
    """[expected - N weeks, expected - M weeks] in naive UTC"""
    expected = as_naive_utc(expected_report_date)
    return (
        expected - timedelta(weeks=settings.REPORT_WINDOW_OPENS_WEEKS),
        expected - timedelta(weeks=settings.REPORT_WINDOW_CLOSES_WEEKS),
    )


def check_track(
    registration: Registration,
    track: Track,
    *,
    session: DefenseSession,
    flags: Optional[FeatureFlags] = None,
    now: Optional[datetime] = None,
) -> Tuple[bool, Optional[str]]:
    """
    Whether the submission form for ``track`` may write to this registration.

    Returns (writable, reason); reason explains a closed gate.
    """
    flags = flags or FeatureFlags()
    now = as_naive_utc(now) if now is not None else utcnow()

    if track == Track.proposal:
        if registration.project_registration_status != ProjectRegistrationStatus.approved:
            return False, "Topic registration has not been approved by the supervisor"
        return True, None

    if track == Track.report:
        if registration.proposal_status != S.approved:
            return False, "Proposal has not been approved"
        if flags.force_open_report_submission:
            return True, None
        if session.expected_report_date is None:
            return False, "Report submission date has not been scheduled"
        opens, closes = report_window(session.expected_report_date)
        if now < opens:
            return False, f"Report submission opens on {opens.date().isoformat()}"
        if now > closes:
            return False, f"Report submission closed on {closes.date().isoformat()}"
        return True, None

    if track == Track.internship:
        if not session.includes_internship:
            return False, "This defense session has no internship component"
        if session.status != SessionStatus.ongoing:
            return False, "Internship registration is only open while the session is ongoing"
        if registration.session_id != session.id:
            return False, "Registration does not belong to this session"
        return True, None

    if track == Track.post_defense:
        if registration.report_status != S.approved:
            return False, "Report has not been approved"
        return True, None

    return False, f"Unknown track '{track}'"


def can_write_track(
    registration: Registration,
    track: Track,
    *,
    session: DefenseSession,
    flags: Optional[FeatureFlags] = None,
    now: Optional[datetime] = None,
) -> bool:
    writable, _ = check_track(registration, track, session=session, flags=flags, now=now)
    return writable


class StatusTrackService:
    """Submission and review operations for the proposal, report, internship and post-defense tracks"""

    async def _load(
        self,
        db: AsyncSession,
        registration_id: str,
        lock: bool = True,
    ) -> Tuple[Registration, DefenseSession]:
        query = select(Registration).where(Registration.id == registration_id)
        if lock:
            query = query.with_for_update()
        result = await db.execute(query.execution_options(populate_existing=True))
        registration = result.scalar_one_or_none()
        if registration is None:
            raise RegistrationNotFoundError(registration_id)

        session = await db.get(DefenseSession, registration.session_id)
        if session is None:
            raise DefenseSessionNotFoundError(registration.session_id)
        return registration, session

    async def check(
        self,
        db: AsyncSession,
        registration_id: str,
        track: Track,
        now: Optional[datetime] = None,
    ) -> Tuple[bool, Optional[str]]:
        registration, session = await self._load(db, registration_id, lock=False)
        flags = await settings_service.get_flags(db)
        return check_track(registration, track, session=session, flags=flags, now=now)

    async def _gate(
        self,
        db: AsyncSession,
        registration_id: str,
        track: Track,
        now: Optional[datetime],
    ) -> Tuple[Registration, FeatureFlags]:
        registration, session = await self._load(db, registration_id)
        flags = await settings_service.get_flags(db)
        writable, reason = check_track(registration, track, session=session, flags=flags, now=now)
        if not writable:
            await db.rollback()
            raise TrackNotWritableError(registration_id, track.value, reason)
        return registration, flags

    async def _apply(
        self,
        db: AsyncSession,
        registration: Registration,
        track: Track,
        target: SubmissionStatus,
        fields: Dict[str, object],
        *,
        allow_edit_approved: bool = False,
        auto_approve: bool = False,
    ) -> Registration:
        status_field = TRACK_STATUS_FIELDS[track]
        current = getattr(registration, status_field)
        try:
            validate_transition(
                track,
                current,
                target,
                allow_edit_approved=allow_edit_approved,
                auto_approve=auto_approve,
            )
        except InvalidTransitionError:
            await db.rollback()
            raise

        for name, value in fields.items():
            setattr(registration, name, value)
        setattr(registration, status_field, target)
        registration.updated_at = utcnow()

        await db.commit()
        await db.refresh(registration)

        logger.log_track_transition(
            registration.id,
            track.value,
            current.value if current else None,
            target.value,
        )
        return registration

    async def submit_proposal(
        self,
        db: AsyncSession,
        registration_id: str,
        data: ProposalSubmission,
        now: Optional[datetime] = None,
    ) -> Registration:
        registration, flags = await self._gate(db, registration_id, Track.proposal, now)
        return await self._apply(
            db,
            registration,
            Track.proposal,
            S.pending_approval,
            data.model_dump(),
            allow_edit_approved=flags.allow_editing_approved_proposal,
        )

    async def submit_report(
        self,
        db: AsyncSession,
        registration_id: str,
        data: ReportSubmission,
        now: Optional[datetime] = None,
    ) -> Registration:
        registration, flags = await self._gate(db, registration_id, Track.report, now)
        auto_approve = not flags.require_report_approval
        return await self._apply(
            db,
            registration,
            Track.report,
            S.approved if auto_approve else S.pending_approval,
            data.model_dump(),
            auto_approve=auto_approve,
        )

    async def submit_internship(
        self,
        db: AsyncSession,
        registration_id: str,
        data: InternshipSubmission,
        now: Optional[datetime] = None,
    ) -> Registration:
        registration, _ = await self._gate(db, registration_id, Track.internship, now)
        return await self._apply(
            db,
            registration,
            Track.internship,
            S.pending_approval,
            data.model_dump(),
        )

    async def submit_post_defense(
        self,
        db: AsyncSession,
        registration_id: str,
        data: PostDefenseSubmission,
        now: Optional[datetime] = None,
    ) -> Registration:
        """Store the revised report link; the track has no review step"""
        registration, _ = await self._gate(db, registration_id, Track.post_defense, now)
        previous = registration.post_defense_report_link

        registration.post_defense_report_link = data.post_defense_report_link
        registration.updated_at = utcnow()
        await db.commit()
        await db.refresh(registration)

        logger.log_track_transition(
            registration.id,
            Track.post_defense.value,
            "submitted" if previous else None,
            "submitted",
        )
        return registration

    async def review_track(
        self,
        db: AsyncSession,
        registration_id: str,
        track: Track,
        approve: bool,
        note: Optional[str] = None,
    ) -> Registration:
        """Reviewer decision on a pending submission"""
        if track not in TRACK_STATUS_FIELDS:
            raise ValidationError(f"Track '{track.value}' has no review step", field="track")

        registration, _ = await self._load(db, registration_id)
        return await self._apply(
            db,
            registration,
            track,
            S.approved if approve else S.rejected,
            {TRACK_NOTE_FIELDS[track]: note},
        )


status_tracks = StatusTrackService()
