"""
Submission Track API

Proposal, report, internship dossier and post-defense submissions. Every write
is checked against the track's gate; a closed gate answers 409
``TRACK_NOT_WRITABLE`` with the reason.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from defensehub.core.database import get_db
from defensehub.models.registration import Track
from defensehub.schemas.registration import (
    RegistrationResponse,
    ProposalSubmission,
    ReportSubmission,
    InternshipSubmission,
    PostDefenseSubmission,
    TrackReviewRequest,
    TrackWritabilityResponse,
)
from defensehub.services.status_tracks import status_tracks

router = APIRouter(prefix="/registrations", tags=["Submissions"])


@router.get("/{registration_id}/tracks/{track}", response_model=TrackWritabilityResponse)
async def get_track_writability(
    registration_id: str,
    track: Track,
    db: AsyncSession = Depends(get_db)
):
    """Whether the submission form for a track should be shown"""
    writable, reason = await status_tracks.check(db, registration_id, track)
    return TrackWritabilityResponse(
        registration_id=registration_id,
        track=track,
        writable=writable,
        reason=reason,
    )


@router.post("/{registration_id}/proposal", response_model=RegistrationResponse)
async def submit_proposal(
    registration_id: str,
    data: ProposalSubmission,
    db: AsyncSession = Depends(get_db)
):
    return await status_tracks.submit_proposal(db, registration_id, data)


@router.post("/{registration_id}/report", response_model=RegistrationResponse)
async def submit_report(
    registration_id: str,
    data: ReportSubmission,
    db: AsyncSession = Depends(get_db)
):
    return await status_tracks.submit_report(db, registration_id, data)


@router.post("/{registration_id}/internship", response_model=RegistrationResponse)
async def submit_internship(
    registration_id: str,
    data: InternshipSubmission,
    db: AsyncSession = Depends(get_db)
):
    return await status_tracks.submit_internship(db, registration_id, data)


@router.post("/{registration_id}/post-defense", response_model=RegistrationResponse)
async def submit_post_defense(
    registration_id: str,
    data: PostDefenseSubmission,
    db: AsyncSession = Depends(get_db)
):
    return await status_tracks.submit_post_defense(db, registration_id, data)


@router.post("/{registration_id}/tracks/{track}/review", response_model=RegistrationResponse)
async def review_track(
    registration_id: str,
    track: Track,
    data: TrackReviewRequest,
    db: AsyncSession = Depends(get_db)
):
    """Approve or reject a pending proposal, report or internship submission"""
    return await status_tracks.review_track(db, registration_id, track, data.approve, data.note)
