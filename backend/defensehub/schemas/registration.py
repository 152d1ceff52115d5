"""
Registration Schemas - ledger records, allocation requests and submission payloads
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from defensehub.models.registration import (
    ProjectRegistrationStatus,
    SubmissionStatus,
    ReportingStatus,
    Track,
)
from defensehub.models.evaluation import EvaluationType


# ============== Ledger ==============

class RegistrationCreate(BaseModel):
    """Administrative creation of a student's registration in a session"""
    session_id: str
    student_doc_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1, max_length=50)
    student_name: str = Field(..., min_length=1, max_length=255)
    internship_supervisor_id: Optional[str] = None
    internship_supervisor_name: Optional[str] = None
    sub_committee_id: Optional[str] = None


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    student_doc_id: str
    student_id: str
    student_name: str

    topic_id: Optional[str] = None
    project_title: Optional[str] = None
    summary: Optional[str] = None
    objectives: Optional[str] = None
    expected_results: Optional[str] = None
    supervisor_id: Optional[str] = None
    supervisor_name: Optional[str] = None
    project_registration_status: Optional[ProjectRegistrationStatus] = None

    proposal_status: SubmissionStatus
    implementation_plan: Optional[str] = None
    proposal_link: Optional[str] = None
    proposal_review_note: Optional[str] = None

    report_status: SubmissionStatus
    report_link: Optional[str] = None
    report_review_note: Optional[str] = None
    post_defense_report_link: Optional[str] = None

    internship_registration_status: SubmissionStatus
    internship_supervisor_id: Optional[str] = None
    internship_supervisor_name: Optional[str] = None
    internship_company_name: Optional[str] = None
    internship_company_address: Optional[str] = None
    internship_company_supervisor_name: Optional[str] = None
    internship_company_supervisor_phone: Optional[str] = None
    internship_registration_form_link: Optional[str] = None
    internship_commitment_form_link: Optional[str] = None
    internship_acceptance_letter_link: Optional[str] = None
    internship_feedback_form_link: Optional[str] = None
    internship_report_link: Optional[str] = None
    internship_review_note: Optional[str] = None

    graduation_status: ReportingStatus
    graduation_status_note: Optional[str] = None
    internship_status: ReportingStatus
    internship_status_note: Optional[str] = None

    sub_committee_id: Optional[str] = None
    registration_date: datetime


class ReportingStatusUpdate(BaseModel):
    """Withdraw / exempt / restore a student for one report type"""
    report_type: EvaluationType
    status: ReportingStatus
    note: Optional[str] = None


class InternshipSupervisorAssignment(BaseModel):
    """Assign one internship (company) supervisor to several registrations"""
    registration_ids: List[str] = Field(..., min_length=1)
    internship_supervisor_id: str = Field(..., min_length=1)
    internship_supervisor_name: str = Field(..., min_length=1, max_length=255)


# ============== Allocation ==============

class RegisterTopicRequest(BaseModel):
    topic_id: str


class TopicDecisionRequest(BaseModel):
    """Supervisor confirmation of a pending registration"""
    supervisor_id: str
    approve: bool


# ============== Submission tracks ==============

class ProposalSubmission(BaseModel):
    implementation_plan: Optional[str] = None
    proposal_link: str = Field(..., min_length=1, max_length=1000)


class ReportSubmission(BaseModel):
    report_link: str = Field(..., min_length=1, max_length=1000)


class InternshipSubmission(BaseModel):
    internship_company_name: str = Field(..., min_length=1, max_length=255)
    internship_company_address: Optional[str] = None
    internship_company_supervisor_name: Optional[str] = None
    internship_company_supervisor_phone: Optional[str] = None
    internship_registration_form_link: Optional[str] = None
    internship_commitment_form_link: Optional[str] = None
    internship_acceptance_letter_link: Optional[str] = None
    internship_feedback_form_link: Optional[str] = None
    internship_report_link: Optional[str] = None


class PostDefenseSubmission(BaseModel):
    post_defense_report_link: str = Field(..., min_length=1, max_length=1000)


class TrackReviewRequest(BaseModel):
    approve: bool
    note: Optional[str] = None


class TrackWritabilityResponse(BaseModel):
    registration_id: str
    track: Track
    writable: bool
    reason: Optional[str] = None
