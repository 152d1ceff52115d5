"""
Defense Registration Model

One record per (student, defense session). The record carries four independent
status tracks:

- project_registration_status: topic allocation, written only by the allocation engine
- proposal_status / report_status / internship_registration_status: written only by
  the matching submission or review operation once its gate is open
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
import enum

from defensehub.core.database import Base
from defensehub.core.types import GUID, generate_uuid, utcnow


class ProjectRegistrationStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class SubmissionStatus(str, enum.Enum):
    not_submitted = "not_submitted"
    pending_approval = "pending_approval"
    approved = "approved"
    rejected = "rejected"


class ReportingStatus(str, enum.Enum):
    """Whether the student reports in this session (drives outcome report eligibility)"""
    reporting = "reporting"
    exempted = "exempted"
    withdrawn = "withdrawn"
    not_reporting = "not_reporting"


class Track(str, enum.Enum):
    """Submission tracks gated by the registration state machine"""
    proposal = "proposal"
    report = "report"
    internship = "internship"
    post_defense = "post_defense"


def _enum(enum_cls, **kwargs):
    return SQLEnum(enum_cls, values_callable=lambda obj: [e.value for e in obj], **kwargs)


# Fields copied from the topic on registration and cleared on cancellation
TOPIC_DERIVED_FIELDS = (
    "topic_id",
    "project_title",
    "summary",
    "objectives",
    "expected_results",
    "supervisor_id",
    "supervisor_name",
)


class Registration(Base):
    __tablename__ = "defense_registrations"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    session_id = Column(GUID, ForeignKey("defense_sessions.id", ondelete="CASCADE"), nullable=False)

    # Student identity (denormalized for reports)
    student_doc_id = Column(String(36), nullable=False)
    student_id = Column(String(50), nullable=False)  # official student number
    student_name = Column(String(255), nullable=False)

    # Topic allocation
    topic_id = Column(GUID, ForeignKey("project_topics.id", ondelete="SET NULL"), nullable=True)
    project_title = Column(String(500), nullable=True)
    summary = Column(Text, nullable=True)
    objectives = Column(Text, nullable=True)
    expected_results = Column(Text, nullable=True)
    supervisor_id = Column(String(36), nullable=True)
    supervisor_name = Column(String(255), nullable=True)
    project_registration_status = Column(_enum(ProjectRegistrationStatus), nullable=True)

    # Proposal track
    proposal_status = Column(_enum(SubmissionStatus), nullable=False, default=SubmissionStatus.not_submitted)
    implementation_plan = Column(Text, nullable=True)
    proposal_link = Column(String(1000), nullable=True)
    proposal_review_note = Column(Text, nullable=True)

    # Report track
    report_status = Column(_enum(SubmissionStatus), nullable=False, default=SubmissionStatus.not_submitted)
    report_link = Column(String(1000), nullable=True)
    report_review_note = Column(Text, nullable=True)
    post_defense_report_link = Column(String(1000), nullable=True)

    # Internship track
    internship_registration_status = Column(_enum(SubmissionStatus), nullable=False,
                                            default=SubmissionStatus.not_submitted)
    internship_supervisor_id = Column(String(36), nullable=True)
    internship_supervisor_name = Column(String(255), nullable=True)
    internship_company_name = Column(String(255), nullable=True)
    internship_company_address = Column(String(500), nullable=True)
    internship_company_supervisor_name = Column(String(255), nullable=True)
    internship_company_supervisor_phone = Column(String(50), nullable=True)
    internship_registration_form_link = Column(String(1000), nullable=True)
    internship_commitment_form_link = Column(String(1000), nullable=True)
    internship_acceptance_letter_link = Column(String(1000), nullable=True)
    internship_feedback_form_link = Column(String(1000), nullable=True)
    internship_report_link = Column(String(1000), nullable=True)
    internship_review_note = Column(Text, nullable=True)

    # Reporting flags
    graduation_status = Column(_enum(ReportingStatus), nullable=False, default=ReportingStatus.reporting)
    graduation_status_note = Column(Text, nullable=True)
    internship_status = Column(_enum(ReportingStatus), nullable=False, default=ReportingStatus.reporting)
    internship_status_note = Column(Text, nullable=True)

    sub_committee_id = Column(String(36), nullable=True)

    # Optimistic concurrency counter, bumped by every allocation write
    version = Column(Integer, nullable=False, default=1)

    registration_date = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("session_id", "student_doc_id", name="uq_registration_session_student"),
        Index("ix_registration_topic_identity", "session_id", "project_title", "supervisor_id"),
    )

    @property
    def has_topic(self) -> bool:
        return self.topic_id is not None or bool(self.project_title)

    def __repr__(self):
        return f"<Registration {self.student_id} session={self.session_id}>"
