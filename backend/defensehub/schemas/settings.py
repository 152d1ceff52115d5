"""
Feature flag schemas (admin-owned runtime switches)
"""

from pydantic import BaseModel
from typing import Optional


class FeatureFlags(BaseModel):
    allow_editing_approved_proposal: bool = False
    force_open_report_submission: bool = False
    require_report_approval: bool = True
    allow_cancel_approved_registration: bool = False
    allow_student_registration: bool = True


class FeatureFlagsUpdate(BaseModel):
    allow_editing_approved_proposal: Optional[bool] = None
    force_open_report_submission: Optional[bool] = None
    require_report_approval: Optional[bool] = None
    allow_cancel_approved_registration: Optional[bool] = None
    allow_student_registration: Optional[bool] = None
