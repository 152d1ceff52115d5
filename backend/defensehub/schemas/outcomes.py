"""
Outcome Report Schemas

The outcome matrix is the hand-off format to reporting and spreadsheet export:
header groups and CLO columns are already in their final, deterministic order.
"""

from pydantic import BaseModel, Field, computed_field
from typing import Optional, List, Dict, Any
from enum import Enum

from defensehub.models.evaluation import EvaluationType


class EvaluationSource(str, Enum):
    council = "council"
    supervisor = "supervisor"
    company = "company"


class OutcomeHeader(BaseModel):
    """One PI column group spanning its CLOs"""
    pi: str
    clos: List[str]


class OutcomeRow(BaseModel):
    registration_id: str
    student_id: str
    student_name: str
    scores: Dict[str, Optional[float]] = Field(default_factory=dict)


class OutcomeMatrix(BaseModel):
    report_type: EvaluationType
    evaluation_source: EvaluationSource
    rubric_id: Optional[str] = None
    headers: List[OutcomeHeader] = Field(default_factory=list)
    rows: List[OutcomeRow] = Field(default_factory=list)

    @computed_field
    @property
    def has_outcome_data(self) -> bool:
        """False when the rubric maps no criterion to an outcome ("no outcome data" state)"""
        return bool(self.headers)

    def clo_columns(self) -> List[str]:
        """CLO columns in header order (a CLO listed under two PIs appears once)"""
        seen: List[str] = []
        for header in self.headers:
            for clo in header.clos:
                if clo not in seen:
                    seen.append(clo)
        return seen

    def to_records(self) -> List[Dict[str, Any]]:
        """Flat rows for spreadsheet export: studentId, studentName, then one key per CLO"""
        columns = self.clo_columns()
        records = []
        for row in self.rows:
            record: Dict[str, Any] = {
                "studentId": row.student_id,
                "studentName": row.student_name,
            }
            for clo in columns:
                record[clo] = row.scores.get(clo)
            records.append(record)
        return records
