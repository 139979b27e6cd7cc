from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, computed_field

from crm_reports.constants.constants import (
    PLACEHOLDER,
    ROLE_LABELS,
    CaseStage,
    ProgressRating,
    ReportStatus,
    ReportType,
    Role,
)


RATINGS = {rating.value for rating in ProgressRating}
CASE_STAGES = {stage.value for stage in CaseStage}


def _filled(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _picked(value: Optional[str], choices: set) -> bool:
    """An enumerated select counts only once it moved off the placeholder."""
    return bool(value) and value != PLACEHOLDER and value in choices


class Principal(BaseModel):
    """The resolved identity of the current user."""
    email: str = ""
    name: str = "User"
    raw_role: str = "other"
    role: Role = Role.other

    @property
    def role_label(self) -> str:
        return ROLE_LABELS[self.role]


class Attachment(BaseModel):
    """A stored file referenced from a report payload."""
    path: str
    url: str
    name: str


# ------------------------------
# Submission forms
# ------------------------------

class ClassReportForm(BaseModel):
    """Teacher: Class Report."""
    date: str = ""
    batch: str = ""
    topics: str = ""
    present: int = 0
    progress: str = PLACEHOLDER
    remarks: str = ""

    @computed_field
    @property
    def can_submit(self) -> bool:
        return (
            _filled(self.date)
            and _filled(self.batch)
            and _filled(self.topics)
            and self.present >= 0
            and _picked(self.progress, RATINGS)
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "batch": self.batch,
            "topics": self.topics,
            "present": self.present,
            "progress": self.progress,
            "remarks": self.remarks,
        }


class StudentPerformanceForm(BaseModel):
    """Teacher: Student Performance Report."""
    student_id: str = ""
    participation: str = ""
    acad_progress: str = PLACEHOLDER
    remarks: str = ""

    @computed_field
    @property
    def can_submit(self) -> bool:
        return _filled(self.student_id) and _picked(self.acad_progress, RATINGS)

    def to_payload(self, attendance_summary: Dict[str, int]) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "participation": self.participation,
            "acad_progress": self.acad_progress,
            "remarks": self.remarks,
            "attendance_summary": attendance_summary,
        }


class CaseProgressForm(BaseModel):
    """Counselor: Case Progress Report."""
    case_id: str = ""
    status: str = PLACEHOLDER
    notes: str = ""
    next_steps: str = ""

    @computed_field
    @property
    def can_submit(self) -> bool:
        return (
            _filled(self.case_id)
            and _picked(self.status, CASE_STAGES)
            and (_filled(self.notes) or _filled(self.next_steps))
        )

    def to_payload(self, case_number: Optional[str], student: Optional[str]) -> Dict[str, Any]:
        return {
            "case_number": case_number,
            "student": student,
            "status": self.status,
            "notes": self.notes,
            "next_steps": self.next_steps,
        }


class FormValidationResponse(BaseModel):
    can_submit: bool


# ------------------------------
# Reports
# ------------------------------

class ReportResponse(BaseModel):
    id: str
    report_type: ReportType
    role: str
    status: ReportStatus
    author_email: str
    author_name: Optional[str] = None
    branch: Optional[str] = None
    batch_no: Optional[str] = None
    student_id: Optional[str] = None
    case_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    class Config:
        from_attributes = True


class FileOutcome(BaseModel):
    """Per-file upload result."""
    name: str
    ok: bool
    attachment: Optional[Attachment] = None
    error: Optional[str] = None


class SubmissionResponse(BaseModel):
    report: ReportResponse
    files: List[FileOutcome] = Field(default_factory=list)


class ModerationRequest(BaseModel):
    """Schema for a moderation action."""
    status: ReportStatus


class HistoryResponse(BaseModel):
    reports: List[ReportResponse]
    types: List[str]
    total: int
    allow_moderation: bool
