"""
Report submission for the Teacher and Counselor forms.

Each submission is a two-step saga:

    STARTED  -> files uploaded under the new report id -> UPLOADED
    UPLOADED -> one insert of the report row           -> WRITTEN

The report row is written once, already carrying its files list. If the
insert fails after UPLOADED, the stored files stay behind without a report;
they are logged and not cleaned up. Without files the saga is a single write.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_reports.constants.constants import ReportStatus, ReportType
from crm_reports.models.attendance import DashboardAttendance
from crm_reports.models.case import DashboardCase
from crm_reports.models.report import DashboardReport
from crm_reports.schemas.reportSchema import (
    CaseProgressForm,
    ClassReportForm,
    FileOutcome,
    Principal,
    StudentPerformanceForm,
)
from crm_reports.services.AttachmentUploader import upload_attachments

logger = logging.getLogger(__name__)

ATTENDANCE_SUMMARY_ROWS = 60


class SubmissionStage(str, Enum):
    started = "started"
    uploaded = "uploaded"
    written = "written"


class IncompleteFormError(ValueError):
    """The form's required fields are not all filled in."""


class ReportSubmissionError(Exception):
    """The report row could not be written."""

    def __init__(self, message: str, stage: SubmissionStage, orphaned_files: Optional[List[str]] = None):
        super().__init__(message)
        self.stage = stage
        self.orphaned_files = orphaned_files or []


@dataclass
class SubmissionResult:
    report: DashboardReport
    stage: SubmissionStage
    files: List[FileOutcome] = field(default_factory=list)


async def _submit(
    db: AsyncSession,
    storage,
    principal: Principal,
    report_type: ReportType,
    payload: Dict[str, Any],
    files: Sequence[UploadFile],
    **linkage,
) -> SubmissionResult:
    report_id = str(uuid.uuid4())
    stage = SubmissionStage.started

    upload = await upload_attachments(storage, files, report_id, principal.email)
    if upload.outcomes:
        stage = SubmissionStage.uploaded
    if upload.uploaded:
        payload = {**payload, "files": [a.model_dump() for a in upload.uploaded]}

    report = DashboardReport(
        id=report_id,
        report_type=report_type,
        role=principal.role_label,
        status=ReportStatus.pending,
        author_email=principal.email,
        author_name=principal.name,
        payload=payload,
        **linkage,
    )

    try:
        db.add(report)
        await db.commit()
        await db.refresh(report)
    except Exception as e:
        await db.rollback()
        orphaned = [a.path for a in upload.uploaded]
        logger.error(
            f"Failed to write {report_type.value} report {report_id} at stage {stage.value}; "
            f"orphaned files: {orphaned}",
            exc_info=True,
        )
        raise ReportSubmissionError(str(e), stage, orphaned) from e

    logger.info(f"Report {report_id} ({report_type.value}) submitted by {principal.email}")
    return SubmissionResult(report=report, stage=SubmissionStage.written, files=upload.outcomes)


async def submit_class_report(
    db: AsyncSession,
    storage,
    principal: Principal,
    form: ClassReportForm,
    files: Sequence[UploadFile] = (),
) -> SubmissionResult:
    if not form.can_submit:
        raise IncompleteFormError("Class report is incomplete")
    return await _submit(
        db, storage, principal, ReportType.class_report, form.to_payload(), files,
        batch_no=form.batch,
    )


async def attendance_summary(db: AsyncSession, student_id: str) -> Dict[str, int]:
    """Count per attendance status over the student's most recent marks."""
    try:
        result = await db.execute(
            select(DashboardAttendance.status)
            .where(DashboardAttendance.student_id == student_id)
            .order_by(DashboardAttendance.attendance_date.desc())
            .limit(ATTENDANCE_SUMMARY_ROWS)
        )
    except Exception as e:
        logger.error(f"Attendance summary failed for student {student_id}: {e}", exc_info=True)
        return {}
    return dict(Counter(status for status in result.scalars().all()))


async def submit_student_performance(
    db: AsyncSession,
    storage,
    principal: Principal,
    form: StudentPerformanceForm,
    files: Sequence[UploadFile] = (),
) -> SubmissionResult:
    if not form.can_submit:
        raise IncompleteFormError("Student performance report is incomplete")
    summary = await attendance_summary(db, form.student_id)
    return await _submit(
        db, storage, principal, ReportType.student_performance, form.to_payload(summary), files,
        student_id=form.student_id,
    )


async def submit_case_progress(
    db: AsyncSession,
    storage,
    principal: Principal,
    form: CaseProgressForm,
    files: Sequence[UploadFile] = (),
) -> SubmissionResult:
    if not form.can_submit:
        raise IncompleteFormError("Case progress report is incomplete")

    case = await db.get(DashboardCase, form.case_id)
    if case is None:
        raise LookupError(f"Case {form.case_id} not found")

    student_info = case.student_info or {}
    student = student_info.get("full_name") if isinstance(student_info, dict) else None
    payload = form.to_payload(case.case_number, student or case.title)
    return await _submit(
        db, storage, principal, ReportType.case_progress, payload, files,
        case_id=form.case_id,
        branch=case.branch or None,
    )
