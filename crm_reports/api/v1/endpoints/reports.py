"""Report submission, history and moderation router."""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from crm_reports.core.config import settings
from crm_reports.core.database import aget_db
from crm_reports.core.rate_limiter import limiter
from crm_reports.core.security import get_current_principal
from crm_reports.constants.constants import ALL, PLACEHOLDER, HistoryScope, ReportStatus, Role
from crm_reports.schemas.reportSchema import (
    CaseProgressForm,
    ClassReportForm,
    FormValidationResponse,
    HistoryResponse,
    ModerationRequest,
    Principal,
    ReportResponse,
    StudentPerformanceForm,
    SubmissionResponse,
)
from crm_reports.services.ReportHistory import ModerationForbidden, ReportHistory, moderate_report
from crm_reports.services.ReportSubmission import (
    IncompleteFormError,
    ReportSubmissionError,
    SubmissionResult,
    submit_case_progress,
    submit_class_report,
    submit_student_performance,
)
from crm_reports.services.S3Service import get_attachment_storage
from crm_reports.utils.check_manager_role import check_manager_role, check_role

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["reports"]
)

STATUS_FILTERS = [ALL] + [s.value for s in ReportStatus]


def _require_role(principal: Principal, *roles: Role) -> None:
    if not check_role(principal, *roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This report form is not available for your role"
        )


def _submission_response(result: SubmissionResult) -> SubmissionResponse:
    return SubmissionResponse(
        report=ReportResponse.model_validate(result.report),
        files=result.files,
    )


async def _run_submission(submit, *args) -> SubmissionResponse:
    try:
        result = await submit(*args)
    except IncompleteFormError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ReportSubmissionError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit report"
        )
    return _submission_response(result)


@router.get("/me", response_model=Principal)
async def get_me(principal: Principal = Depends(get_current_principal)):
    """The resolved principal for the current session."""
    return principal


# ------------------------------
# Form validation (computed submit gate)
# ------------------------------

@router.post("/forms/class/validate", response_model=FormValidationResponse)
async def validate_class_form(form: ClassReportForm):
    return FormValidationResponse(can_submit=form.can_submit)


@router.post("/forms/student-performance/validate", response_model=FormValidationResponse)
async def validate_student_performance_form(form: StudentPerformanceForm):
    return FormValidationResponse(can_submit=form.can_submit)


@router.post("/forms/case-progress/validate", response_model=FormValidationResponse)
async def validate_case_progress_form(form: CaseProgressForm):
    return FormValidationResponse(can_submit=form.can_submit)


# ------------------------------
# Submission
# ------------------------------

@router.post("/class", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_SUBMIT)
async def submit_class(
    request: Request,
    date: str = Form(""),
    batch: str = Form(""),
    topics: str = Form(""),
    present: int = Form(0),
    progress: str = Form(PLACEHOLDER),
    remarks: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
    storage=Depends(get_attachment_storage),
):
    """Teacher: submit a class report with optional attachments."""
    _require_role(principal, Role.teacher)
    form = ClassReportForm(
        date=date, batch=batch, topics=topics, present=present, progress=progress, remarks=remarks
    )
    return await _run_submission(submit_class_report, db, storage, principal, form, files or [])


@router.post("/student-performance", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_SUBMIT)
async def submit_student_performance_report(
    request: Request,
    student_id: str = Form(""),
    participation: str = Form(""),
    acad_progress: str = Form(PLACEHOLDER),
    remarks: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
    storage=Depends(get_attachment_storage),
):
    """Teacher: submit a student performance report."""
    _require_role(principal, Role.teacher)
    form = StudentPerformanceForm(
        student_id=student_id, participation=participation, acad_progress=acad_progress, remarks=remarks
    )
    return await _run_submission(submit_student_performance, db, storage, principal, form, files or [])


@router.post("/case-progress", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_SUBMIT)
async def submit_case_progress_report(
    request: Request,
    case_id: str = Form(""),
    case_status: str = Form(PLACEHOLDER, alias="status"),
    notes: str = Form(""),
    next_steps: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
    storage=Depends(get_attachment_storage),
):
    """Counselor: submit a case progress report."""
    _require_role(principal, Role.counselor)
    form = CaseProgressForm(case_id=case_id, status=case_status, notes=notes, next_steps=next_steps)
    return await _run_submission(submit_case_progress, db, storage, principal, form, files or [])


# ------------------------------
# History & moderation
# ------------------------------

@router.get("/history", response_model=HistoryResponse)
async def get_history(
    scope: HistoryScope = HistoryScope.self,
    q: str = "",
    status_filter: str = Query(ALL, alias="status"),
    report_type: str = ALL,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    """
    Load the newest reports and apply the status, type and search filters.
    scope=all is limited to Admin and Super Admin.
    """
    if scope == HistoryScope.all and not check_manager_role(principal):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Admin and Super Admin can view all reports"
        )
    if status_filter not in STATUS_FILTERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status: {status_filter}"
        )

    history = await ReportHistory.load(
        db, scope, principal,
        limit=settings.HISTORY_LIMIT,
        search=q,
        status=status_filter,
        report_type=report_type,
    )
    return history.to_response()


@router.patch("/{report_id}/moderate", response_model=ReportResponse)
async def moderate(
    report_id: str,
    review_data: ModerationRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    """
    Approve or reject a Pending report.
    A report that is no longer Pending comes back unchanged.
    """
    try:
        report = await moderate_report(db, report_id, review_data.status, principal)
    except ModerationForbidden as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.error(f"Failed to moderate report {report_id}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update report status"
        )

    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report not found"
        )
    return report
