"""Dashboard router - role dispatch, aggregate views and exports."""

import logging
from datetime import datetime
from io import BytesIO
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_reports.core.config import settings
from crm_reports.core.database import aget_db, aget_session_factory
from crm_reports.core.security import get_current_principal, principal_from_request
from crm_reports.constants.constants import ALL, SUPER_ADMIN_ROLE_FILTERS, HistoryScope, Role
from crm_reports.schemas.dashboardSchema import (
    AggregateSnapshot,
    CaseOption,
    DashboardView,
    EmployeeOption,
    EmployeePerformance,
    StudentOption,
    SuperAdminSummary,
)
from crm_reports.schemas.reportSchema import Principal, ReportResponse
from crm_reports.services.AdminDirectory import (
    list_branches,
    list_employees,
    pending_export_rows,
    pending_reports,
)
from crm_reports.services.DashboardAggregates import compute_snapshot, employee_performance
from crm_reports.services.ReportHistory import load_history
from crm_reports.services.RoleDispatcher import RoleDispatcher, aget_dispatcher, build_view
from crm_reports.services.Roster import assigned_students, recent_cases
from crm_reports.services.SuperAdminSummary import (
    filter_by_role_and_dates,
    report_kpis,
    summary_export_rows,
)
from crm_reports.services.XlsxExport import export_to_xlsx
from crm_reports.utils.check_manager_role import check_manager_role, check_role

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"]
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _require_manager(principal: Principal) -> None:
    if not check_manager_role(principal):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Admin and Super Admin can access this view"
        )


def _xlsx_response(filename: str, rows: List[dict]) -> StreamingResponse:
    name, content = export_to_xlsx(filename, rows)
    return StreamingResponse(
        BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )


@router.get("", response_model=DashboardView, response_model_exclude_none=True)
async def get_dashboard(
    request: Request,
    db: AsyncSession = Depends(aget_db),
    session_factory: async_sessionmaker = Depends(aget_session_factory),
    dispatcher: RoleDispatcher = Depends(aget_dispatcher),
):
    """
    Resolve the principal and return the data of the matching role view.
    Resolution is awaited within the request; the dispatcher is disposed
    when the request ends.
    """
    await dispatcher.resolve(lambda: principal_from_request(request, db))
    return await build_view(db, session_factory, dispatcher)


# ------------------------------
# Admin / Super Admin aggregates
# ------------------------------

@router.get("/aggregates", response_model=AggregateSnapshot)
async def get_aggregates(
    branch: str = ALL,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(aget_session_factory),
):
    _require_manager(principal)
    return await compute_snapshot(session_factory, branch, settings.ATTENDANCE_WINDOW_DAYS)


@router.get("/employees/{email}/performance", response_model=EmployeePerformance)
async def get_employee_performance(
    email: str,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(aget_session_factory),
):
    _require_manager(principal)
    return await employee_performance(session_factory, email)


@router.get("/branches", response_model=List[str])
async def get_branches(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    _require_manager(principal)
    return await list_branches(db)


@router.get("/employees", response_model=List[EmployeeOption])
async def get_employees(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    _require_manager(principal)
    return await list_employees(db)


@router.get("/pending", response_model=List[ReportResponse])
async def get_pending(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    _require_manager(principal)
    return await pending_reports(db, limit=settings.PENDING_LIMIT)


@router.get("/pending/export")
async def export_pending(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    _require_manager(principal)
    reports = await pending_reports(db, limit=settings.PENDING_LIMIT)
    return _xlsx_response("pending-reports.xlsx", pending_export_rows(reports))


# ------------------------------
# Super Admin
# ------------------------------

async def _super_admin_reports(
    db: AsyncSession,
    role: str,
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> List[ReportResponse]:
    if role not in SUPER_ADMIN_ROLE_FILTERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role filter: {role}"
        )
    reports = await load_history(db, HistoryScope.all, "", limit=settings.SUPER_ADMIN_REPORT_LIMIT)
    return filter_by_role_and_dates(reports, role, date_from, date_to)


@router.get("/super-admin/summary", response_model=SuperAdminSummary)
async def get_super_admin_summary(
    role: str = ALL,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    if not check_role(principal, Role.super_admin):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Super Admin can access this view"
        )
    reports = await _super_admin_reports(db, role, date_from, date_to)
    return SuperAdminSummary(
        role=role,
        date_from=date_from,
        date_to=date_to,
        kpis=report_kpis(reports),
        reports=reports,
    )


@router.get("/super-admin/export")
async def export_super_admin_reports(
    role: str = ALL,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    if not check_role(principal, Role.super_admin):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Super Admin can export reports"
        )
    reports = await _super_admin_reports(db, role, date_from, date_to)
    return _xlsx_response("reports-export.xlsx", summary_export_rows(reports))


# ------------------------------
# Form option lists
# ------------------------------

@router.get("/teacher/students", response_model=List[StudentOption])
async def get_teacher_students(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    if not check_role(principal, Role.teacher):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only teachers have a student roster")
    return await assigned_students(db, principal.email)


@router.get("/counselor/cases", response_model=List[CaseOption])
async def get_counselor_cases(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    if not check_role(principal, Role.counselor):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only counselors report on cases")
    return await recent_cases(db, limit=settings.RECENT_CASES_LIMIT)
