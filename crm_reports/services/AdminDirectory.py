"""Branch, employee and pending-report listings for the Admin view."""

import logging
from typing import List

from sqlalchemy import distinct, select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_reports.constants.constants import ALL, ReportStatus
from crm_reports.models.case import DashboardCase
from crm_reports.models.report import DashboardReport
from crm_reports.models.user import DashboardUser
from crm_reports.schemas.dashboardSchema import EmployeeOption
from crm_reports.schemas.reportSchema import ReportResponse

logger = logging.getLogger(__name__)


async def list_branches(db: AsyncSession) -> List[str]:
    try:
        result = await db.execute(
            select(distinct(DashboardCase.branch)).where(DashboardCase.branch.is_not(None))
        )
    except Exception as e:
        logger.error(f"Failed to load branches: {e}", exc_info=True)
        return [ALL]
    return [ALL, *sorted(b for b in result.scalars().all() if b)]


async def list_employees(db: AsyncSession) -> List[EmployeeOption]:
    try:
        result = await db.execute(
            select(DashboardUser.email, DashboardUser.full_name).order_by(DashboardUser.full_name.asc())
        )
    except Exception as e:
        logger.error(f"Failed to load employees: {e}", exc_info=True)
        return []
    return [EmployeeOption(email=email, name=name or email) for email, name in result.all()]


async def pending_reports(db: AsyncSession, limit: int = 50) -> List[ReportResponse]:
    try:
        result = await db.execute(
            select(DashboardReport)
            .where(DashboardReport.status == ReportStatus.pending)
            .order_by(DashboardReport.created_at.desc())
            .limit(limit)
        )
    except Exception as e:
        logger.error(f"Failed to load pending reports: {e}", exc_info=True)
        return []
    return [ReportResponse.model_validate(r) for r in result.scalars().all()]


def pending_export_rows(reports: List[ReportResponse]) -> List[dict]:
    return [
        {
            "id": r.id,
            "type": r.report_type.value,
            "by": r.author_name or r.author_email,
            "date": r.created_at.isoformat(),
            "status": r.status.value,
        }
        for r in reports
    ]
