"""
Aggregate counts for the Admin and Super Admin views.

Every figure is its own read on its own session. The reads are started
together and joined before the snapshot is built, so a response never mixes
finished and unfinished figures. They are still separate reads taken at
slightly different instants, not one consistent snapshot.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_reports.constants.constants import ACTIVE_CASE_STATUS, ALL, CASH_OUT
from crm_reports.models.attendance import DashboardAttendance
from crm_reports.models.case import DashboardCase
from crm_reports.models.report import DashboardReport
from crm_reports.models.student import DashboardStudent
from crm_reports.models.teacher import DashboardTeacher, TeacherAssignment
from crm_reports.models.voucher import Voucher
from crm_reports.schemas.dashboardSchema import AggregateSnapshot, EmployeePerformance

logger = logging.getLogger(__name__)

Query = Callable[..., Awaitable[Any]]


@dataclass
class AggregateResult:
    label: str
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_labelled(
    session_factory: async_sessionmaker,
    label: str,
    query: Query,
    *args,
) -> AggregateResult:
    """Run one aggregate query on a fresh session and capture its outcome."""
    try:
        async with session_factory() as session:
            value = await query(session, *args)
        return AggregateResult(label=label, value=value)
    except Exception as e:
        logger.error(f"Aggregate '{label}' failed: {e}", exc_info=True)
        return AggregateResult(label=label, error=str(e))


async def gather_labelled(
    session_factory: async_sessionmaker,
    queries: Dict[str, tuple],
) -> Dict[str, AggregateResult]:
    """Fan out {label: (query, *args)} and join every result before returning."""
    results: List[AggregateResult] = await asyncio.gather(*(
        run_labelled(session_factory, label, call[0], *call[1:])
        for label, call in queries.items()
    ))
    return {r.label: r for r in results}


# ------------------------------
# Individual reads
# ------------------------------

async def count_students(session: AsyncSession) -> int:
    # dashboard_students has no branch column, so this is always global
    result = await session.execute(select(func.count()).select_from(DashboardStudent))
    return result.scalar_one() or 0


async def count_active_cases(session: AsyncSession, branch: str) -> int:
    query = select(func.count()).select_from(DashboardCase).where(DashboardCase.status == ACTIVE_CASE_STATUS)
    if branch != ALL:
        query = query.where(DashboardCase.branch == branch)
    result = await session.execute(query)
    return result.scalar_one() or 0


async def count_assigned_teachers(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(distinct(TeacherAssignment.teacher_id))))
    return result.scalar_one() or 0


async def count_recent_attendance(session: AsyncSession, days: int) -> int:
    since = datetime.utcnow() - timedelta(days=days)
    result = await session.execute(
        select(func.count()).select_from(DashboardAttendance).where(DashboardAttendance.created_at >= since)
    )
    return result.scalar_one() or 0


def net_amount(vouchers) -> Decimal:
    """Sum of voucher amounts; cash_out vouchers subtract, every other type adds."""
    total = Decimal(0)
    for amount, vtype in vouchers:
        value = Decimal(str(amount or 0))
        total += -value if vtype == CASH_OUT else value
    return total


async def branch_net_finance(session: AsyncSession, branch: str) -> Decimal:
    result = await session.execute(
        select(Voucher.amount, Voucher.vtype).where(Voucher.branch == branch)
    )
    return net_amount(result.all())


async def count_employee_cases(session: AsyncSession, email: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(DashboardCase).where(DashboardCase.employee == email)
    )
    return result.scalar_one() or 0


async def count_employee_reports(session: AsyncSession, email: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(DashboardReport).where(DashboardReport.author_email == email)
    )
    return result.scalar_one() or 0


async def count_teacher_attendance(session: AsyncSession, email: str) -> int:
    result = await session.execute(select(DashboardTeacher.id).where(DashboardTeacher.email == email))
    teacher_id = result.scalars().first()
    if not teacher_id:
        return 0
    result = await session.execute(
        select(func.count()).select_from(DashboardAttendance).where(DashboardAttendance.teacher_id == teacher_id)
    )
    return result.scalar_one() or 0


# ------------------------------
# Views
# ------------------------------

async def compute_snapshot(
    session_factory: async_sessionmaker,
    branch: str = ALL,
    attendance_days: int = 30,
) -> AggregateSnapshot:
    branch = branch or ALL
    queries = {
        "students": (count_students,),
        "active_cases": (count_active_cases, branch),
        "teachers": (count_assigned_teachers,),
        "attendance": (count_recent_attendance, attendance_days),
    }
    if branch != ALL:
        queries["finance"] = (branch_net_finance, branch)

    results = await gather_labelled(session_factory, queries)

    snapshot = AggregateSnapshot(branch=branch)
    for label, result in results.items():
        if not result.ok:
            snapshot.errors[label] = result.error
            continue
        setattr(snapshot, label, result.value)
    return snapshot


async def employee_performance(
    session_factory: async_sessionmaker,
    email: str,
) -> EmployeePerformance:
    results = await gather_labelled(session_factory, {
        "cases": (count_employee_cases, email),
        "reports": (count_employee_reports, email),
        "attendance": (count_teacher_attendance, email),
    })

    summary = EmployeePerformance(email=email)
    for label, result in results.items():
        if result.ok:
            setattr(summary, label, result.value)
        else:
            summary.errors[label] = result.error
    return summary
