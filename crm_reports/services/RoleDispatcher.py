"""Picks the dashboard view for a principal and assembles its data."""

import logging
from enum import Enum
from typing import AsyncGenerator, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_reports.constants.constants import ALL, HistoryScope, Role
from crm_reports.core.config import settings
from crm_reports.schemas.dashboardSchema import DashboardView
from crm_reports.schemas.reportSchema import Principal
from crm_reports.services.AdminDirectory import list_branches, list_employees, pending_reports
from crm_reports.services.DashboardAggregates import compute_snapshot
from crm_reports.services.ReportHistory import ReportHistory, load_history
from crm_reports.services.Roster import assigned_students, recent_cases
from crm_reports.services.SuperAdminSummary import report_kpis

logger = logging.getLogger(__name__)


class DashboardState(str, Enum):
    unresolved = "unresolved"
    teacher = "teacher"
    counselor = "counselor"
    admin = "admin"
    super_admin = "super_admin"
    other = "other"


STATE_FOR_ROLE = {
    Role.teacher: DashboardState.teacher,
    Role.counselor: DashboardState.counselor,
    Role.admin: DashboardState.admin,
    Role.super_admin: DashboardState.super_admin,
    Role.other: DashboardState.other,
}


class RoleDispatcher:
    """
    Starts unresolved and moves exactly once to the state for the resolved
    role. Once disposed, a late resolution is dropped and the state is left
    untouched.
    """

    def __init__(self):
        self.state = DashboardState.unresolved
        self.principal: Optional[Principal] = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        self._disposed = True

    def commit(self, principal: Principal) -> bool:
        if self._disposed or self.state != DashboardState.unresolved:
            return False
        self.principal = principal
        self.state = STATE_FOR_ROLE[principal.role]
        return True

    async def resolve(self, resolver: Callable[[], Awaitable[Principal]]) -> DashboardState:
        principal = await resolver()
        if not self.commit(principal):
            logger.debug("Dropped principal resolution for a disposed or resolved dispatcher")
        return self.state


async def aget_dispatcher() -> AsyncGenerator[RoleDispatcher, None]:
    """FastAPI dependency yielding a dispatcher that is disposed once the request is done."""
    dispatcher = RoleDispatcher()
    try:
        yield dispatcher
    finally:
        dispatcher.dispose()


async def build_view(
    db: AsyncSession,
    session_factory: async_sessionmaker,
    dispatcher: RoleDispatcher,
) -> DashboardView:
    """Assemble the data of the view matching the dispatcher's terminal state."""
    if dispatcher.state == DashboardState.unresolved or dispatcher.principal is None:
        raise RuntimeError("Dispatcher has not resolved a principal")

    principal = dispatcher.principal
    state = dispatcher.state
    view = DashboardView(
        state=state.value,
        role_label=principal.role_label,
        email=principal.email,
        name=principal.name,
    )

    if state == DashboardState.teacher:
        view.students = await assigned_students(db, principal.email)
        history = await ReportHistory.load(db, HistoryScope.self, principal, limit=settings.HISTORY_LIMIT)
        view.history = history.to_response()

    elif state == DashboardState.counselor:
        view.cases = await recent_cases(db, limit=settings.RECENT_CASES_LIMIT)
        history = await ReportHistory.load(db, HistoryScope.self, principal, limit=settings.HISTORY_LIMIT)
        view.history = history.to_response()

    elif state == DashboardState.admin:
        view.branches = await list_branches(db)
        view.employees = await list_employees(db)
        view.snapshot = await compute_snapshot(session_factory, ALL, settings.ATTENDANCE_WINDOW_DAYS)
        view.pending = await pending_reports(db, limit=settings.PENDING_LIMIT)
        history = await ReportHistory.load(db, HistoryScope.all, principal, limit=settings.HISTORY_LIMIT)
        view.history = history.to_response()

    elif state == DashboardState.super_admin:
        reports = await load_history(db, HistoryScope.all, "", limit=settings.SUPER_ADMIN_REPORT_LIMIT)
        view.kpis = report_kpis(reports)
        history = await ReportHistory.load(db, HistoryScope.all, principal, limit=settings.HISTORY_LIMIT)
        view.history = history.to_response()

    return view
