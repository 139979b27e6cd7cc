"""Report history loading, client-side filtering and moderation."""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crm_reports.constants.constants import (
    ALL,
    MODERATOR_ROLES,
    HistoryScope,
    ReportStatus,
)
from crm_reports.models.report import DashboardReport
from crm_reports.schemas.reportSchema import HistoryResponse, Principal, ReportResponse

logger = logging.getLogger(__name__)

MODERATION_TARGETS = (ReportStatus.approved, ReportStatus.rejected)


class ModerationForbidden(PermissionError):
    pass


def _text(value) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


def _payload_json(payload) -> str:
    # Compact separators keep the search text identical to JSON.stringify output
    return json.dumps(payload or {}, separators=(",", ":"), ensure_ascii=False, default=str)


def search_text(row: ReportResponse) -> str:
    return " ".join([
        _text(row.report_type),
        row.author_name or "",
        row.author_email or "",
        _text(row.status),
        _payload_json(row.payload),
    ]).lower()


def filter_reports(
    rows: Iterable[ReportResponse],
    search: str = "",
    status: str = ALL,
    report_type: str = ALL,
) -> List[ReportResponse]:
    """Rows matching the status, type and free-text filters, in their original order."""
    needle = (search or "").lower()
    status = status or ALL
    report_type = report_type or ALL
    out = []
    for row in rows:
        if status != ALL and _text(row.status) != status:
            continue
        if report_type != ALL and _text(row.report_type) != report_type:
            continue
        if needle and needle not in search_text(row):
            continue
        out.append(row)
    return out


def available_types(rows: Iterable[ReportResponse]) -> List[str]:
    seen = []
    for row in rows:
        value = _text(row.report_type)
        if value not in seen:
            seen.append(value)
    return [ALL, *seen]


def can_moderate(principal: Principal) -> bool:
    return principal.role in MODERATOR_ROLES


async def load_history(
    db: AsyncSession,
    scope: HistoryScope,
    email: str,
    limit: int = 200,
) -> List[ReportResponse]:
    """Newest reports first; scope=self keeps only the author's own. Read failures yield an empty list."""
    query = select(DashboardReport).order_by(DashboardReport.created_at.desc())
    if scope == HistoryScope.self:
        query = query.where(DashboardReport.author_email == email)
    try:
        result = await db.execute(query.limit(limit))
    except Exception as e:
        logger.error(f"Failed to load report history ({scope.value}): {e}", exc_info=True)
        return []
    return [ReportResponse.model_validate(r) for r in result.scalars().all()]


async def moderate_report(
    db: AsyncSession,
    report_id: str,
    target: ReportStatus,
    principal: Principal,
) -> Optional[ReportResponse]:
    """
    Move a Pending report to Approved or Rejected with a single update.

    Returns None for an unknown id. A report that is no longer Pending is
    returned unchanged. Two moderators racing on one report: last write wins.
    """
    if not can_moderate(principal):
        raise ModerationForbidden("Only Admin and Super Admin can moderate reports")
    target = ReportStatus(target)
    if target not in MODERATION_TARGETS:
        raise ValueError("Status must be either 'Approved' or 'Rejected'")

    report = await db.get(DashboardReport, report_id)
    if report is None:
        return None
    current = ReportResponse.model_validate(report)
    if current.status != ReportStatus.pending:
        logger.info(f"Report {report_id} already {current.status.value}; moderation skipped")
        return current

    result = await db.execute(
        update(DashboardReport)
        .where(DashboardReport.id == report_id, DashboardReport.status == ReportStatus.pending)
        .values(status=target, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount != 1:
        return current
    logger.info(f"Report {report_id} {target.value} by {principal.email}")
    return current.model_copy(update={"status": target})


class ReportHistory:
    """Loaded report rows plus the filter inputs applied over them."""

    def __init__(
        self,
        rows: List[ReportResponse],
        search: str = "",
        status: str = ALL,
        report_type: str = ALL,
        allow_moderation: bool = False,
    ):
        self.rows = list(rows)
        self.search = search
        self.status = status
        self.report_type = report_type
        self.allow_moderation = allow_moderation

    @classmethod
    async def load(
        cls,
        db: AsyncSession,
        scope: HistoryScope,
        principal: Principal,
        limit: int = 200,
        **filters,
    ) -> "ReportHistory":
        rows = await load_history(db, scope, principal.email, limit=limit)
        return cls(rows, allow_moderation=can_moderate(principal), **filters)

    @property
    def types(self) -> List[str]:
        return available_types(self.rows)

    @property
    def filtered(self) -> List[ReportResponse]:
        return filter_reports(self.rows, self.search, self.status, self.report_type)

    async def moderate(
        self,
        db: AsyncSession,
        report_id: str,
        target: ReportStatus,
        principal: Principal,
    ) -> Optional[ReportResponse]:
        """Moderate one row and patch it in place without reloading the table."""
        if not self.allow_moderation:
            raise ModerationForbidden("Moderation is not enabled for this history")
        row = next((r for r in self.rows if r.id == report_id), None)
        if row is None or row.status != ReportStatus.pending:
            return row
        updated = await moderate_report(db, report_id, target, principal)
        if updated is not None:
            self.rows = [updated if r.id == report_id else r for r in self.rows]
        return updated

    def to_response(self) -> HistoryResponse:
        filtered = self.filtered
        return HistoryResponse(
            reports=filtered,
            types=self.types,
            total=len(filtered),
            allow_moderation=self.allow_moderation,
        )
