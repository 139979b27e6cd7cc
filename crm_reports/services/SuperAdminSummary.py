"""Report KPIs and export rows for the Super Admin view."""

from collections import Counter
from datetime import datetime
from typing import Iterable, List, Optional

from crm_reports.constants.constants import ALL
from crm_reports.schemas.dashboardSchema import ReportKpis
from crm_reports.schemas.reportSchema import ReportResponse


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.replace(tzinfo=None) - value.utcoffset()


def filter_by_role_and_dates(
    reports: Iterable[ReportResponse],
    role: str = ALL,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> List[ReportResponse]:
    """Keep reports by role label with created_at inside [date_from, date_to]."""
    date_from, date_to = _naive(date_from), _naive(date_to)
    out = []
    for r in reports:
        if role and role != ALL and r.role != role:
            continue
        created = _naive(r.created_at)
        if date_from and created < date_from:
            continue
        if date_to and created > date_to:
            continue
        out.append(r)
    return out


def report_kpis(reports: List[ReportResponse]) -> ReportKpis:
    by_type = Counter(r.report_type.value for r in reports)
    return ReportKpis(total=len(reports), by_type=dict(by_type))


def summary_export_rows(reports: List[ReportResponse]) -> List[dict]:
    return [
        {
            "id": r.id,
            "date": r.created_at.isoformat(),
            "role": r.role,
            "type": r.report_type.value,
            "by": r.author_name or r.author_email,
            "status": r.status.value,
        }
        for r in reports
    ]
