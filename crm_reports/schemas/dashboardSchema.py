from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, computed_field

from crm_reports.schemas.reportSchema import HistoryResponse, ReportResponse


class AggregateSnapshot(BaseModel):
    """Dashboard counts for a branch selection. Recomputed on every request."""
    branch: str
    students: int = 0
    active_cases: int = 0
    teachers: int = 0
    attendance: int = 0
    finance: Optional[Decimal] = None
    errors: Dict[str, str] = Field(default_factory=dict)

    @computed_field
    @property
    def finance_display(self) -> str:
        if self.finance is None:
            return "N/A"
        # normalize() drops trailing zeros; "f" keeps large values out of exponent form
        return format(self.finance.normalize(), "f")


class EmployeePerformance(BaseModel):
    email: str
    cases: int = 0
    reports: int = 0
    attendance: int = 0
    errors: Dict[str, str] = Field(default_factory=dict)


class EmployeeOption(BaseModel):
    email: str
    name: str


class StudentOption(BaseModel):
    id: str
    name: str


class CaseOption(BaseModel):
    id: str
    case_number: Optional[str] = None
    title: Optional[str] = None
    status: Optional[str] = None
    student_info: Optional[Dict[str, Any]] = None
    branch: Optional[str] = None

    class Config:
        from_attributes = True


class ReportKpis(BaseModel):
    total: int
    by_type: Dict[str, int]


class SuperAdminSummary(BaseModel):
    role: str
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    kpis: ReportKpis
    reports: List[ReportResponse]


class DashboardView(BaseModel):
    """Payload of the view the dispatcher selected for the principal."""
    state: str
    role_label: str
    email: str
    name: str
    students: Optional[List[StudentOption]] = None
    cases: Optional[List[CaseOption]] = None
    branches: Optional[List[str]] = None
    employees: Optional[List[EmployeeOption]] = None
    snapshot: Optional[AggregateSnapshot] = None
    pending: Optional[List[ReportResponse]] = None
    kpis: Optional[ReportKpis] = None
    history: Optional[HistoryResponse] = None
