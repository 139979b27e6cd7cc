"""Report model for the dashboard reporting subsystem."""

import uuid
from sqlalchemy import Column, String, Enum, JSON
from crm_reports.constants.constants import ReportStatus, ReportType
from crm_reports.models.base import Base, TimestampMixin, enum_values


class DashboardReport(Base, TimestampMixin):
    """Model representing one report submitted from a role view."""

    __tablename__ = "dashboard_reports"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    report_type = Column(
        Enum(ReportType, values_callable=enum_values, native_enum=False, length=32),
        nullable=False,
        index=True,
    )
    role = Column(String, nullable=False, index=True)
    status = Column(
        Enum(ReportStatus, values_callable=enum_values, native_enum=False, length=16),
        nullable=False,
        default=ReportStatus.pending,
        index=True,
    )
    author_email = Column(String, nullable=False, index=True)
    author_name = Column(String, nullable=True)
    branch = Column(String, nullable=True, index=True)
    batch_no = Column(String, nullable=True, index=True)
    student_id = Column(String, nullable=True)
    case_id = Column(String, nullable=True)
    payload = Column(JSON, nullable=False, default=dict)
