"""Counseling case records referenced by case progress reports."""

import uuid
from sqlalchemy import Column, String, JSON
from crm_reports.models.base import Base, TimestampMixin


class DashboardCase(Base, TimestampMixin):
    __tablename__ = "dashboard_cases"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    case_number = Column(String, nullable=True)
    title = Column(String, nullable=True)
    status = Column(String, nullable=True, index=True)
    student_info = Column(JSON, nullable=True)
    branch = Column(String, nullable=True, index=True)
    employee = Column(String, nullable=True, index=True)
