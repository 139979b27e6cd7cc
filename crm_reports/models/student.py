"""Student records."""

from sqlalchemy import Column, String
from crm_reports.models.base import Base, TimestampMixin


class DashboardStudent(Base, TimestampMixin):
    __tablename__ = "dashboard_students"
    id = Column(String, primary_key=True)
    full_name = Column(String, nullable=True)
    program_title = Column(String, nullable=True)
    batch_no = Column(String, nullable=True)
