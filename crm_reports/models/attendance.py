"""Attendance marks recorded by teachers."""

import uuid
from sqlalchemy import Column, String, Date
from crm_reports.models.base import Base, TimestampMixin


class DashboardAttendance(Base, TimestampMixin):
    __tablename__ = "dashboard_attendance"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    teacher_id = Column(String(36), nullable=True, index=True)
    student_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=True)
    attendance_date = Column(Date, nullable=True)
