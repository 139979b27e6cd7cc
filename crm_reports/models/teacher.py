"""Teachers, their batch assignments and explicit student mappings."""

import uuid
from sqlalchemy import Column, String, ForeignKey
from crm_reports.models.base import Base, TimestampMixin


class DashboardTeacher(Base, TimestampMixin):
    __tablename__ = "dashboard_teachers"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, index=True, nullable=True)
    full_name = Column(String, nullable=True)


class TeacherAssignment(Base, TimestampMixin):
    """A teacher assigned to a (service, batch) pair."""

    __tablename__ = "dashboard_teacher_assignments"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    teacher_id = Column(String(36), ForeignKey("dashboard_teachers.id"), nullable=False, index=True)
    service_name = Column(String, nullable=True)
    batch_no = Column(String, nullable=True)


class TeacherStudent(Base, TimestampMixin):
    """Explicit teacher to student mapping outside of batch assignments."""

    __tablename__ = "dashboard_teacher_student"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    teacher_id = Column(String(36), ForeignKey("dashboard_teachers.id"), nullable=False, index=True)
    student_id = Column(String, ForeignKey("dashboard_students.id"), nullable=False)
