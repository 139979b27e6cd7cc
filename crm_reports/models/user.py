"""Dashboard user directory, the source of each principal's role."""

import uuid
from sqlalchemy import Column, String
from crm_reports.models.base import Base, TimestampMixin


class DashboardUser(Base, TimestampMixin):
    __tablename__ = "dashboard_users"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=True)
    branch = Column(String, nullable=True)
