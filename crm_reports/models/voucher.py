"""Cash vouchers used for the branch net financial figure."""

import uuid
from sqlalchemy import Column, String, Numeric
from crm_reports.models.base import Base, TimestampMixin


class Voucher(Base, TimestampMixin):
    __tablename__ = "vouchers"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    amount = Column(Numeric(14, 2), nullable=True)
    vtype = Column(String, nullable=True)
    branch = Column(String, nullable=True, index=True)
