"""Resolves the current principal from the auth claims and the users directory."""

import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_reports.constants.constants import Role
from crm_reports.models.user import DashboardUser
from crm_reports.schemas.reportSchema import Principal

logger = logging.getLogger(__name__)

# Checked in order; "super admin" must win over "admin"
_ROLE_MARKERS = (
    ("super", Role.super_admin),
    ("admin", Role.admin),
    ("teach", Role.teacher),
    ("counsel", Role.counselor),
    ("staff", Role.counselor),
)


def classify_role(raw: Optional[str]) -> Role:
    """Map any raw role label to a Role. Total: unknown labels become Role.other."""
    value = (raw or "").strip().lower()
    if not value:
        return Role.other
    for marker, role in _ROLE_MARKERS:
        if marker in value:
            return role
    return Role.other


async def resolve_principal(
    db: AsyncSession,
    email: str,
    role_hint: Optional[str] = None,
) -> Principal:
    """
    Combine the authenticated email with its dashboard_users record.

    Role order: users.role, then the auth provider's hint, then "other".
    A failed lookup degrades to the hint rather than failing the request.
    """
    email = email or ""
    user = None
    if email:
        try:
            result = await db.execute(
                select(DashboardUser).where(DashboardUser.email == email)
            )
            user = result.scalars().first()
        except Exception as e:
            logger.error(f"Users lookup failed for {email}: {e}", exc_info=True)

    raw_role = (user.role if user and user.role else None) or role_hint or "other"
    name = (user.full_name if user and user.full_name else None) or email or "User"

    return Principal(
        email=email,
        name=name,
        raw_role=str(raw_role),
        role=classify_role(raw_role),
    )
