"""Option lists feeding the Teacher and Counselor forms."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_reports.models.case import DashboardCase
from crm_reports.models.student import DashboardStudent
from crm_reports.models.teacher import DashboardTeacher, TeacherAssignment, TeacherStudent
from crm_reports.schemas.dashboardSchema import CaseOption, StudentOption

logger = logging.getLogger(__name__)

MATCH_SCAN_LIMIT = 500
FALLBACK_LIMIT = 200


async def find_teacher_id(db: AsyncSession, email: str):
    if not email:
        return None
    result = await db.execute(select(DashboardTeacher.id).where(DashboardTeacher.email == email))
    return result.scalars().first()


async def assigned_students(db: AsyncSession, teacher_email: str) -> List[StudentOption]:
    """
    Students a teacher reports on.

    Batch assignments match students on (program_title, batch_no); a teacher
    without assignments sees the first students on file. Explicit
    teacher-student mappings are always added on top.
    """
    try:
        teacher_id = await find_teacher_id(db, teacher_email)
        if not teacher_id:
            return []

        result = await db.execute(
            select(TeacherAssignment.service_name, TeacherAssignment.batch_no)
            .where(TeacherAssignment.teacher_id == teacher_id)
        )
        pairs = {(service, batch) for service, batch in result.all()}

        if pairs:
            result = await db.execute(select(DashboardStudent).limit(MATCH_SCAN_LIMIT))
            students = [
                s for s in result.scalars().all()
                if (s.program_title, s.batch_no) in pairs
            ]
        else:
            result = await db.execute(select(DashboardStudent).limit(FALLBACK_LIMIT))
            students = list(result.scalars().all())

        listed = [StudentOption(id=s.id, name=s.full_name or s.id) for s in students]
        known = {s.id for s in listed}

        result = await db.execute(
            select(TeacherStudent.student_id).where(TeacherStudent.teacher_id == teacher_id)
        )
        extra_ids = [sid for sid in result.scalars().all() if sid not in known]
        if extra_ids:
            result = await db.execute(select(DashboardStudent).where(DashboardStudent.id.in_(extra_ids)))
            listed.extend(StudentOption(id=s.id, name=s.full_name or s.id) for s in result.scalars().all())
        return listed
    except Exception as e:
        logger.error(f"Failed to load students for {teacher_email}: {e}", exc_info=True)
        return []


async def recent_cases(db: AsyncSession, limit: int = 200) -> List[CaseOption]:
    try:
        result = await db.execute(
            select(DashboardCase).order_by(DashboardCase.created_at.desc()).limit(limit)
        )
    except Exception as e:
        logger.error(f"Failed to load cases: {e}", exc_info=True)
        return []
    return [CaseOption.model_validate(c) for c in result.scalars().all()]
