"""
Tests for role dispatch and the per-role dashboard views
"""
import asyncio

import pytest
from httpx import AsyncClient

from crm_reports.constants.constants import ReportStatus, ReportType, Role
from crm_reports.models.case import DashboardCase
from crm_reports.models.student import DashboardStudent
from crm_reports.models.teacher import DashboardTeacher, TeacherAssignment, TeacherStudent
from crm_reports.schemas.reportSchema import Principal
from crm_reports.services import RoleDispatcher as dispatcher_module
from crm_reports.services.RoleDispatcher import DashboardState, RoleDispatcher, aget_dispatcher, build_view
from crm_reports.services.Roster import assigned_students

from conftest import add_report, auth_headers_for


def principal(role: Role, email='user@example.com') -> Principal:
    return Principal(email=email, name='User', raw_role=role.value, role=role)


class TestRoleDispatcher:

    @pytest.mark.parametrize('role, state', [
        (Role.teacher, DashboardState.teacher),
        (Role.counselor, DashboardState.counselor),
        (Role.admin, DashboardState.admin),
        (Role.super_admin, DashboardState.super_admin),
        (Role.other, DashboardState.other),
    ])
    def test_commit_moves_to_role_state(self, role, state):
        dispatcher = RoleDispatcher()
        assert dispatcher.state == DashboardState.unresolved

        assert dispatcher.commit(principal(role)) is True
        assert dispatcher.state == state

    def test_state_is_terminal(self):
        dispatcher = RoleDispatcher()
        dispatcher.commit(principal(Role.teacher))

        assert dispatcher.commit(principal(Role.admin)) is False
        assert dispatcher.state == DashboardState.teacher

    @pytest.mark.asyncio
    async def test_late_resolution_after_dispose_is_dropped(self):
        dispatcher = RoleDispatcher()
        release = asyncio.Event()

        async def slow_resolver():
            await release.wait()
            return principal(Role.admin)

        task = asyncio.create_task(dispatcher.resolve(slow_resolver))
        await asyncio.sleep(0)
        dispatcher.dispose()
        release.set()

        assert await task == DashboardState.unresolved
        assert dispatcher.principal is None

    @pytest.mark.asyncio
    async def test_dependency_disposes_on_exit(self):
        dependency = aget_dispatcher()
        dispatcher = await dependency.__anext__()
        assert dispatcher.disposed is False

        await dependency.aclose()

        assert dispatcher.disposed is True
        assert dispatcher.commit(principal(Role.admin)) is False
        assert dispatcher.state == DashboardState.unresolved

    @pytest.mark.asyncio
    async def test_build_view_requires_resolution(self, db_session, session_factory):
        with pytest.raises(RuntimeError):
            await build_view(db_session, session_factory, RoleDispatcher())


class TestDashboardViews:

    @pytest.mark.asyncio
    async def test_teacher_view(self, client: AsyncClient, teacher_headers, db_session):
        db_session.add_all([
            DashboardTeacher(id='t-1', email='teacher@example.com'),
            DashboardStudent(id='S-1', full_name='Ama'),
        ])
        await db_session.commit()
        await add_report(db_session, 'teacher@example.com')

        response = await client.get('/api/v1/dashboard', headers=teacher_headers)

        assert response.status_code == 200
        body = response.json()
        assert body['state'] == 'teacher'
        assert body['role_label'] == 'Teacher'
        assert body['students'] == [{'id': 'S-1', 'name': 'Ama'}]
        assert body['history']['total'] == 1
        assert body['history']['allow_moderation'] is False
        assert 'snapshot' not in body

    @pytest.mark.asyncio
    async def test_counselor_view(self, client: AsyncClient, counselor_headers, db_session):
        db_session.add(DashboardCase(id='case-1', case_number='C-1', status='In Progress'))
        await db_session.commit()

        response = await client.get('/api/v1/dashboard', headers=counselor_headers)

        body = response.json()
        assert body['state'] == 'counselor'
        assert [c['id'] for c in body['cases']] == ['case-1']
        assert 'students' not in body

    @pytest.mark.asyncio
    async def test_admin_view(self, client: AsyncClient, admin_headers, db_session):
        db_session.add(DashboardCase(status='In Progress', branch='Accra'))
        await db_session.commit()
        await add_report(db_session, 'teacher@example.com')
        await add_report(db_session, 'teacher@example.com', status=ReportStatus.approved)

        response = await client.get('/api/v1/dashboard', headers=admin_headers)

        body = response.json()
        assert body['state'] == 'admin'
        assert body['branches'] == ['All', 'Accra']
        assert body['snapshot']['branch'] == 'All'
        assert body['snapshot']['finance_display'] == 'N/A'
        assert body['snapshot']['active_cases'] == 1
        assert len(body['pending']) == 1
        assert body['history']['total'] == 2
        assert body['history']['allow_moderation'] is True

    @pytest.mark.asyncio
    async def test_super_admin_view(self, client: AsyncClient, super_admin_headers, db_session):
        await add_report(db_session, 'teacher@example.com')
        await add_report(db_session, 'counselor@example.com', report_type=ReportType.case_progress, role='Counselor')

        response = await client.get('/api/v1/dashboard', headers=super_admin_headers)

        body = response.json()
        assert body['state'] == 'super_admin'
        assert body['role_label'] == 'Super Admin'
        assert body['kpis'] == {'total': 2, 'by_type': {'class': 1, 'case_progress': 1}}
        assert body['history']['total'] == 2

    @pytest.mark.asyncio
    async def test_other_view(self, client: AsyncClient):
        response = await client.get(
            '/api/v1/dashboard', headers=auth_headers_for('guest@example.com', role_hint='Accountant')
        )

        body = response.json()
        assert body['state'] == 'other'
        assert body['role_label'] == 'Other'
        assert 'history' not in body

    @pytest.mark.asyncio
    async def test_anonymous_view(self, client: AsyncClient):
        response = await client.get('/api/v1/dashboard')

        assert response.json()['state'] == 'other'
        assert response.json()['email'] == ''

    @pytest.mark.asyncio
    async def test_dispatcher_is_disposed_after_request(self, client: AsyncClient, admin_headers, monkeypatch):
        created = []

        class TrackedDispatcher(RoleDispatcher):
            def __init__(self):
                super().__init__()
                created.append(self)

        monkeypatch.setattr(dispatcher_module, 'RoleDispatcher', TrackedDispatcher)

        response = await client.get('/api/v1/dashboard', headers=admin_headers)

        assert response.json()['state'] == 'admin'
        assert len(created) == 1
        assert created[0].disposed is True
        assert created[0].state == DashboardState.admin
        assert created[0].commit(principal(Role.teacher)) is False


class TestRoster:

    @pytest.mark.asyncio
    async def test_unknown_teacher_has_no_students(self, db_session):
        assert await assigned_students(db_session, 'nobody@example.com') == []

    @pytest.mark.asyncio
    async def test_assignments_match_program_and_batch(self, db_session):
        db_session.add_all([
            DashboardTeacher(id='t-1', email='teacher@example.com'),
            TeacherAssignment(teacher_id='t-1', service_name='IELTS', batch_no='B12'),
            DashboardStudent(id='S-1', full_name='Ama', program_title='IELTS', batch_no='B12'),
            DashboardStudent(id='S-2', full_name='Kojo', program_title='IELTS', batch_no='B13'),
            DashboardStudent(id='S-3', full_name=None, program_title='PTE', batch_no='B12'),
            TeacherStudent(teacher_id='t-1', student_id='S-3'),
        ])
        await db_session.commit()

        students = await assigned_students(db_session, 'teacher@example.com')

        assert [(s.id, s.name) for s in students] == [('S-1', 'Ama'), ('S-3', 'S-3')]

    @pytest.mark.asyncio
    async def test_without_assignments_lists_students_on_file(self, db_session):
        db_session.add_all([
            DashboardTeacher(id='t-1', email='teacher@example.com'),
            DashboardStudent(id='S-1', full_name='Ama'),
            DashboardStudent(id='S-2', full_name='Kojo'),
        ])
        await db_session.commit()

        students = await assigned_students(db_session, 'teacher@example.com')

        assert {s.id for s in students} == {'S-1', 'S-2'}

    @pytest.mark.asyncio
    async def test_roster_endpoint_requires_teacher(self, client: AsyncClient, counselor_headers):
        response = await client.get('/api/v1/dashboard/teacher/students', headers=counselor_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cases_endpoint_for_counselor(self, client: AsyncClient, counselor_headers, db_session):
        db_session.add(DashboardCase(id='case-9', case_number='C-9', student_info={'full_name': 'Efua'}))
        await db_session.commit()

        response = await client.get('/api/v1/dashboard/counselor/cases', headers=counselor_headers)

        assert response.status_code == 200
        assert response.json()[0]['student_info'] == {'full_name': 'Efua'}
