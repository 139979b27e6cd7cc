"""
Tests for report submission endpoints and the submission saga
"""
from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from crm_reports.constants.constants import ReportStatus, ReportType, Role
from crm_reports.models.attendance import DashboardAttendance
from crm_reports.models.case import DashboardCase
from crm_reports.models.report import DashboardReport
from crm_reports.schemas.reportSchema import ClassReportForm, Principal
from crm_reports.services.ReportSubmission import (
    ReportSubmissionError,
    SubmissionStage,
    attendance_summary,
    submit_class_report,
)

CLASS_REPORT = {
    'date': '2024-05-01',
    'batch': 'IELTS-B12',
    'topics': 'Reading',
    'present': '18',
    'progress': 'Good',
}


class TestClassReportSubmission:

    @pytest.mark.asyncio
    async def test_submit_without_files(self, client: AsyncClient, teacher_headers, storage, db_session):
        response = await client.post('/api/v1/reports/class', data=CLASS_REPORT, headers=teacher_headers)

        assert response.status_code == 201
        body = response.json()
        report = body['report']
        assert report['report_type'] == 'class'
        assert report['status'] == 'Pending'
        assert report['role'] == 'Teacher'
        assert report['author_email'] == 'teacher@example.com'
        assert report['author_name'] == 'Tina Teacher'
        assert report['batch_no'] == 'IELTS-B12'
        assert report['payload']['present'] == 18
        assert 'files' not in report['payload']
        assert body['files'] == []
        assert storage.ensure_calls == 0
        assert storage.upload_calls == 0

        stored = await db_session.get(DashboardReport, report['id'])
        assert stored is not None
        assert stored.status == ReportStatus.pending

    @pytest.mark.asyncio
    async def test_submit_with_files(self, client: AsyncClient, teacher_headers, storage):
        storage.fail_names = {'broken.pdf'}
        files = [
            ('files', ('notes.pdf', b'%PDF-1.4 notes', 'application/pdf')),
            ('files', ('broken.pdf', b'%PDF-1.4 broken', 'application/pdf')),
        ]

        response = await client.post(
            '/api/v1/reports/class', data=CLASS_REPORT, files=files, headers=teacher_headers
        )

        assert response.status_code == 201
        body = response.json()
        report_id = body['report']['id']

        stored_files = body['report']['payload']['files']
        assert len(stored_files) == 1
        assert stored_files[0]['name'] == 'notes.pdf'
        assert stored_files[0]['path'].startswith(f'teacher@example.com/{report_id}/')
        assert stored_files[0]['path'].endswith('_notes.pdf')
        assert stored_files[0]['url'] == f"https://files.test/report-attachments/{stored_files[0]['path']}"

        outcomes = {o['name']: o for o in body['files']}
        assert outcomes['notes.pdf']['ok'] is True
        assert outcomes['broken.pdf']['ok'] is False
        assert outcomes['broken.pdf']['error']
        assert storage.ensure_calls == 1

    @pytest.mark.asyncio
    async def test_all_files_failing_still_writes_report(self, client: AsyncClient, teacher_headers, storage):
        storage.fail_names = {'broken.pdf'}
        files = [('files', ('broken.pdf', b'data', 'application/pdf'))]

        response = await client.post(
            '/api/v1/reports/class', data=CLASS_REPORT, files=files, headers=teacher_headers
        )

        assert response.status_code == 201
        assert 'files' not in response.json()['report']['payload']
        assert response.json()['files'][0]['ok'] is False

    @pytest.mark.asyncio
    async def test_incomplete_form_rejected(self, client: AsyncClient, teacher_headers, db_session):
        data = {**CLASS_REPORT, 'progress': ' '}

        response = await client.post('/api/v1/reports/class', data=data, headers=teacher_headers)

        assert response.status_code == 400
        count = await db_session.scalar(select(func.count()).select_from(DashboardReport))
        assert count == 0

    @pytest.mark.asyncio
    async def test_counselor_cannot_submit_class_report(self, client: AsyncClient, counselor_headers):
        response = await client.post('/api/v1/reports/class', data=CLASS_REPORT, headers=counselor_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_anonymous_cannot_submit(self, client: AsyncClient):
        response = await client.post('/api/v1/reports/class', data=CLASS_REPORT)

        assert response.status_code == 403


class TestStudentPerformanceSubmission:

    @pytest.mark.asyncio
    async def test_attendance_summary_is_attached(self, client: AsyncClient, teacher_headers, db_session):
        today = date(2024, 5, 20)
        for offset, mark in enumerate(['present', 'present', 'absent', 'late']):
            db_session.add(DashboardAttendance(
                student_id='S-1', status=mark, attendance_date=today - timedelta(days=offset)
            ))
        db_session.add(DashboardAttendance(student_id='S-2', status='absent', attendance_date=today))
        await db_session.commit()

        response = await client.post('/api/v1/reports/student-performance', data={
            'student_id': 'S-1',
            'participation': 'Active',
            'acad_progress': 'Excellent',
        }, headers=teacher_headers)

        assert response.status_code == 201
        report = response.json()['report']
        assert report['report_type'] == 'student_performance'
        assert report['student_id'] == 'S-1'
        assert report['payload']['attendance_summary'] == {'present': 2, 'absent': 1, 'late': 1}

    @pytest.mark.asyncio
    async def test_summary_empty_without_marks(self, db_session):
        assert await attendance_summary(db_session, 'nobody') == {}


class TestCaseProgressSubmission:

    @pytest.mark.asyncio
    async def test_case_fields_copied_onto_report(self, client: AsyncClient, counselor_headers, db_session):
        db_session.add(DashboardCase(
            id='case-1',
            case_number='C-100',
            title='Visa file',
            status='In Progress',
            student_info={'full_name': 'Ama Mensah'},
            branch='Accra',
        ))
        await db_session.commit()

        response = await client.post('/api/v1/reports/case-progress', data={
            'case_id': 'case-1',
            'status': 'In Progress',
            'notes': 'Documents received',
        }, headers=counselor_headers)

        assert response.status_code == 201
        report = response.json()['report']
        assert report['report_type'] == 'case_progress'
        assert report['role'] == 'Counselor'
        assert report['case_id'] == 'case-1'
        assert report['branch'] == 'Accra'
        assert report['payload']['case_number'] == 'C-100'
        assert report['payload']['student'] == 'Ama Mensah'
        assert report['payload']['status'] == 'In Progress'

    @pytest.mark.asyncio
    async def test_student_falls_back_to_case_title(self, client: AsyncClient, counselor_headers, db_session):
        db_session.add(DashboardCase(id='case-2', case_number='C-200', title='Transfer', status='Pending'))
        await db_session.commit()

        response = await client.post('/api/v1/reports/case-progress', data={
            'case_id': 'case-2',
            'status': 'Completed',
            'next_steps': 'Close file',
        }, headers=counselor_headers)

        assert response.status_code == 201
        assert response.json()['report']['payload']['student'] == 'Transfer'
        assert response.json()['report']['branch'] is None

    @pytest.mark.asyncio
    async def test_unknown_case(self, client: AsyncClient, counselor_headers):
        response = await client.post('/api/v1/reports/case-progress', data={
            'case_id': 'missing',
            'status': 'Completed',
            'notes': 'x',
        }, headers=counselor_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_teacher_cannot_submit_case_progress(self, client: AsyncClient, teacher_headers):
        response = await client.post('/api/v1/reports/case-progress', data={
            'case_id': 'case-1',
            'status': 'Completed',
            'notes': 'x',
        }, headers=teacher_headers)

        assert response.status_code == 403


class BrokenSession:
    """Session whose commit always fails."""

    def __init__(self):
        self.rolled_back = False

    def add(self, instance):
        pass

    async def commit(self):
        raise RuntimeError('database unavailable')

    async def refresh(self, instance):
        pass

    async def rollback(self):
        self.rolled_back = True


class TestSubmissionSaga:

    @pytest.mark.asyncio
    async def test_failed_write_reports_orphaned_files(self, storage):
        from io import BytesIO
        from fastapi import UploadFile

        principal = Principal(email='t@example.com', name='T', raw_role='Teacher', role=Role.teacher)
        form = ClassReportForm(**{**CLASS_REPORT, 'present': 18})
        upload = UploadFile(file=BytesIO(b'abc'), filename='plan.docx')
        session = BrokenSession()

        with pytest.raises(ReportSubmissionError) as exc_info:
            await submit_class_report(session, storage, principal, form, [upload])

        error = exc_info.value
        assert error.stage == SubmissionStage.uploaded
        assert len(error.orphaned_files) == 1
        assert error.orphaned_files[0].endswith('_plan.docx')
        assert error.orphaned_files[0] in storage.objects
        assert session.rolled_back is True

    @pytest.mark.asyncio
    async def test_failed_write_without_files(self, storage):
        principal = Principal(email='t@example.com', name='T', raw_role='Teacher', role=Role.teacher)
        form = ClassReportForm(**{**CLASS_REPORT, 'present': 18})

        with pytest.raises(ReportSubmissionError) as exc_info:
            await submit_class_report(BrokenSession(), storage, principal, form)

        assert exc_info.value.stage == SubmissionStage.started
        assert exc_info.value.orphaned_files == []
        assert storage.upload_calls == 0

    @pytest.mark.asyncio
    async def test_report_type_stored(self, db_session, storage):
        principal = Principal(email='t@example.com', name='T', raw_role='Teacher', role=Role.teacher)
        form = ClassReportForm(**{**CLASS_REPORT, 'present': 0})

        result = await submit_class_report(db_session, storage, principal, form)

        assert result.stage == SubmissionStage.written
        assert result.report.report_type == ReportType.class_report
        assert result.report.payload['present'] == 0
