"""
CRM Reports - Test Configuration and Fixtures
"""
import os
from datetime import datetime, timedelta
from importlib import import_module
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from faker import Faker

# Set testing environment
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['ALGORITHM'] = 'HS256'
os.environ['RATE_LIMIT_SUBMIT'] = '1000/minute'

from crm_reports.main import app
from crm_reports.core.config import settings
from crm_reports.core.database import aget_db, aget_session_factory
from crm_reports.core.security import create_jwt_token
from crm_reports.constants.constants import ReportStatus, ReportType
from crm_reports.models.base import Base
from crm_reports.models.report import DashboardReport
from crm_reports.models.user import DashboardUser
from crm_reports.services.S3Service import ObjectExistsError, get_attachment_storage

for model in settings.DB_MODELS:
    import_module(model)

fake = Faker()


class FakeStorage:
    """In-memory stand-in for the S3 attachment bucket."""

    def __init__(self):
        self.objects = {}
        self.ensure_calls = 0
        self.upload_calls = 0
        self.fail_names = set()

    def ensure_bucket(self):
        self.ensure_calls += 1

    def upload(self, path, body, content_type=None):
        self.upload_calls += 1
        if path in self.objects:
            raise ObjectExistsError(path)
        if any(path.endswith(f"_{name}") for name in self.fail_names):
            raise RuntimeError("storage rejected the upload")
        self.objects[path] = body.read()

    def public_url(self, path):
        return f"https://files.test/report-attachments/{path}"


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
async def client(session_factory, storage) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and storage overrides"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[aget_db] = override_get_db
    app.dependency_overrides[aget_session_factory] = lambda: session_factory
    app.dependency_overrides[get_attachment_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(session: AsyncSession, role: str, email: str = None, name: str = None) -> DashboardUser:
    user = DashboardUser(email=email or fake.unique.email(), full_name=name or fake.name(), role=role)
    session.add(user)
    await session.commit()
    return user


def auth_headers_for(email: str, role_hint: str = None) -> dict:
    claims = {'email': email}
    if role_hint:
        claims['user_metadata'] = {'role': role_hint}
    return {'Authorization': f'Bearer {create_jwt_token(claims)}'}


async def add_report(
    session: AsyncSession,
    author_email: str,
    report_type: ReportType = ReportType.class_report,
    status: ReportStatus = ReportStatus.pending,
    minutes_ago: int = 0,
    role: str = 'Teacher',
    payload: dict = None,
    author_name: str = None,
) -> DashboardReport:
    report = DashboardReport(
        report_type=report_type,
        role=role,
        status=status,
        author_email=author_email,
        author_name=author_name,
        payload=payload or {},
        created_at=datetime.utcnow() - timedelta(minutes=minutes_ago),
    )
    session.add(report)
    await session.commit()
    return report


@pytest.fixture
async def teacher(db_session) -> DashboardUser:
    return await create_user(db_session, 'Teacher', email='teacher@example.com', name='Tina Teacher')


@pytest.fixture
async def counselor(db_session) -> DashboardUser:
    return await create_user(db_session, 'Counselor', email='counselor@example.com', name='Cory Counselor')


@pytest.fixture
async def admin(db_session) -> DashboardUser:
    return await create_user(db_session, 'Branch Admin', email='admin@example.com', name='Ada Admin')


@pytest.fixture
async def super_admin(db_session) -> DashboardUser:
    return await create_user(db_session, 'Super Admin', email='super@example.com', name='Sam Super')


@pytest.fixture
def teacher_headers(teacher) -> dict:
    return auth_headers_for(teacher.email)


@pytest.fixture
def counselor_headers(counselor) -> dict:
    return auth_headers_for(counselor.email)


@pytest.fixture
def admin_headers(admin) -> dict:
    return auth_headers_for(admin.email)


@pytest.fixture
def super_admin_headers(super_admin) -> dict:
    return auth_headers_for(super_admin.email)
