"""Test configuration and fixtures."""
import os
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set testing environment before the app reads its settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"

from app.core.config import settings  # noqa: E402
from app.core.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    AssessmentAssignment,
    AssessmentSession,
    AssessmentTemplate,
    Base,
    Organization,
    OrganizationMembership,
    Question,
    QuestionBank,
    QuestionOption,
    TemplateOrgLink,
    TemplateQuestion,
    TemplateSection,
    User,
)

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def async_engine():
    """In-memory engine; one connection so every session sees the same tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    session_maker = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test session injected."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def make_token(user_id: int, orgs: Optional[List[Dict]] = None, roles: Optional[List[str]] = None) -> str:
    claims = {"sub": str(user_id), "roles": roles or [], "orgs": orgs or []}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers_for(
    user_id: int,
    orgs: Optional[List[Dict]] = None,
    roles: Optional[List[str]] = None,
    org_id: Optional[int] = None,
) -> Dict[str, str]:
    headers = {"Authorization": f"Bearer {make_token(user_id, orgs, roles)}"}
    if org_id is not None:
        headers[settings.ORG_ID_HEADER] = str(org_id)
    return headers


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

async def create_organization(db: AsyncSession, name: str = "Acme") -> Organization:
    org = Organization(name=name)
    db.add(org)
    await db.flush()
    return org


async def create_user(db: AsyncSession, name: str = "User", organization: Optional[Organization] = None,
                      roles: Optional[List[str]] = None) -> User:
    user = User(full_name=name)
    db.add(user)
    await db.flush()
    if organization is not None:
        db.add(OrganizationMembership(user_id=user.id, organization_id=organization.id, roles=roles or ["MEMBER"]))
        await db.flush()
    return user


async def create_question(db: AsyncSession, bank: QuestionBank, type: str = "SCALE",
                          options: Optional[List[str]] = None, **kwargs) -> Question:
    if type == "SCALE":
        kwargs.setdefault("min_scale", 1)
        kwargs.setdefault("max_scale", 5)
    question = Question(bank_id=bank.id, text=f"{type} question", type=type, **kwargs)
    db.add(question)
    await db.flush()
    for index, value in enumerate(options or []):
        db.add(QuestionOption(question_id=question.id, value=value, label=value.title(), order=index))
    await db.flush()
    return question


async def create_template(db: AsyncSession, organization: Organization, state: str = "ACTIVE",
                          slug: str = "leadership-360") -> AssessmentTemplate:
    template = AssessmentTemplate(
        name="Leadership 360",
        slug=slug,
        state=state,
        created_by_organization_id=organization.id,
    )
    db.add(template)
    await db.flush()
    db.add(TemplateOrgLink(template_id=template.id, organization_id=organization.id, access_level="ADMIN"))
    await db.flush()
    return template


async def create_section(db: AsyncSession, template: AssessmentTemplate, title: str = "General",
                         order: int = 0) -> TemplateSection:
    section = TemplateSection(template_id=template.id, title=title, order=order)
    db.add(section)
    await db.flush()
    return section


async def link_question(db: AsyncSession, section: TemplateSection, question: Question, order: int = 0,
                        perspectives: Optional[List[str]] = None, required: bool = True) -> TemplateQuestion:
    link = TemplateQuestion(
        section_id=section.id,
        question_id=question.id,
        order=order,
        perspectives=perspectives if perspectives is not None else ["SELF"],
        required=required,
    )
    db.add(link)
    await db.flush()
    return link


async def create_session(db: AsyncSession, organization: Organization, template: AssessmentTemplate,
                         state: str = "SCHEDULED", name: str = "Spring review") -> AssessmentSession:
    session = AssessmentSession(
        organization_id=organization.id,
        template_id=template.id,
        name=name,
        start_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        state=state,
    )
    db.add(session)
    await db.flush()
    return session


async def create_assignment(db: AsyncSession, session: AssessmentSession, respondent: User,
                            subject: Optional[User] = None, perspective: str = "SELF") -> AssessmentAssignment:
    assignment = AssessmentAssignment(
        session_id=session.id,
        respondent_user_id=respondent.id,
        subject_user_id=(subject or respondent).id,
        perspective=perspective,
    )
    db.add(assignment)
    await db.flush()
    return assignment


class Graph:
    """Handles to a seeded organization with one ACTIVE template and session."""

    org: Organization
    other_org: Organization
    owner: User
    respondent: User
    peer: User
    outsider: User
    bank: QuestionBank
    scale: Question
    text: Question
    choice: Question
    flag: Question
    template: AssessmentTemplate
    section: TemplateSection
    links: List[TemplateQuestion]
    session: AssessmentSession

    def headers(self, user: Optional[User] = None, org_id: Optional[int] = None) -> Dict[str, str]:
        user = user or self.owner
        orgs = [{"org_id": self.org.id, "roles": ["OWNER"]}] if user is not self.outsider else [
            {"org_id": self.other_org.id, "roles": ["OWNER"]}
        ]
        return auth_headers_for(user.id, orgs=orgs, org_id=org_id)


@pytest.fixture
async def graph(db_session: AsyncSession) -> Graph:
    """Organization, members, a four-question SELF template and a SCHEDULED session."""
    g = Graph()
    db = db_session
    g.org = await create_organization(db, "Acme")
    g.other_org = await create_organization(db, "Globex")
    g.owner = await create_user(db, "Olivia Owner", g.org, roles=["OWNER"])
    g.respondent = await create_user(db, "Rita Respondent", g.org)
    g.peer = await create_user(db, "Pat Peer", g.org)
    g.outsider = await create_user(db, "Oscar Outsider", g.other_org, roles=["OWNER"])

    g.bank = QuestionBank(name="Core", created_by_organization_id=g.org.id)
    db.add(g.bank)
    await db.flush()
    g.scale = await create_question(db, g.bank, "SCALE")
    g.text = await create_question(db, g.bank, "TEXT")
    g.choice = await create_question(db, g.bank, "SINGLE_CHOICE", options=["low", "mid", "high"])
    g.flag = await create_question(db, g.bank, "BOOLEAN")

    g.template = await create_template(db, g.org)
    g.section = await create_section(db, g.template)
    g.links = [
        await link_question(db, g.section, question, order=index)
        for index, question in enumerate([g.scale, g.text, g.choice, g.flag])
    ]
    g.session = await create_session(db, g.org, g.template)
    return g
