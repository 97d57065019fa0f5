from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_SECRET_KEY", "test-secret")

from collections.abc import AsyncIterator  # noqa: E402
from datetime import date  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from stockatelier.api.deps import get_db  # noqa: E402
from stockatelier.core.config import settings  # noqa: E402
from stockatelier.core.security import issue_session_token  # noqa: E402
from stockatelier.db import models  # noqa: E402,F401
from stockatelier.db.base import Base  # noqa: E402
from stockatelier.db.models.user import User, UserRole  # noqa: E402
from stockatelier.main import app  # noqa: E402
from stockatelier.schemas.material import MaterialCreate  # noqa: E402
from stockatelier.services import catalog_service, work_service  # noqa: E402
from stockatelier.services.authz import Principal  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}", connect_args={"timeout": 30})
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as s:
        yield s


async def add_user(
    session: AsyncSession,
    full_name: str,
    role: UserRole = UserRole.USER,
    **kw,
) -> User:
    u = User(
        full_name=full_name,
        email=kw.pop("email", f"{full_name.lower().replace(' ', '.')}@atelier.test"),
        role=role,
        **kw,
    )
    session.add(u)
    await session.commit()
    return u


@pytest.fixture
async def admin_user(session) -> User:
    return await add_user(session, "Alice Admin", UserRole.ADMIN, is_owner=True)


@pytest.fixture
async def lead_user(session) -> User:
    return await add_user(session, "Louis Lead", is_team_lead=True)


@pytest.fixture
async def agent_user(session) -> User:
    return await add_user(session, "Bob Agent")


@pytest.fixture
async def other_user(session) -> User:
    return await add_user(session, "Chloe Agent")


@pytest.fixture
def admin(admin_user) -> Principal:
    return Principal.from_user(admin_user)


@pytest.fixture
def lead(lead_user) -> Principal:
    return Principal.from_user(lead_user)


@pytest.fixture
def agent(agent_user) -> Principal:
    return Principal.from_user(agent_user)


@pytest.fixture
def other(other_user) -> Principal:
    return Principal.from_user(other_user)


def tube_payload(**overrides) -> MaterialCreate:
    data = dict(
        category="Tubes",
        material_kind="Acier",
        shape_type="Carré",
        dim_a_mm=40,
        thickness_mm=2,
        unit_type="BARRE",
        unit_variant="BARRE_6M",
        quantity=0,
    )
    data.update(overrides)
    return MaterialCreate(**data)


@pytest.fixture
async def tube(session, admin):
    return await catalog_service.admit_material(session, admin, tube_payload(quantity=10))


@pytest.fixture
async def equipment(session, lead):
    return await work_service.create_equipment(session, lead, "Convoyeur C12", date(2030, 6, 1))


def auth_headers(user: User) -> dict[str, str]:
    token = issue_session_token(settings.app_secret_key, user.id, user.token_version)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory) -> AsyncIterator[httpx.AsyncClient]:
    async def _get_db():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
