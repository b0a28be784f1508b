# tests/conftest.py
import os

# Настройки должны быть заданы до первого импорта app.*
os.environ.setdefault("DATABASE_USER", "test")
os.environ.setdefault("DATABASE_PASSWORD", "test")
os.environ.setdefault("DATABASE_HOST", "localhost")
os.environ.setdefault("DATABASE_PORT", "5432")
os.environ.setdefault("DATABASE_NAME", "ledger_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPER_ADMIN_USER_IDS", "root-admin")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec-test")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.db.session import Base
from app.models import credit, redemption, order, subscription, commission  # Импортируем все модели для создания таблиц

# Используем in-memory SQLite для тестов - это быстро и изолированно.
# StaticPool: все сессии (в том числе открытые фоновыми задачами) видят одну и ту же БД
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Фикстура для создания чистой базы данных для каждого теста.
    """
    Base.metadata.create_all(bind=engine)  # Создаем все таблицы
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)  # Очищаем все после теста


@pytest.fixture
def patch_session_local(mocker, db_session):
    """Фоновые задачи открывают свои сессии через SessionLocal - подменяем на тестовую фабрику."""
    mocker.patch("app.services.subscription_credits.SessionLocal", TestingSessionLocal)
    return TestingSessionLocal


def make_token(user_id: str, permissions=None) -> str:
    payload = {"sub": user_id}
    if permissions is not None:
        payload["permissions"] = permissions
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def headers_for():
    """Заголовки авторизации для произвольного пользователя и набора прав."""
    def _headers(user_id: str, permissions=None) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, permissions)}"}
    return _headers


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {make_token('user-1')}"}


@pytest.fixture
def admin_auth_headers() -> dict:
    return {"Authorization": f"Bearer {make_token('root-admin')}"}


@pytest_asyncio.fixture
async def client(db_session):
    from app.main import app
    from app.core.limiter import limiter
    from app.clients.payment_providers import build_registry
    from app.dependencies import get_db

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # lifespan в тестах не запускается (нет Redis), реестр собираем вручную
    app.state.payment_providers = build_registry(settings)
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as async_client:
        yield async_client

    app.dependency_overrides.clear()
