import os

# vamo.config는 import 시점에 환경 변수를 읽음
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["REWARD_RATE_LIMIT_POLICY"] = "zero"

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from vamo.config import Settings  # noqa: E402
from vamo.database.session import get_db  # noqa: E402
from vamo.models.base import Base  # noqa: E402
from vamo.models.profile import Profile  # noqa: E402
from vamo.models import activity, reward  # noqa: E402,F401

TEST_JWT_SECRET = "test-jwt-secret"


@pytest.fixture
def engine():
    """테스트용 인메모리 SQLite 엔진"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        SUPABASE_JWT_SECRET=TEST_JWT_SECRET,
        MAX_REWARDS_PER_HOUR=60,
        DEFAULT_REWARD_AMOUNT=5,
        MINIMUM_REDEMPTION=50,
        REWARD_RATE_LIMIT_POLICY="zero",
    )


@pytest.fixture
def make_profile(db):
    """프로필 생성 헬퍼"""

    def _make(balance: int = 0, role: str = "user") -> str:
        user_id = str(uuid.uuid4())
        db.add(
            Profile(
                id=user_id,
                email=f"{user_id[:8]}@example.com",
                display_name="Founder",
                pineapple_balance=balance,
                role=role,
            )
        )
        db.commit()
        return user_id

    return _make


def make_token(user_id: str, secret: str = TEST_JWT_SECRET, expires_in: int = 3600) -> str:
    """Supabase 형식의 access token 생성"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "email": "founder@example.com",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest.fixture
def app(db):
    from vamo.main import create_app

    app = create_app()

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """테스트 클라이언트 픽스처"""
    return TestClient(app)
