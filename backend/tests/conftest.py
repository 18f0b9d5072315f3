import itertools

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import callsync.models  # noqa: F401
from callsync.clients.ai import GatewayClient
from callsync.config import settings
from callsync.models import CallRecord, DialerIntegration

DIALER_URL = "http://dialer.test"
AI_URL = "http://ai.test/v1"

_ids = itertools.count(1000)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """测试中不连接 Redis / Celery"""
    monkeypatch.setattr(settings, "redis_url", "")
    monkeypatch.setattr(settings, "celery_broker_url", "")
    monkeypatch.setattr(settings, "celery_result_backend", "")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def integration(engine):
    with Session(engine) as session:
        item = DialerIntegration(
            owner_id="user-1",
            server_url=f"{DIALER_URL}/vicidial/",
            api_user="apiuser",
            api_password="secret",
            agent_ids=["1001"],
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        return item


@pytest.fixture
def make_record(engine):
    """创建通话记录，返回记录ID"""

    def _make(**fields) -> int:
        values = {
            "owner_id": "user-1",
            "external_id": f"VICI-{next(_ids)}",
            "upload_source": "dialer",
            "recording_url": f"{DIALER_URL}/RECORDINGS/MP3/20250101-093015_5566-all.mp3",
            "summary": "Pending AI analysis",
            "transcript": "Pending transcription",
        }
        values.update(fields)
        with Session(engine) as session:
            record = CallRecord(**values)
            session.add(record)
            session.commit()
            session.refresh(record)
            return record.id

    return _make


@pytest.fixture
def get_record(engine):
    def _get(record_id: int) -> CallRecord:
        with Session(engine) as session:
            return session.get(CallRecord, record_id)

    return _get


@pytest.fixture
def ai_client():
    return GatewayClient(api_key="test-key", base_url=AI_URL, model="test-model")
