from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ordinals.api.cache import get_cache_service
from ordinals.api.event_server import app as event_app
from ordinals.api.main import app
from ordinals.database.connection import get_db, get_read_db
from ordinals.models.base import Base
from ordinals.services.cache_service import CacheService
from tests.helpers import TEST_AUTH_TOKEN

TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


def make_redis_mock():
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.setex.return_value = True
    return redis_client


test_cache_service = CacheService(redis_client=make_redis_mock())


def override_get_cache_service():
    return test_cache_service


app.dependency_overrides[get_read_db] = override_get_db
app.dependency_overrides[get_cache_service] = override_get_cache_service
event_app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    import logging
    import structlog

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
    )

    root_logger = logging.getLogger()
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


@pytest.fixture(autouse=True)
def reset_cache_mock():
    test_cache_service.redis_client = make_redis_mock()
    yield


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def event_client(db_session, monkeypatch):
    from ordinals.config import settings

    monkeypatch.setattr(settings, "CHAINHOOK_AUTO_PREDICATE_REGISTRATION", False)
    monkeypatch.setattr(settings, "CHAINHOOK_NODE_AUTH_TOKEN", TEST_AUTH_TOKEN)
    with TestClient(event_app) as c:
        yield c
