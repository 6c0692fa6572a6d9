"""Shared fixtures: an in-memory database per test and test settings."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.pool import StaticPool

from backlink_engine.config import Settings
from backlink_engine.database import get_engine, get_session_factory, init_db
from backlink_engine.models.website import Website
from backlink_engine.services.health import VerificationResult
from backlink_engine.utils.locks import WebsiteLocks


@pytest.fixture
def settings():
    """Settings that never read the developer's .env."""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        SERPER_API_KEY="serper-test-key",
        SE_RANKING_API_KEY="se-test-key",
        REQUEST_DELAY_SECONDS=0,
        VERIFY_DELAY_SECONDS=0,
        PROVIDER_RETRY_ATTEMPTS=2,
        LOG_FILE="",
    )


@pytest.fixture
def db_engine():
    engine = get_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    session = get_session_factory(db_engine)()
    yield session
    session.close()


@pytest.fixture
def website(session):
    site = Website(domain="example.com", name="Example", target_keywords="apostille services, notary")
    session.add(site)
    session.commit()
    return site


@pytest.fixture
def locks():
    """Private lock registry so tests never share lock state."""
    return WebsiteLocks()


@pytest.fixture
def verifier():
    """Verifier double that reports every page as live."""
    mock = MagicMock()
    mock.verify.return_value = VerificationResult(is_live=True, status_code=200, found_url="https://example.com")
    return mock
