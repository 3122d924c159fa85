"""
Pytest configuration and fixtures for license import tests.
"""

import os
import tempfile
import uuid
from datetime import timedelta

# Settings are read at import time by the api package
_TEST_DIR = tempfile.mkdtemp(prefix='license_import_tests_')
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('IMPORT_STORAGE_DIR', os.path.join(_TEST_DIR, 'imports'))
os.environ.setdefault('LOG_FILE', os.path.join(_TEST_DIR, 'api.log'))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

from backend.models.schema import Base, Category, License
from services.audit_service import ActorContext
from services.license_status import ThresholdSettingsProvider, utc_today
from services.storage_service import StorageService

# Load environment
load_dotenv()

# Test database URL (in-memory SQLite unless a separate test database is configured)
TEST_DATABASE_URL = os.getenv('TEST_DATABASE_URL', 'sqlite://')


@pytest.fixture(scope='function')
def engine():
    """Create a fresh test database for each test."""
    if TEST_DATABASE_URL.startswith('sqlite'):
        eng = create_engine(
            TEST_DATABASE_URL,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool
        )
    else:
        eng = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture(scope='function')
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture(scope='function')
def session(session_factory):
    """
    Create a new database session for a test.

    Services commit and roll back on their own, so isolation comes from
    the per-test database rather than an outer transaction.
    """
    sess = session_factory()
    yield sess
    sess.close()


@pytest.fixture
def storage(tmp_path):
    """Storage service writing to a per-test directory."""
    return StorageService(str(tmp_path / 'imports'))


@pytest.fixture
def actor():
    return ActorContext(user_id='user-1', email='user1@example.com', correlation_id='test')


@pytest.fixture
def threshold_provider():
    return ThresholdSettingsProvider(30, 90)


@pytest.fixture
def today():
    """Current UTC date, the same reference compute_status uses."""
    return utc_today()


@pytest.fixture
def make_csv():
    """Build CSV bytes from a header and already comma-joined data lines."""
    def _make(rows, header='LicenseId,LicenseName,CategoryName,Vendor,SeatsPurchased,SeatsAssigned,ExpiresOn,Notes'):
        lines = [header] + list(rows)
        return ('\n'.join(lines) + '\n').encode('utf-8')
    return _make


@pytest.fixture
def existing_catalog(session):
    """One category with one license: Office Pro / Contoso / Productivity."""
    category = Category(id=uuid.uuid4(), name='Productivity')
    license = License(
        id=uuid.uuid4(),
        name='Office Pro',
        vendor='Contoso',
        category=category,
        seats_purchased=10,
        seats_assigned=5,
        expires_on=utc_today() + timedelta(days=365),
        status='Good'
    )
    session.add_all([category, license])
    session.commit()
    return {'category_id': category.id, 'license_id': license.id}
