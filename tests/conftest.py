"""
Pytest configuration and fixtures for the ladder tests.
"""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from ladder.app import create_app
from ladder.models import db
from ladder.formation_registry import FormationRegistry
from allocator.candidates import PlayerRef, SkillBucket


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create database session for testing."""
    with app.app_context():
        # Clear all tables before each test
        db.session.remove()

        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture
def registry():
    return FormationRegistry()


@pytest.fixture
def mock_redis(mocker):
    """Redis client stand-in; lock() works as a context manager."""
    return mocker.MagicMock()


def make_buckets(spec: dict):
    """{tier: [names]} -> list of SkillBucket."""
    return [
        SkillBucket(tier=tier, players=[PlayerRef.from_name(n) for n in names])
        for tier, names in spec.items()
    ]


@pytest.fixture
def buckets_from():
    return make_buckets


@pytest.fixture
def ten_player_buckets():
    return make_buckets({
        1: ['a', 'b', 'c'],
        2: ['d', 'e', 'f', 'g'],
        3: ['h', 'i', 'j'],
    })


@pytest.fixture
def map_pool():
    return ['q2dm1', 'q2dm2', 'q2dm3', 'q2dm8', 'ztn2dm3']


@pytest.fixture
def seeded_tournament(app, db_session, registry):
    """Tournament 'cup' with three tiers of four players and five maps."""
    with app.app_context():
        registry.set_tier('cup', 1, ['Alpha', 'Bravo', 'Charlie', 'Delta'])
        registry.set_tier('cup', 2, ['Echo', 'Foxtrot', 'Golf', 'Hotel'])
        registry.set_tier('cup', 3, ['India', 'Juliet', 'Kilo', 'Lima'])
        registry.set_maps('cup', ['q2dm1', 'q2dm2', 'q2dm3', 'q2dm8', 'ztn2dm3'])
    return 'cup'
