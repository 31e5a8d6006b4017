# tests/conftest.py
import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the suite off real infrastructure; must run before app settings load
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["EVENT_PUBLISHER"] = "log"

# Add project root to Python path
project_root = Path(__file__).parent.parent.absolute()
sys.path.insert(0, str(project_root))

from app.db.base import Base
from app.db.models import Category, Product
from app.events.providers.log import LoggingEventPublisher
from app.services.cache_service import CacheService
from app.services.category_service import CategoryService

ACTOR = "alice"


class FakeRedis:
    """Dict-backed stand-in for the handful of redis-py calls CacheService makes."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, *keys):
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    def scan_iter(self, match=None, count=None):
        prefix = (match or "*").rstrip("*")
        return [key for key in list(self.store) if key.startswith(prefix)]

    def close(self):
        pass


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite engine shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a test database session."""
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = Session()

    yield session

    session.close()


@pytest.fixture(scope="function")
def fake_redis():
    return FakeRedis()


@pytest.fixture(scope="function")
def cache(fake_redis):
    """Cache service backed by the in-memory Redis double."""
    return CacheService(redis_client=fake_redis, ttl_minutes=15)


@pytest.fixture(scope="function")
def publisher():
    """Event publisher that records every published event."""
    return LoggingEventPublisher({"topic": "category.events"})


@pytest.fixture(scope="function")
def category_service(db_session, cache, publisher):
    """Create a category service for testing."""
    return CategoryService(db_session, cache=cache, publisher=publisher)


@pytest.fixture(scope="function")
def actor():
    return ACTOR


@pytest.fixture(scope="function")
def make_category(category_service):
    """Create a category through the service and return it."""
    def _make(name, parent_id=None, **kwargs):
        return category_service.create_category(name, parent_id=parent_id, actor=ACTOR, **kwargs)
    return _make


@pytest.fixture(scope="function")
def make_product(db_session):
    """Insert a product row the way the product service would."""
    def _make(category_id, name="Widget", price="10.00", status="ACTIVE", deleted=False):
        product = Product(
            category_id=category_id,
            name=name,
            price=Decimal(price),
            status=status,
            deleted=deleted,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope="function")
def grains_tree(make_category):
    """Grains -> Rice -> Basmati"""
    grains = make_category("Grains")
    rice = make_category("Rice", parent_id=grains.id)
    basmati = make_category("Basmati", parent_id=rice.id)
    return grains, rice, basmati


@pytest.fixture(scope="function")
def check_tree(db_session):
    """Assert every live node's level and path agree with its parent chain."""
    def _check():
        db_session.expire_all()
        nodes = db_session.query(Category).filter(Category.deleted.is_(False)).all()
        by_id = {node.id: node for node in nodes}
        for node in nodes:
            if node.parent_id is None:
                assert node.level == 0, node
                assert node.path == f"/{node.slug}", node
            else:
                parent = by_id[node.parent_id]
                assert node.level == parent.level + 1, node
                assert node.path == f"{parent.path}/{node.slug}", node
        return by_id
    return _check
