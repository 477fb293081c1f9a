import os
from collections.abc import Generator
from decimal import Decimal
from typing import Any, Optional

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["LOG_FILE"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from app.db.core import get_session, init_db
from app.db.schema import Supplier, User, UserRole, Product
from app.main import app
from tests.utils.helpers import RecordingHub


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite database shared by every thread of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture(scope="function")
def recording_hub() -> RecordingHub:
    return RecordingHub()


# ==============================================================================
# DOMAIN FIXTURES
# ==============================================================================

def _add(session: Session, record):
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


@pytest.fixture
def supplier(session: Session) -> Supplier:
    return _add(session, Supplier(name="Fresh Farms Ltd."))


@pytest.fixture
def other_supplier(session: Session) -> Supplier:
    return _add(session, Supplier(name="Dairy Direct"))


@pytest.fixture
def make_user(session: Session):
    def factory(role: UserRole, supplier: Optional[Supplier] = None, **kwargs: Any) -> User:
        data = {"email": f"{role.value}-{os.urandom(4).hex()}@example.test"}
        data.update(kwargs)
        return _add(session, User(
            role=role,
            supplier_id=supplier.id if supplier else None,
            **data
        ))
    return factory


@pytest.fixture
def consumer(make_user) -> User:
    return make_user(UserRole.CONSUMER, company_name="Corner Cafe")


@pytest.fixture
def other_consumer(make_user) -> User:
    return make_user(UserRole.CONSUMER, company_name="Harbour Bistro")


@pytest.fixture
def sales_rep(make_user, supplier) -> User:
    return make_user(UserRole.SALES_REP, supplier, first_name="Sam", last_name="Seller")


@pytest.fixture
def manager(make_user, supplier) -> User:
    return make_user(UserRole.MANAGER, supplier, first_name="Marco", last_name="Manager")


@pytest.fixture
def outside_staff(make_user, other_supplier) -> User:
    return make_user(UserRole.OWNER, other_supplier, first_name="Olga")


@pytest.fixture
def make_product(session: Session):
    def factory(supplier: Supplier, **kwargs: Any) -> Product:
        data = {
            "name": "Tomatoes",
            "unit": "kg",
            "price": Decimal("100.00"),
            "discount": None,
            "stock_level": 20,
            "min_order_quantity": 1,
        }
        data.update(kwargs)
        return _add(session, Product(supplier_id=supplier.id, **data))
    return factory


# ==============================================================================
# HTTP
# ==============================================================================

@pytest.fixture(scope="function")
def client(session: Session) -> Generator[TestClient, None, None]:
    """Test client bound to the per-test database."""
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
