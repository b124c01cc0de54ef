"""Shared test fixtures."""

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from categorag.database import Base
from categorag.dependencies import (
    get_db,
    get_cache_store,
    get_search_logger,
    get_synonym_graph,
)
from categorag.main import app
from categorag import models  # noqa: F401  registers tables on Base.metadata
from categorag.schemas.category import SubCategoryRef, TransactionType, UserCategory
from categorag.services.cache import MemoryCacheStore
from categorag.services.categorization_service import CategorizationService
from categorag.services.category_index import CategoryIndex
from categorag.services.search_log_service import SearchLogger
from categorag.services.synonym_graph import load_default_graph
from categorag.services.synonym_service import SynonymService


USER_ID = "user-1"
PHONE_ID = "5511999990000"


class FakeClock:
    """Controllable replacement for datetime.utcnow."""

    def __init__(self, start: datetime = datetime(2026, 1, 15, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


def make_category(
    id: str,
    name: str,
    sub_id: str = None,
    sub_name: str = None,
    type: TransactionType = TransactionType.EXPENSES,
    account_id: str = "acc-1",
) -> UserCategory:
    return UserCategory(
        id=id,
        name=name,
        account_id=account_id,
        type=type,
        sub_category=SubCategoryRef(id=sub_id, name=sub_name) if sub_name else None,
    )


@pytest.fixture(scope="function")
def engine():
    # StaticPool keeps every session on the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a fresh database for each test using in-memory SQLite."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_store(clock):
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def graph():
    return load_default_graph()


@pytest.fixture
def category_index(cache_store):
    return CategoryIndex(cache_store)


@pytest.fixture
def synonym_service(db_session):
    return SynonymService(db_session)


@pytest.fixture
def search_logger(session_factory):
    """Synchronous logger so tests can read rows right after a search."""
    return SearchLogger(session_factory)


@pytest.fixture
def service(db_session, cache_store, graph, search_logger):
    return CategorizationService(db_session, cache_store, graph, search_logger)


@pytest.fixture
def sample_categories():
    """A small household chart of accounts, already expanded per subcategory."""
    return [
        make_category("cat-food", "Alimentação", "sub-delivery", "Delivery"),
        make_category("cat-food", "Alimentação", "sub-restaurant", "Restaurante"),
        make_category("cat-food", "Alimentação", "sub-market", "Supermercado"),
        make_category("cat-transport", "Transporte", "sub-fuel", "Combustível"),
        make_category("cat-transport", "Transporte", "sub-app", "Aplicativo"),
        make_category("cat-home", "Casa", "sub-appliances", "Eletrodomésticos"),
        make_category("cat-home", "Casa", "sub-portable", "Eletroportáteis"),
        make_category("cat-tech", "Tecnologia", "sub-electronics", "Eletrônicos"),
        make_category("cat-card", "Cartão Rotativo"),
        make_category("cat-other", "Outros", "sub-other", "Geral"),
        make_category("cat-salary", "Renda", "sub-salary", "Salário", type=TransactionType.INCOME),
    ]


@pytest.fixture
def indexed(service, sample_categories):
    service.index_user_categories(USER_ID, sample_categories)
    return sample_categories


@pytest.fixture(scope="function")
def client(db_session, session_factory, cache_store, graph):
    """Create a test client with database and cache overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_store] = lambda: cache_store
    app.dependency_overrides[get_synonym_graph] = lambda: graph
    app.dependency_overrides[get_search_logger] = lambda: SearchLogger(session_factory)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
