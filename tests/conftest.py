from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import BudgetPeriod, Transaction, init_db


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def march_now():
    """Mid-morning on the third day of a March 2024 budget."""
    return datetime(2024, 3, 3, 10, 0)


@pytest.fixture
def client(db, march_now):
    from api_server import app, get_now
    from database import get_db

    def _db():
        yield db

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_now] = lambda: march_now
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_budget(start=date(2024, 3, 1), end=date(2024, 3, 10), principal=300.0, fixed=0.0, variable=0.0):
    return BudgetPeriod(
        name="March",
        start_date=start,
        end_date=end,
        principal=principal,
        fixed_spent=fixed,
        variable_spent=variable,
        status="Active",
    )


def make_txn(day, amount, txn_type="Variable", item="Lunch"):
    return Transaction(date=day, item=item, amount=amount, category="Food", type=txn_type, period=day.strftime("%Y-%m"))
