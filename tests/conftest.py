import sys
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pharmastock.api.ai import get_narrative_client  # noqa: E402
from pharmastock.database import get_db, init_db  # noqa: E402
from pharmastock.main import app  # noqa: E402
from pharmastock.models.product import Batch, Product  # noqa: E402


class FakeNarrativeClient:
    """Stands in for the OpenAI-backed client; records the messages it was sent."""

    def __init__(self, tokens=("Stock ", "levels ", "are stable."), error=None):
        self.tokens = list(tokens)
        self.error = error
        self.requests: list[list[dict]] = []
        self.stream_closed = False

    async def complete(self, messages):
        self.requests.append(messages)
        if self.error:
            raise self.error
        return "".join(self.tokens)

    async def stream(self, messages):
        self.requests.append(messages)
        try:
            for token in self.tokens:
                yield token
            if self.error:
                raise self.error
        finally:
            self.stream_closed = True


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def narrator():
    return FakeNarrativeClient()


@pytest.fixture()
def client(db, narrator):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_narrative_client] = lambda: narrator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_row():
    """Build a joined usage row dict as the datastore would return it."""

    def _make(batch_id=1, quantity_used=10, day=1, **overrides):
        row = {
            "batch_id": batch_id,
            "product_id": 1,
            "date": date(2024, 3, day),
            "quantity_used": quantity_used,
            "batch_number": f"B-{batch_id}",
            "current_stock": 124,
            "initial_stock": 200,
            "expiry_date": date(2025, 1, 31),
            "product_name": "Amoxicillin",
            "strength": "500mg",
            "reorder_threshold": 20,
            "supplier_lead_time": 7,
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture()
def make_batch(db):
    """Persist a product with one batch and return the batch."""

    def _make(batch_number="AMX-001", initial_stock=200, current_stock=None, expiry_date=None,
              product_name="Amoxicillin", strength="500mg", reorder_threshold=20):
        product = Product(
            product_name=product_name,
            strength=strength,
            reorder_threshold=reorder_threshold,
            supplier_lead_time=7,
        )
        db.add(product)
        db.flush()
        batch = Batch(
            product_id=product.id,
            batch_number=batch_number,
            initial_stock=initial_stock,
            current_stock=initial_stock if current_stock is None else current_stock,
            expiry_date=expiry_date,
        )
        db.add(batch)
        db.commit()
        db.refresh(batch)
        return batch

    return _make
