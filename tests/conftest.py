from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pakket_server.app.api import create_app
from pakket_server.app.db import get_db, init_db
from pakket_server.app.schemas import PackageIn

T0 = datetime(2026, 10, 19, 9, 0, 0)


class ScriptedRandom:
    """Stands in for ``random``: returns the scripted draws, repeating the last one."""

    def __init__(self, *values: int):
        self.values = list(values)
        self.calls = 0

    def randrange(self, stop: int) -> int:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        assert 0 <= value < stop
        return value


def package_form(package_number: str, **overrides) -> dict:
    form = {
        "package_number": package_number,
        "transport_type": "sea",
        "destination": "suriname",
        "weight": "12,5",
        "calculated_price": "45.00",
        "sender_first_name": "Anita",
        "sender_last_name": "Jong",
        "sender_address": "Kade 12",
        "sender_city": "Rotterdam",
        "sender_mobile": "0612345678",
        "receiver_first_name": "Ravi",
        "receiver_last_name": "Kalloe",
        "receiver_address": "Gravenstraat 3",
        "receiver_city": "Paramaribo",
        "receiver_mobile": "+5978123456",
    }
    form.update(overrides)
    return form


def package_in(package_number: str, **overrides) -> PackageIn:
    return PackageIn(**package_form(package_number, **overrides))


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'pakket_test.db'}", connect_args={"check_same_thread": False, "timeout": 30})
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory) -> TestClient:
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
