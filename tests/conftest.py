"""
SchoolBooks - Test Configuration

Pytest fixtures shared by the engine, store and web tests.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import models


@pytest.fixture
def db(tmp_path):
    """Fresh books.db in a temp folder, closed again after the test."""
    path = str(tmp_path / "books.db")
    models.create_books(path, "Test School")
    yield path
    models._subscribers.clear()
    models.set_db_path(None)


@pytest.fixture
def client(db):
    import app as web
    web.app.config["TESTING"] = True
    with web.app.test_client() as c:
        yield c


@pytest.fixture
def rules():
    """Fee schedule with one Boarder G _3 row for FY 25-26."""
    return [
        {
            "date": "2025-04-01",
            "account_head": "Boarder",
            "account_class": "G _3",
            "registration_fee": 20000,
            "services_fee": 15000,
            "promotion_fee": 5000,
        },
        {
            "date": "2025-04-01",
            "account_head": "Day",
            "account_class": "G _3",
            "registration_fee": 12000,
            "services_fee": 8000,
            "promotion_fee": 0,
        },
    ]


@pytest.fixture
def income_form():
    return {
        "date": "2025-05-10",
        "account_head": "Boarder",
        "account_name": "G _3",
        "name": "Ma Ma",
        "gender": "Female",
        "fee_type": "Registration",
        "method": "Cash",
    }
