"""pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from salonbooks import create_app
from salonbooks.extensions import db
from salonbooks.models import Customer, Service, Therapist


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def salon(app):
    """A therapist, two services and a regular customer."""
    therapist = Therapist(
        therapist_id=1,
        initial="AN",
        full_name="Anisa Nasution",
        base_fee_per_treatment=20000,
        commission_rate=0.12,
    )
    facial = Service(
        service_id=10,
        name="Facial Brightening",
        category="Perawatan Wajah",
        normal_price=150000,
        duration_minutes=60,
    )
    creambath = Service(
        service_id=11,
        name="Creambath",
        category="Perawatan Rambut",
        normal_price=85000,
        promo_price=75000,
        duration_minutes=45,
    )
    customer = Customer(
        customer_id=100,
        name="Nur Aisyah",
        phone="081260001111",
        total_visits=0,
        total_spending=0,
        loyalty_visits=0,
    )
    db.session.add_all([therapist, facial, creambath, customer])
    db.session.commit()
    return {"therapist_id": 1, "facial_id": 10, "creambath_id": 11, "customer_id": 100}
