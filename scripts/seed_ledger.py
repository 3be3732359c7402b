#!/usr/bin/env python3
"""
Seed script to create sample therapists, services, customers and 30 days of
treatments, then auto-calculate a ledger entry for every working day.
"""

import random
import sys
from datetime import date, datetime, time, timedelta
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from salonbooks import create_app
from salonbooks.extensions import db
from salonbooks.ledger import auto_calculate_daily_entry, rebuild_running_totals
from salonbooks.loyalty import record_treatment
from salonbooks.models import Customer, Service, Therapist, TreatmentRecord
from salonbooks.schemas import CustomerRef

THERAPISTS = [
    {"initial": "AN", "full_name": "Anisa Nasution", "base_fee_per_treatment": 20000, "commission_rate": 0.12},
    {"initial": "SR", "full_name": "Siti Rahmah", "base_fee_per_treatment": 25000, "commission_rate": 0.10},
    {"initial": "DL", "full_name": "Dewi Lubis", "base_fee_per_treatment": 15000, "commission_rate": 0.15},
]

SERVICES = [
    {"name": "Facial Brightening", "category": "Perawatan Wajah", "normal_price": 150000, "duration_minutes": 60},
    {"name": "Creambath", "category": "Perawatan Rambut", "normal_price": 85000, "promo_price": 75000, "duration_minutes": 45},
    {"name": "Japanese Head Spa", "category": "Japanese Head SPA", "normal_price": 200000, "duration_minutes": 90},
    {"name": "Manicure Pedicure", "category": "Perawatan Tangan & Kaki", "normal_price": 120000, "duration_minutes": 75},
]

CUSTOMERS = [
    ("Nur Aisyah", "081260001111"),
    ("Rina Siregar", "081260002222"),
    ("Fitri Harahap", "081260003333"),
    ("Maya Sembiring", "081260004444"),
]


def _get_or_create(model, lookup, values):
    instance = model.query.filter_by(**lookup).first()
    if instance is None:
        instance = model(**lookup, **values)
        db.session.add(instance)
    return instance


def seed_ledger(days: int = 30):
    """Create sample data for the last ``days`` days."""
    app = create_app()

    with app.app_context():
        db.create_all()
        print("🔄 Seeding sample salon data...")

        for therapist in THERAPISTS:
            _get_or_create(Therapist, {"initial": therapist["initial"]}, {
                key: value for key, value in therapist.items() if key != "initial"
            })
        for service in SERVICES:
            _get_or_create(Service, {"name": service["name"]}, {
                key: value for key, value in service.items() if key != "name"
            })
        db.session.commit()

        if TreatmentRecord.query.count() > 0:
            print("⏭️  Treatments already exist, skipping treatment seeding")
        else:
            therapists = Therapist.query.all()
            services = Service.query.all()
            today = date.today()
            created_count = 0
            for offset in range(days, 0, -1):
                day = today - timedelta(days=offset)
                # Closed on Sundays
                if day.weekday() == 6:
                    continue
                for slot in range(random.randint(2, 8)):
                    name, phone = random.choice(CUSTOMERS)
                    record_treatment(
                        date=datetime.combine(day, time(9 + slot, 0)),
                        customer_ref=CustomerRef(name=name, phone=phone),
                        service_id=random.choice(services).service_id,
                        therapist_id=random.choice(therapists).therapist_id,
                        tip=random.randint(0, 3) * 5000,
                    )
                    created_count += 1
                auto_calculate_daily_entry(
                    day,
                    operational_cost=random.randint(50, 100) * 1000,
                    other_expenses=random.randint(0, 20) * 1000,
                )
            print(f"✅ Created {created_count} treatments")

        repaired = rebuild_running_totals()
        print(f"✨ Ledger checked, {repaired} running totals repaired")
        print(f"  Customers: {Customer.query.count()}")

if __name__ == "__main__":
    seed_ledger()
