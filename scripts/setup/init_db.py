# scripts/setup/init_db.py
"""
Initialize database — creates all tables and optionally seeds a demo depot.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--seed-depot "Depot name"] [--vehicles 12]
"""

import sys
import os
import argparse
import random
from datetime import datetime, timedelta
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import SessionLocal, create_tables, engine
from app.config import settings
from app.schemas.depot import DepotCreate
from app.schemas.vehicle import VehicleCreate
from app.services.depot_service import create_depot, register_vehicle
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

DEMO_FLEET = [
    ("Tesla", "Model Y", 75), ("Tesla", "Model 3", 60), ("Rivian", "R1S", 135),
    ("Ford", "Mustang Mach-E", 91), ("Hyundai", "Ioniq 5", 77), ("Kia", "EV6", 77),
]


def seed(depot_name: str, vehicle_count: int):
    rng = random.Random(settings.RANDOM_SEED)
    now = datetime.utcnow()
    db = SessionLocal()
    try:
        depot = create_depot(db, DepotCreate(name=depot_name, location_address="Demo"))
        print(f"✅ Depot '{depot.name}' → {depot.id} (61 stalls)")
        for i in range(vehicle_count):
            make, model, battery = DEMO_FLEET[i % len(DEMO_FLEET)]
            soc = round(rng.uniform(12, 95))
            register_vehicle(db, VehicleCreate(
                depot_id=depot.id,
                make=make,
                model=model,
                battery_capacity_kwh=battery,
                current_soc_percent=soc,
                current_range_miles=round(battery * 3.5 * soc / 100),
                odometer_miles=rng.randint(1000, 60000),
                avg_daily_miles=rng.randint(40, 180),
                last_detail_date=now - timedelta(days=rng.randint(1, 20)),
                last_tire_rotation_date=now - timedelta(days=rng.randint(10, 90)),
                last_battery_health_check=now - timedelta(days=rng.randint(10, 120)),
            ))
        print(f"✅ {vehicle_count} vehicles registered")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create tables and seed demo data")
    parser.add_argument("--seed-depot", default=None, help="Create a depot with the standard layout")
    parser.add_argument("--vehicles", type=int, default=12)
    args = parser.parse_args()

    print("🗄️  Depot Scheduler DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except SQLAlchemyError as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  docker-compose up -d db")
        print("  # or: sudo systemctl start postgresql")
        sys.exit(1)

    # Create all tables
    print("\n📋 Creating tables...")
    create_tables()
    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.seed_depot:
        print("\n🌱 Seeding demo data...")
        seed(args.seed_depot, args.vehicles)

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn app.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
