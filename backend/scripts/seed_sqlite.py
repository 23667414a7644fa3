"""
Seed the SQLite catalog with demo properties, retreats and programs.
Each property gets two retreats and one program, each with dated instances,
images and base price modifiers (one current, one expired).
Run: python scripts/seed_sqlite.py
"""

from datetime import date, datetime, timedelta
import os
import sys

# Add backend directory to path for package imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from atma_catalog.db.models import (
    Base,
    Image,
    PriceMod,
    Program,
    ProgramInstance,
    Property,
    Retreat,
    RetreatInstance,
)

IMAGE_PATHS = [
    "/img/iStock-1929812569.jpg",
    "/img/iStock-1812905796.jpg",
    "/img/iStock-1550112895.jpg",
    "/img/iStock-1507078404.jpg",
    "/img/indoor-design-luxury-resort.jpg",
    "/img/woman-sits-pool-with-palm-trees-background.jpg",
]

# (city, country, property type, lat, lng)
LOCATIONS = [
    ("London", "GB", "hotel", 51.5074, -0.1278),
    ("Stockholm", "SE", "boutique", 59.3293, 18.0686),
    ("New York", "US", "hotel", 40.7128, -74.0060),
    ("Honolulu", "US", "resort", 21.3069, -157.8583),
    ("Tokyo", "JP", "retreat_center", 35.6762, 139.6503),
    ("Ubud", "ID", "eco_lodge", -8.5069, 115.2625),
    ("Tulum", "MX", "villa", 20.2114, -87.4654),
    ("Queenstown", "NZ", "lodge", -45.0312, 168.6626),
]

CATEGORIES = ["yoga", "meditation", "spa", "detox", "fitness", "breathwork"]


def main():
    db_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "atma_catalog.db")
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    print(f"Database: {db_path}")

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    print("Tables created")

    Session = sessionmaker(bind=engine)
    session = Session()
    today = date.today()
    now = datetime.utcnow()

    for i, (city, country, ptype, lat, lng) in enumerate(LOCATIONS):
        prop = Property(
            name=f"{city} {ptype.replace('_', ' ').title()}",
            desc_short=f"A calm {ptype.replace('_', ' ')} in {city}.",
            type=ptype,
            rating=f"{3 + i % 3}",
            city=city,
            country=country,
            lat=lat,
            lng=lng,
            verified=now - timedelta(days=i) if i % 2 == 0 else None,
            created_at=now - timedelta(days=30 - i),
        )
        session.add(prop)
        session.flush()
        session.add(Image(file_path=IMAGE_PATHS[i % len(IMAGE_PATHS)], order=0, property_id=prop.id))
        session.add(PriceMod(name="Nightly rate", value=150 + 25 * i, currency="USD", property_id=prop.id))

        offerings = [
            (Retreat, RetreatInstance, "retreat_id", f"{city} Renewal Retreat"),
            (Retreat, RetreatInstance, "retreat_id", f"{city} Silent Week"),
            (Program, ProgramInstance, "program_id", f"{city} Daily Practice"),
        ]
        for j, (model, instance_model, owner, name) in enumerate(offerings):
            entity = model(
                name=name,
                category=CATEGORIES[(i + j) % len(CATEGORIES)],
                desc=f"{name}: restorative days in {city}.",
                duration=f"{3 + j * 2} days",
                min_guests=1,
                max_guests=[-1, 12, 20][j],
                property_id=prop.id,
                verified=now if (i + j) % 3 == 0 else None,
                created_at=now - timedelta(days=20 - i, hours=j),
            )
            session.add(entity)
            session.flush()

            for k in range(2):
                start = today + timedelta(days=14 * (i + k + 1))
                session.add(instance_model(**{
                    owner: entity.id,
                    "start_date": start,
                    "end_date": start + timedelta(days=3 + j * 2),
                    "available_slots": 10,
                }))
            session.add(Image(**{
                owner: entity.id,
                "file_path": IMAGE_PATHS[(i + j + 2) % len(IMAGE_PATHS)],
                "order": 0,
            }))
            session.add(PriceMod(**{
                owner: entity.id,
                "name": "Base price",
                "value": 900 + 100 * i + 50 * j,
                "currency": "USD",
                "date_start": today - timedelta(days=30),
                "date_end": today + timedelta(days=365),
            }))
            session.add(PriceMod(**{
                owner: entity.id,
                "name": "Early bird (expired)",
                "value": 500,
                "currency": "USD",
                "date_start": today - timedelta(days=120),
                "date_end": today - timedelta(days=60),
            }))

    session.commit()

    for model in (Property, Retreat, Program):
        total = session.execute(select(func.count(model.id))).scalar()
        print(f"Verified: {total} rows in {model.__tablename__}")

    session.close()
    engine.dispose()
    print("\nSeed complete!")


if __name__ == "__main__":
    main()
