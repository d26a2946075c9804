"""
Script to create a demo delivery schedule for testing.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import date, timedelta
from app.db.database import SessionLocal, Base, engine
from app.models import DeliveryFactory, DeliveryVehicle, DeliveryItem

PROJECT_ID = os.getenv("DEMO_PROJECT_ID", "demo-project")


def seed_demo_schedule():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        existing = db.query(DeliveryFactory).filter(DeliveryFactory.project_id == PROJECT_ID).first()
        if existing:
            print(f"Project '{PROJECT_ID}' already has a schedule (factory {existing.factory_name})")
            return

        factory = DeliveryFactory(
            project_id=PROJECT_ID,
            factory_name="Obornik Precast",
            factory_code="OPO",
            created_by="seed",
        )
        db.add(factory)
        db.flush()

        start = date.today()
        for number in range(1, 4):
            vehicle = DeliveryVehicle(
                project_id=PROJECT_ID,
                factory_id=factory.id,
                vehicle_number=number,
                vehicle_code=f"{factory.factory_code}{number}",
                scheduled_date=start + timedelta(days=number - 1),
                sort_order=number,
                created_by="seed",
            )
            db.add(vehicle)
            db.flush()
            for index in range(1, 5):
                mark = f"W-{number}{index:02d}" if index != 4 else f"W-{number}01"
                db.add(DeliveryItem(
                    project_id=PROJECT_ID,
                    vehicle_id=vehicle.id,
                    guid=f"demo-guid-{number}-{index}",
                    assembly_mark=mark,
                    product_name="Wall panel",
                    weight=4200 + index * 150,
                    scheduled_date=vehicle.scheduled_date,
                    sort_order=index,
                    created_by="seed",
                ))
        db.commit()
        print(f"Seeded demo schedule for project '{PROJECT_ID}'")
    except Exception as e:
        print(f"Error: {e}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_schedule()
