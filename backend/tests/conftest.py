import os
import tempfile
from datetime import date
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("PHOTO_STORAGE_DIR", os.path.join(tempfile.gettempdir(), "site-arrivals-test-photos"))
os.environ.setdefault("REPORT_DIR", os.path.join(tempfile.gettempdir(), "site-arrivals-test-reports"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.database import Base
from app.models import DeliveryFactory, DeliveryItem, DeliveryVehicle
from app.services.arrival_store import ArrivalStore
from app.services.errors import ViewerError
from app.services.photo_storage import LocalPhotoStorage
from app.services.viewer import ViewerClient

PROJECT_ID = "proj-test"


class FakeViewer(ViewerClient):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.selection = []
        self.selected = []
        self.painted = []
        # runtime id -> property record
        self.properties = {}

    def get_selection(self):
        if self.fail:
            raise ViewerError("viewer offline")
        return self.selection

    def convert_to_object_ids(self, model_id, runtime_ids):
        return [f"{model_id}-{rid}" for rid in runtime_ids]

    def get_object_properties(self, model_id, runtime_ids):
        return [self.properties.get(rid, {"id": rid}) for rid in runtime_ids]

    def set_selection(self, guids):
        if self.fail:
            raise ViewerError("viewer offline")
        self.selected = list(guids)

    def set_object_state(self, guids, color):
        if self.fail:
            raise ViewerError("viewer offline")
        self.painted.append((list(guids), dict(color)))

    def color_of(self, guid):
        color = None
        for guids, painted_color in self.painted:
            if guid in guids:
                color = painted_color
        return color


def make_session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    return SessionLocal()


def seed_schedule(db, project_id: str = PROJECT_ID) -> SimpleNamespace:
    """Two scheduled vehicles, one item without a vehicle."""
    factory = DeliveryFactory(project_id=project_id, factory_name="Obornik Precast", factory_code="OPO")
    db.add(factory)
    db.flush()

    v1 = DeliveryVehicle(
        project_id=project_id,
        factory_id=factory.id,
        vehicle_number=1,
        vehicle_code="OPO1",
        scheduled_date=date(2026, 10, 20),
        sort_order=1,
    )
    v2 = DeliveryVehicle(
        project_id=project_id,
        factory_id=factory.id,
        vehicle_number=2,
        vehicle_code="OPO2",
        scheduled_date=date(2026, 10, 21),
        sort_order=2,
    )
    db.add_all([v1, v2])
    db.flush()

    items = {}
    rows = [
        ("a1", v1, "W-101", "g-101", 1),
        ("a2", v1, "W-102", "g-102", 2),
        ("a3", v1, "W-101", "g-101b", 3),
        ("b1", v2, "W-201", "g-201", 1),
        ("b2", v2, "W-202", "g-202", 2),
        ("b3", v2, "W-203", None, 3),
        ("loose", None, "L-1", "g-loose", 1),
    ]
    for key, vehicle, mark, guid, order in rows:
        item = DeliveryItem(
            project_id=project_id,
            vehicle_id=vehicle.id if vehicle else None,
            guid=guid,
            assembly_mark=mark,
            product_name="Wall panel",
            weight=4200,
            scheduled_date=vehicle.scheduled_date if vehicle else None,
            sort_order=order,
        )
        db.add(item)
        items[key] = item
    db.commit()
    return SimpleNamespace(factory=factory, v1=v1, v2=v2, items=items)


@pytest.fixture
def db():
    session = make_session()
    yield session
    session.close()


@pytest.fixture
def schedule(db):
    return seed_schedule(db)


@pytest.fixture
def viewer():
    return FakeViewer()


@pytest.fixture
def failing_viewer():
    return FakeViewer(fail=True)


@pytest.fixture
def photo_storage(tmp_path):
    return LocalPhotoStorage(tmp_path / "photos", "/photos")


@pytest.fixture
def make_store(db, viewer, photo_storage):
    def _make(user: str = "tester", viewer_client=None):
        return ArrivalStore(
            db,
            PROJECT_ID,
            user,
            viewer=viewer_client or viewer,
            photo_storage=photo_storage,
        )
    return _make
