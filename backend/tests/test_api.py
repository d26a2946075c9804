import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_photo_storage
from app.db.database import Base, get_db
from app.main import app
from app.models import DeliveryHistory
from conftest import PROJECT_ID, FakeViewer, seed_schedule

BASE = f"/api/projects/{PROJECT_ID}"


@pytest.fixture
def api(tmp_path, photo_storage):
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    seed_db = TestingSession()
    schedule = seed_schedule(seed_db)
    ids = {
        "v1": str(schedule.v1.id),
        "v2": str(schedule.v2.id),
        **{key: str(item.id) for key, item in schedule.items.items()},
    }
    seed_db.close()

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_photo_storage] = lambda: photo_storage
    app.state.active_coloring = {}
    app.state.model_pick = {}
    app.state.selections = {}
    app.state.viewer = None
    client = TestClient(app)
    client.ids = ids
    client.session_factory = TestingSession
    yield client
    for session in app.state.model_pick.values():
        session.stop()
    app.state.viewer = None
    app.dependency_overrides.clear()


def _start(api, vehicle="v1"):
    response = api.post(f"{BASE}/arrivals", json={"vehicle_id": api.ids[vehicle]})
    assert response.status_code == 200
    return response.json()["id"]


def test_health(api):
    assert api.get("/health").json() == {"status": "healthy"}


def test_list_vehicles(api):
    response = api.get(f"{BASE}/vehicles", params={"scheduled_date": "2026-10-21"})

    assert response.status_code == 200
    assert [v["vehicle_code"] for v in response.json()] == ["OPO2"]


def test_start_arrival_and_detail(api):
    arrival_id = _start(api)

    detail = api.get(f"{BASE}/arrivals/{arrival_id}").json()

    assert detail["vehicle_code"] == "OPO1"
    assert detail["counts"]["pending"] == 3
    labels = sorted(row["label"] for row in detail["items"])
    assert labels == ["W-101 (1/2)", "W-101 (2/2)", "W-102"]
    # Starting again reuses the arrival
    assert _start(api) == arrival_id


def test_item_status_records_acting_user(api):
    arrival_id = _start(api)

    response = api.put(
        f"{BASE}/arrivals/{arrival_id}/items/{api.ids['a2']}/status",
        json={"status": "missing", "note": "Not loaded"},
        headers={"X-User": "site-lead"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "missing"
    assert body["confirmed_by"] == "site-lead"
    db = api.session_factory()
    try:
        history = db.query(DeliveryHistory).one()
        assert history.changed_by == "site-lead"
    finally:
        db.close()


def test_item_status_validation(api):
    arrival_id = _start(api)
    url = f"{BASE}/arrivals/{arrival_id}/items/{api.ids['a1']}/status"

    assert api.put(url, json={"status": "added"}).status_code == 400
    assert api.put(url, json={"status": "bogus"}).status_code == 422


def test_confirm_all_then_complete_locks_arrival(api):
    arrival_id = _start(api)

    result = api.post(f"{BASE}/arrivals/{arrival_id}/confirm-all").json()
    assert result == {"updated": 3, "inserted": 0, "skipped": 0}

    completed = api.post(f"{BASE}/arrivals/{arrival_id}/complete")
    assert completed.status_code == 200
    assert completed.json()["is_confirmed"] is True

    locked = api.put(
        f"{BASE}/arrivals/{arrival_id}/items/{api.ids['a1']}/status",
        json={"status": "missing"},
    )
    assert locked.status_code == 409


def test_unknown_arrival_is_404(api):
    missing = "00000000-0000-0000-0000-000000000000"
    assert api.get(f"{BASE}/arrivals/{missing}").status_code == 404


def test_patch_arrival_rejects_unknown_resource(api):
    arrival_id = _start(api)
    url = f"{BASE}/arrivals/{arrival_id}"

    ok = api.patch(url, json={"unload_resources": {"crane": 1}, "reg_number": "123ABC"})
    assert ok.status_code == 200
    assert ok.json()["unload_resources"]["crane"] == 1

    assert api.patch(url, json={"unload_resources": {"helicopter": 1}}).status_code == 422


def test_reassign_and_undo(api):
    arrival_id = _start(api)

    added = api.post(f"{BASE}/arrivals/{arrival_id}/reassign", json={"item_id": api.ids["b1"]})
    assert added.status_code == 200
    assert added.json()["status"] == "added"
    assert added.json()["source_vehicle_code"] == "OPO2"

    removed = api.get(f"{BASE}/vehicles/{api.ids['v2']}/removed-items").json()
    assert [r["assembly_mark"] for r in removed] == ["W-201"]

    undo = api.delete(f"{BASE}/confirmations/{added.json()['confirmation_id']}")
    assert undo.status_code == 200
    assert undo.json()["restored_vehicle_id"] == api.ids["v2"]
    assert api.get(f"{BASE}/vehicles/{api.ids['v2']}/removed-items").json() == []


def test_color_groups(api):
    arrival_id = _start(api)

    groups = api.get(f"{BASE}/arrivals/{arrival_id}/color-groups").json()["groups"]

    assert sorted(groups["pending"]) == ["g-101", "g-101b", "g-102"]
    assert groups["confirmed"] == []
    assert api.delete(f"{BASE}/arrivals/{arrival_id}/color-groups").status_code == 204


def test_unassigned_report_flow(api):
    created = api.post(f"{BASE}/unassigned", json={"guid": "g-202", "location": "Gate 2"})
    assert created.status_code == 201
    report_id = created.json()["id"]
    assert created.json()["item_id"] == api.ids["b2"]

    resolved = api.post(f"{BASE}/unassigned/{report_id}/resolve")
    assert resolved.status_code == 200
    assert resolved.json()["is_resolved"] is True

    assert api.get(f"{BASE}/unassigned").json() == []
    assert len(api.get(f"{BASE}/unassigned", params={"include_resolved": True}).json()) == 1


def test_photo_upload(api):
    arrival_id = _start(api)

    response = api.post(
        f"{BASE}/arrivals/{arrival_id}/photos",
        files={"file": ("crack.jpg", b"jpeg-bytes", "image/jpeg")},
        data={"item_id": api.ids["a1"], "description": "Cracked corner"},
    )

    assert response.status_code == 201
    photo = response.json()
    assert photo["item_id"] == api.ids["a1"]
    assert photo["confirmation_id"] is not None
    assert api.delete(f"{BASE}/photos/{photo['id']}").status_code == 204


def test_excel_report_download(api):
    arrival_id = _start(api)

    response = api.get(f"{BASE}/reports/arrivals/{arrival_id}/excel")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert response.content[:2] == b"PK"


def test_model_selection_endpoint(api):
    arrival_id = _start(api)

    response = api.post(
        f"{BASE}/arrivals/{arrival_id}/model-selection",
        json=[{"guid": "g-201"}, {"guid": "x-1", "assembly_mark": "X-1"}, {"guid": "g-101"}],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["reassigned"] == [api.ids["b1"]]
    assert len(body["added"]) == 1
    assert body["skipped"] == [{"guid": "g-101", "reason": "already_on_arrival"}]


def test_model_pick_start_status_stop(api):
    arrival_id = _start(api)
    url = f"{BASE}/arrivals/{arrival_id}/model-pick"

    # No viewer attached
    assert api.post(url).status_code == 400

    app.state.viewer = FakeViewer()
    started = api.post(url)
    assert started.status_code == 200
    assert started.json()["active"] is True
    assert api.get(url).json()["arrival_id"] == arrival_id

    stopped = api.delete(url)
    assert stopped.status_code == 200
    assert stopped.json()["active"] is False
    assert api.get(url).status_code == 404
    assert api.delete(url).status_code == 404


def test_selection_click_and_clear(api):
    viewer = FakeViewer()
    app.state.viewer = viewer
    arrival_id = _start(api)
    url = f"{BASE}/arrivals/{arrival_id}/selection"

    api.post(f"{url}/click", json={"item_id": api.ids["a1"]})
    response = api.post(f"{url}/click", json={"item_id": api.ids["a3"], "shift": True})

    assert response.status_code == 200
    assert response.json() == {
        "selected": [api.ids["a1"], api.ids["a2"], api.ids["a3"]],
        "viewer_synced": True,
    }
    assert viewer.selected == ["g-101", "g-102", "g-101b"]
    assert api.post(f"{url}/click", json={"item_id": api.ids["b1"]}).status_code == 404

    assert api.delete(url).json() == {"selected": [], "viewer_synced": True}
    assert viewer.selected == []
