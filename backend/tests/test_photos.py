import pytest

from app.models import ArrivalPhoto
from app.services.arrival_photos import add_photo, delete_photo, storage_path
from app.services.errors import ArrivalLockedError, NotFoundError
from app.services.photo_storage import LocalPhotoStorage
from app.services.reassignment import add_from_model, undo_reassign
from app.services.reconciliation import complete_arrival, start_arrival


def test_local_storage_roundtrip(tmp_path):
    storage = LocalPhotoStorage(tmp_path, "http://files.local/photos/")

    storage.upload("p1/a/1_x.jpg", b"jpeg")

    assert (tmp_path / "p1" / "a" / "1_x.jpg").read_bytes() == b"jpeg"
    assert storage.get_public_url("p1/a/1_x.jpg") == "http://files.local/photos/p1/a/1_x.jpg"
    storage.remove("p1/a/1_x.jpg")
    assert not (tmp_path / "p1" / "a" / "1_x.jpg").exists()
    # Removing twice is fine
    storage.remove("p1/a/1_x.jpg")


def test_local_storage_rejects_escaping_paths(tmp_path):
    storage = LocalPhotoStorage(tmp_path / "root", "/photos")
    with pytest.raises(ValueError):
        storage.upload("../outside.jpg", b"x")


def test_storage_path_sanitises_file_name():
    path = storage_path("proj", "arr", "../crane lift #2.jpg")

    project, arrival, name = path.split("/")
    assert (project, arrival) == ("proj", "arr")
    assert name.endswith("_crane_lift_2.jpg")


def test_add_photo_links_confirmation(db, schedule, make_store, photo_storage):
    store = make_store("photographer")
    item = schedule.items["a1"]
    arrival = start_arrival(store, schedule.v1.id)

    photo = add_photo(store, arrival.id, "damage.jpg", b"bytes", mime_type="image/jpeg", item_id=item.id)

    assert photo.confirmation_id == store.ledger.get(arrival.id, item.id).confirmation_id
    assert photo.file_size == 5
    assert photo.uploaded_by == "photographer"
    assert photo.file_url.startswith("/photos/proj-test/")
    assert (photo_storage.root / photo.storage_path).read_bytes() == b"bytes"


def test_arrival_level_photo_has_no_confirmation(schedule, make_store):
    store = make_store()
    arrival = start_arrival(store, schedule.v1.id)

    photo = add_photo(store, arrival.id, "overview.jpg", b"x")

    assert photo.item_id is None
    assert photo.confirmation_id is None


def test_delete_photo_removes_blob(db, schedule, make_store, photo_storage):
    store = make_store()
    arrival = start_arrival(store, schedule.v1.id)
    photo = add_photo(store, arrival.id, "overview.jpg", b"x")
    blob = photo_storage.root / photo.storage_path

    delete_photo(store, photo.id)

    assert db.query(ArrivalPhoto).count() == 0
    assert not blob.exists()
    with pytest.raises(NotFoundError):
        delete_photo(store, photo.id)


def test_photos_on_confirmed_arrival_are_rejected(schedule, make_store):
    store = make_store()
    arrival = start_arrival(store, schedule.v1.id)
    complete_arrival(store, arrival.id)

    with pytest.raises(ArrivalLockedError):
        add_photo(store, arrival.id, "late.jpg", b"x")


def test_undo_model_addition_keeps_photo_unlinked(db, schedule, make_store):
    store = make_store()
    arrival = start_arrival(store, schedule.v1.id)
    entry = add_from_model(store, arrival.id, "g-new", "X-9")
    photo = add_photo(store, arrival.id, "found.jpg", b"x", item_id=entry.item_id)

    undo_reassign(store, entry.confirmation_id)

    db.expire_all()
    kept = db.get(ArrivalPhoto, photo.id)
    assert kept is not None
    assert kept.item_id is None
    assert kept.confirmation_id is None
