"""
Arrival photo service - blob upload plus the photo row that points at it.
"""
from typing import Optional
from uuid import UUID
import logging
import re
import time

from app.models import ArrivalPhoto
from app.services.arrival_store import ArrivalStore
from app.services.errors import NotFoundError
from app.services.photo_storage import LocalPhotoStorage, PhotoStorage

logger = logging.getLogger(__name__)

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def _storage(store: ArrivalStore) -> PhotoStorage:
    if store.photo_storage is None:
        store.photo_storage = LocalPhotoStorage()
    return store.photo_storage


def storage_path(project_id: str, arrival_id: UUID, file_name: str) -> str:
    safe_name = _UNSAFE_NAME.sub("_", file_name).strip("._") or "photo"
    return f"{project_id}/{arrival_id}/{int(time.time() * 1000)}_{safe_name}"


def add_photo(
    store: ArrivalStore,
    arrival_id: UUID,
    file_name: str,
    data: bytes,
    mime_type: Optional[str] = None,
    item_id: Optional[UUID] = None,
    description: Optional[str] = None,
) -> ArrivalPhoto:
    """Upload a photo for an arrival, optionally tied to one of its items."""
    with store.mutation():
        arrival = store.require_arrival(arrival_id, writable=True)
        if item_id is not None:
            store.require_item(item_id)
        entry = store.ledger.get(arrival.id, item_id) if item_id is not None else None

        storage = _storage(store)
        path = storage_path(store.project_id, arrival.id, file_name)
        storage.upload(path, data)

        photo = ArrivalPhoto(
            project_id=store.project_id,
            arrived_vehicle_id=arrival.id,
            item_id=item_id,
            confirmation_id=entry.confirmation_id if entry else None,
            file_name=file_name,
            storage_path=path,
            file_url=storage.get_public_url(path),
            file_size=len(data),
            mime_type=mime_type,
            description=description,
            uploaded_by=store.acting_user,
        )
        store.db.add(photo)
        try:
            store.db.commit()
        except Exception:
            store.db.rollback()
            storage.remove(path)
            raise
        store.db.refresh(photo)
        logger.info("Photo %s added to arrival %s", file_name, arrival.id)
        return photo


def delete_photo(store: ArrivalStore, photo_id: UUID) -> None:
    with store.mutation():
        photo = (
            store.db.query(ArrivalPhoto)
            .filter(ArrivalPhoto.project_id == store.project_id, ArrivalPhoto.id == photo_id)
            .first()
        )
        if not photo:
            raise NotFoundError(f"Photo {photo_id} not found")
        path = photo.storage_path
        store.db.delete(photo)
        store.db.commit()
        try:
            _storage(store).remove(path)
        except OSError as e:
            logger.warning("Photo blob %s could not be removed: %s", path, e)
        logger.info("Photo %s deleted", photo_id)
