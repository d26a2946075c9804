"""
Model-pick mode - objects selected in the viewer are put on an arrival.

A session polls the viewer selection on a daemon thread and applies every
newly picked object through `apply_model_selection`, each time with its own
database session. Sessions are kept in a registry keyed by
(project id, arrival id).
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from app.services.arrival_store import ArrivalStore
from app.services.photo_storage import PhotoStorage
from app.services.reassignment import apply_model_selection
from app.services.viewer import SelectionPoller, ViewerClient

logger = logging.getLogger(__name__)

PickKey = Tuple[str, UUID]


class ModelPickSession:
    def __init__(
        self,
        project_id: str,
        arrival_id: UUID,
        viewer: ViewerClient,
        session_factory: Callable[[], Session],
        *,
        acting_user: str = "unknown",
        active_coloring: Optional[Set[UUID]] = None,
        photo_storage: Optional[PhotoStorage] = None,
        interval_sec: Optional[float] = None,
    ) -> None:
        self.project_id = project_id
        self.arrival_id = arrival_id
        self.viewer = viewer
        self.session_factory = session_factory
        self.acting_user = acting_user
        self.active_coloring = active_coloring
        self.photo_storage = photo_storage
        self.poller = SelectionPoller(viewer, self.handle_selection, interval_sec=interval_sec)
        # GUIDs already applied; picking them again is a no-op
        self.processed: Set[str] = set()
        self.reassigned: List[UUID] = []
        self.added: List[UUID] = []
        self.skipped: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def handle_selection(self, guids: List[str]) -> None:
        with self._lock:
            fresh = [guid for guid in dict.fromkeys(guids) if guid not in self.processed]
            if not fresh:
                return
            picks = []
            for guid in fresh:
                model_id, runtime_id = self.poller.objects.get(guid, (None, None))
                picks.append({"guid": guid, "model_id": model_id, "object_runtime_id": runtime_id})

            db = self.session_factory()
            try:
                store = ArrivalStore(
                    db,
                    self.project_id,
                    self.acting_user,
                    viewer=self.viewer,
                    photo_storage=self.photo_storage,
                    active_coloring=self.active_coloring,
                )
                result = apply_model_selection(store, self.arrival_id, picks)
            except Exception as e:
                # The polling thread keeps running; the same objects can be picked again
                logger.warning("Model pick on arrival %s failed: %s", self.arrival_id, e)
                return
            finally:
                db.close()

            self.processed.update(fresh)
            self.reassigned.extend(result["reassigned"])
            self.added.extend(result["added"])
            self.skipped.extend(result["skipped"])

    @property
    def active(self) -> bool:
        return self.poller.running

    def start(self) -> None:
        self.poller.start()
        logger.info("Model pick started for arrival %s", self.arrival_id)

    def stop(self) -> None:
        self.poller.stop(timeout=max(1.0, self.poller.interval_sec * 2))
        logger.info(
            "Model pick stopped for arrival %s: %d reassigned, %d added",
            self.arrival_id,
            len(self.reassigned),
            len(self.added),
        )

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "arrival_id": self.arrival_id,
                "active": self.active,
                "reassigned": list(self.reassigned),
                "added": list(self.added),
                "skipped": list(self.skipped),
            }


def start_model_pick(
    registry: Dict[PickKey, ModelPickSession],
    store: ArrivalStore,
    arrival_id: UUID,
    interval_sec: Optional[float] = None,
) -> ModelPickSession:
    """Start (or return the running) model-pick session of an arrival."""
    if store.viewer is None:
        raise ValueError("No model viewer is attached")
    store.require_arrival(arrival_id, writable=True)

    key = (store.project_id, arrival_id)
    session = registry.get(key)
    if session is not None and session.active:
        return session

    session = ModelPickSession(
        store.project_id,
        arrival_id,
        store.viewer,
        sessionmaker(bind=store.db.get_bind(), autoflush=False, autocommit=False),
        acting_user=store.acting_user,
        active_coloring=store.active_coloring,
        photo_storage=store.photo_storage,
        interval_sec=interval_sec,
    )
    registry[key] = session
    session.start()
    return session


def stop_model_pick(
    registry: Dict[PickKey, ModelPickSession],
    project_id: str,
    arrival_id: UUID,
) -> Optional[ModelPickSession]:
    session = registry.pop((project_id, arrival_id), None)
    if session is not None:
        session.stop()
    return session
