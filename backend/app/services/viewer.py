"""
Model viewer collaborator interface and selection polling.

The viewer is a convenience layer: callers catch its failures and downgrade
them to warnings, a reconciliation write never depends on it.
"""
from __future__ import annotations

import logging
import re
import threading
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

from app.db.database import settings

logger = logging.getLogger(__name__)

Color = Dict[str, int]


class ViewerClient:
    """Operations the backend needs from the 3D model viewer."""

    def get_selection(self) -> List[dict]:
        """Current selection as [{"modelId": str, "objectRuntimeIds": [int, ...]}, ...]."""
        raise NotImplementedError

    def convert_to_object_ids(self, model_id: str, runtime_ids: Sequence[int]) -> List[str]:
        raise NotImplementedError

    def get_object_properties(self, model_id: str, runtime_ids: Sequence[int]) -> List[dict]:
        raise NotImplementedError

    def set_selection(self, guids: Sequence[str]) -> None:
        raise NotImplementedError

    def set_object_state(self, guids: Sequence[str], color: Color) -> None:
        raise NotImplementedError


def batched(values: Sequence[str], size: int) -> Iterable[List[str]]:
    size = max(1, int(size))
    for start in range(0, len(values), size):
        yield list(values[start:start + size])


def paint_guids(
    viewer: Optional[ViewerClient],
    guids: Sequence[str],
    color: Color,
    batch_size: Optional[int] = None,
) -> bool:
    """Paint GUIDs in fixed-size batches. Returns False if the viewer failed."""
    if viewer is None or not guids:
        return True
    try:
        for batch in batched(list(guids), batch_size or settings.viewer_color_batch_size):
            viewer.set_object_state(batch, color)
        return True
    except Exception as e:
        logger.warning("Viewer coloring failed for %d object(s): %s", len(guids), e)
        return False


def select_guids(viewer: Optional[ViewerClient], guids: Sequence[str]) -> bool:
    """Select objects in the viewer; an empty list clears the selection."""
    if viewer is None:
        return True
    try:
        viewer.set_selection(list(guids))
        return True
    except Exception as e:
        logger.warning("Viewer selection failed: %s", e)
        return False



def _property_key(name: str) -> str:
    return re.sub(r"[\s/]+", "_", name.lower())


def _leading_number(value: Any) -> Optional[float]:
    match = re.match(r"\s*(-?\d+(?:[.,]\d+)?)", str(value))
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def object_details(properties: Optional[dict], runtime_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Read assembly mark, product name and weight from one viewer property record.

    The record looks like {"product": {"name": ...}, "properties": [pset, ...]}
    where each pset holds {"name", "displayValue" or "value"} entries. Names are
    matched lowercased with spaces and slashes turned into underscores. Without
    a mark property the object is called `Object_<runtime id>`.
    """
    properties = properties or {}
    product = properties.get("product") or {}
    assembly_mark: Optional[str] = None
    weight: Optional[float] = None

    for pset in properties.get("properties") or []:
        for prop in (pset or {}).get("properties") or []:
            name = _property_key(prop.get("name") or "")
            value = prop.get("displayValue")
            if value is None:
                value = prop.get("value")
            if value is None or value == "":
                continue
            if assembly_mark is None and (
                ("cast" in name and "mark" in name) or name in ("assembly_pos", "assembly_mark")
            ):
                assembly_mark = str(value)
            if "cast" in name and "weight" in name:
                weight = _leading_number(value)

    if assembly_mark is None and runtime_id is not None:
        assembly_mark = f"Object_{runtime_id}"
    return {
        "assembly_mark": assembly_mark,
        "product_name": str(product["name"]) if product.get("name") else None,
        "weight": weight,
    }


def selection_dedupe_key(guids: Sequence[str]) -> Hashable:
    return tuple(sorted(set(guids)))


class SelectionPoller:
    """
    Polls the viewer selection while model-pick mode is active.

    `on_change` only fires when the dedupe key of the selection changes, so an
    unchanged selection is never processed twice.
    """

    def __init__(
        self,
        viewer: ViewerClient,
        on_change: Callable[[List[str]], None],
        *,
        interval_sec: Optional[float] = None,
        dedupe_key: Callable[[Sequence[str]], Hashable] = selection_dedupe_key,
    ) -> None:
        self.viewer = viewer
        self.on_change = on_change
        self.interval_sec = interval_sec if interval_sec is not None else settings.selection_poll_interval
        self.dedupe_key = dedupe_key
        self._last_key: Optional[Hashable] = None
        # GUID -> (model id, runtime id) of every object seen in a selection
        self.objects: Dict[str, Tuple[str, int]] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def read_selection(self) -> List[str]:
        guids: List[str] = []
        for entry in self.viewer.get_selection() or []:
            runtime_ids = entry.get("objectRuntimeIds") or []
            if not runtime_ids:
                continue
            model_id = entry.get("modelId")
            converted = self.viewer.convert_to_object_ids(model_id, runtime_ids)
            for runtime_id, guid in zip(runtime_ids, converted):
                if guid:
                    self.objects[guid] = (model_id, runtime_id)
                    guids.append(guid)
        return guids

    def poll_once(self) -> Optional[List[str]]:
        """Read the selection once; return it only if it changed since the last poll."""
        try:
            guids = self.read_selection()
        except Exception as e:
            logger.warning("Viewer selection poll failed: %s", e)
            return None
        key = self.dedupe_key(guids)
        if key == self._last_key:
            return None
        self._last_key = key
        self.on_change(guids)
        return guids

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def reset(self) -> None:
        self._last_key = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self.reset()
        self._thread = threading.Thread(target=self._run, name="SelectionPoller", daemon=True)
        self._thread.start()
        logger.info("Selection polling started interval=%ss", self.interval_sec)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Selection polling stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            self.poll_once()
            self._stop.wait(self.interval_sec)
