"""
Derived views over the ledger: item rows, duplicate numbering, range
selection and viewer color groups.

Nothing here writes to the store; the only side effects are painting and
selecting objects in the model viewer.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from uuid import UUID
import logging

from app.models import ConfirmationStatus, DeliveryItem
from app.services.arrival_store import ArrivalStore
from app.services.errors import NotFoundError
from app.services.viewer import paint_guids, select_guids

logger = logging.getLogger(__name__)

COLOR_GROUPS = ("pending", "confirmed", "missing", "added_from_vehicle", "added_from_model")


def duplicate_ordinals(items: Sequence[DeliveryItem]) -> Dict[UUID, Tuple[int, int]]:
    """
    Number items that share an assembly mark on the same vehicle.

    Returns item_id -> (ordinal, total). The sort is stable, so items with the
    same mark keep their input order and their numbers between calls.
    """
    groups: Dict[Tuple[Optional[UUID], str], List[DeliveryItem]] = defaultdict(list)
    for item in sorted(items, key=lambda i: i.assembly_mark or ""):
        groups[(item.vehicle_id, item.assembly_mark or "")].append(item)

    ordinals: Dict[UUID, Tuple[int, int]] = {}
    for group in groups.values():
        for index, item in enumerate(group, start=1):
            ordinals[item.id] = (index, len(group))
    return ordinals


def ordinal_label(assembly_mark: str, ordinal: int, total: int) -> str:
    if total <= 1:
        return assembly_mark
    return f"{assembly_mark} ({ordinal}/{total})"


class RangeSelection:
    """
    Click and shift-click selection over a displayed list of item ids.

    A plain click toggles one item and moves the anchor there. A shift-click
    selects everything between the anchor and the clicked item in the list
    currently shown, and leaves the anchor in place. When the anchor is not
    in the shown list (filtered out), a shift-click acts like a plain click.
    """

    def __init__(self) -> None:
        self.selected: Set[Any] = set()
        self.anchor: Optional[Any] = None

    def click(self, item_id: Any, visible: Sequence[Any], shift: bool = False) -> Set[Any]:
        visible = list(visible)
        if shift and self.anchor is not None and self.anchor in visible and item_id in visible:
            start, end = sorted((visible.index(self.anchor), visible.index(item_id)))
            self.selected.update(visible[start:end + 1])
            return set(self.selected)

        if item_id in self.selected:
            self.selected.discard(item_id)
        else:
            self.selected.add(item_id)
        self.anchor = item_id
        return set(self.selected)

    def clear(self) -> None:
        self.selected.clear()
        self.anchor = None


def evaluated_items(store: ArrivalStore, vehicle_id: UUID, arrival_id: Optional[UUID]) -> List[DeliveryItem]:
    """Items pointing at the vehicle plus items ledgered as added on the arrival."""
    items = store.vehicle_items(vehicle_id)
    if arrival_id is None:
        return items

    seen = {item.id for item in items}
    added_ids = [
        entry.item_id
        for entry in store.ledger.entries_for_arrival(arrival_id)
        if entry.status == ConfirmationStatus.ADDED and entry.item_id not in seen
    ]
    extra = store.get_items(added_ids)
    items.extend(sorted(extra.values(), key=lambda i: i.assembly_mark or ""))
    return items


def color_group_for(store: ArrivalStore, arrival_id: Optional[UUID], item_id: UUID) -> str:
    if arrival_id is None:
        return "pending"
    entry = store.ledger.get(arrival_id, item_id)
    if entry is None:
        return "pending"
    if entry.status == ConfirmationStatus.ADDED:
        return "added_from_model" if entry.is_model_discovered else "added_from_vehicle"
    return entry.status.value


def color_partition(
    store: ArrivalStore,
    targets: Iterable[Tuple[UUID, Optional[UUID]]],
) -> Dict[str, List[str]]:
    """
    Partition the GUIDs of the evaluated items into the status color groups.

    `targets` is a list of (vehicle_id, arrival_id or None). Every GUID lands
    in exactly one group; the first target that claims it wins.
    """
    groups: Dict[str, List[str]] = {name: [] for name in COLOR_GROUPS}
    assigned: Set[str] = set()
    for vehicle_id, arrival_id in targets:
        for item in evaluated_items(store, vehicle_id, arrival_id):
            if not item.guid or item.guid in assigned:
                continue
            assigned.add(item.guid)
            groups[color_group_for(store, arrival_id, item.id)].append(item.guid)
    return groups


def arrival_color_groups(store: ArrivalStore, arrival_id: UUID) -> Dict[str, List[str]]:
    arrival = store.require_arrival(arrival_id)
    return color_partition(store, [(arrival.vehicle_id, arrival.id)])


def paint_color_groups(
    store: ArrivalStore,
    groups: Dict[str, List[str]],
    batch_size: Optional[int] = None,
) -> bool:
    """Paint every other project object neutral, then each group in batches."""
    colored = {guid for name in COLOR_GROUPS for guid in groups.get(name, [])}
    others = [guid for guid in store.project_guids() if guid not in colored]

    ok = paint_guids(store.viewer, others, store.palette["neutral"], batch_size)
    for name in COLOR_GROUPS:
        ok = paint_guids(store.viewer, groups.get(name, []), store.palette[name], batch_size) and ok
    if not ok:
        logger.warning("Viewer coloring was incomplete")
    return ok


def activate_coloring(store: ArrivalStore, arrival_id: UUID) -> Dict[str, List[str]]:
    groups = arrival_color_groups(store, arrival_id)
    paint_color_groups(store, groups)
    store.active_coloring.add(arrival_id)
    return groups


def deactivate_coloring(store: ArrivalStore, arrival_id: UUID) -> None:
    store.active_coloring.discard(arrival_id)
    paint_guids(store.viewer, store.project_guids(), store.palette["neutral"])


def arrival_item_rows(store: ArrivalStore, arrival_id: UUID) -> List[Dict[str, Any]]:
    """One display row per evaluated item of the arrival."""
    arrival = store.require_arrival(arrival_id)
    items = evaluated_items(store, arrival.vehicle_id, arrival.id)
    ordinals = duplicate_ordinals(items)

    rows = []
    for item in items:
        entry = store.ledger.get(arrival.id, item.id)
        ordinal, total = ordinals[item.id]
        rows.append({
            "item_id": item.id,
            "guid": item.guid,
            "assembly_mark": item.assembly_mark,
            "product_name": item.product_name,
            "weight": float(item.weight) if item.weight is not None else None,
            "ordinal": ordinal,
            "total": total,
            "label": ordinal_label(item.assembly_mark, ordinal, total),
            "status": entry.status if entry else ConfirmationStatus.PENDING,
            "note": entry.note if entry else None,
            "photo_count": store.ledger.photo_count(arrival.id, item.id),
            "source_vehicle_code": entry.source_vehicle_code if entry else None,
            "confirmation_id": entry.confirmation_id if entry else None,
        })
    return rows


def visible_item_ids(rows: Iterable[Dict[str, Any]], statuses: Optional[Iterable[Any]] = None) -> List[UUID]:
    """Item ids of the rows shown under a status filter, in display order."""
    wanted = {ConfirmationStatus(s) for s in statuses} if statuses else None
    return [row["item_id"] for row in rows if wanted is None or row["status"] in wanted]


def arrival_detail(store: ArrivalStore, arrival_id: UUID) -> Dict[str, Any]:
    arrival = store.require_arrival(arrival_id)
    vehicle = store.get_vehicle(arrival.vehicle_id)
    rows = arrival_item_rows(store, arrival.id)
    return {
        "arrival": arrival,
        "vehicle_code": vehicle.vehicle_code if vehicle else "",
        "items": rows,
        "counts": store.ledger.status_counts(arrival.id, [row["item_id"] for row in rows]),
    }


def click_item(
    store: ArrivalStore,
    arrival_id: UUID,
    selection: RangeSelection,
    item_id: UUID,
    shift: bool = False,
    statuses: Optional[Iterable[Any]] = None,
) -> Dict[str, Any]:
    """
    Apply a list click to the arrival's selection and mirror it in the viewer.

    `statuses` is the status filter of the list the click happened in; a
    shift-click only spans the rows that filter shows.
    """
    rows = arrival_item_rows(store, arrival_id)
    by_id = {row["item_id"]: row for row in rows}
    if item_id not in by_id:
        raise NotFoundError(f"Item {item_id} is not on arrival {arrival_id}")

    chosen = selection.click(item_id, visible_item_ids(rows, statuses), shift=shift)
    ordered = [row["item_id"] for row in rows if row["item_id"] in chosen]
    guids = [by_id[i]["guid"] for i in ordered if by_id[i]["guid"]]
    return {"selected": ordered, "viewer_synced": select_guids(store.viewer, guids)}


def clear_selection(store: ArrivalStore, selection: RangeSelection) -> bool:
    selection.clear()
    return select_guids(store.viewer, [])
