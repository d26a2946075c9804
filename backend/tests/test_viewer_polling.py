import logging
import time

from app.services.viewer import (
    SelectionPoller,
    batched,
    object_details,
    paint_guids,
    select_guids,
    selection_dedupe_key,
)


def _selection(*runtime_ids, model_id="m1"):
    return [{"modelId": model_id, "objectRuntimeIds": list(runtime_ids)}]


def test_poll_once_fires_only_on_change(viewer):
    seen = []
    poller = SelectionPoller(viewer, seen.append, interval_sec=0.01)

    viewer.selection = _selection(1, 2)
    assert poller.poll_once() == ["m1-1", "m1-2"]
    # Same objects in another order are the same selection
    viewer.selection = _selection(2, 1)
    assert poller.poll_once() is None

    viewer.selection = _selection(3)
    assert poller.poll_once() == ["m1-3"]
    assert seen == [["m1-1", "m1-2"], ["m1-3"]]


def test_poll_once_skips_entries_without_runtime_ids(viewer):
    poller = SelectionPoller(viewer, lambda guids: None, interval_sec=0.01)
    viewer.selection = [{"modelId": "m1", "objectRuntimeIds": []}, *_selection(7, model_id="m2")]

    assert poller.poll_once() == ["m2-7"]


def test_poller_remembers_where_each_object_came_from(viewer):
    poller = SelectionPoller(viewer, lambda guids: None, interval_sec=0.01)
    viewer.selection = _selection(4, 9, model_id="m2")

    poller.poll_once()

    assert poller.objects == {"m2-4": ("m2", 4), "m2-9": ("m2", 9)}


def test_reset_allows_same_selection_again(viewer):
    seen = []
    poller = SelectionPoller(viewer, seen.append, interval_sec=0.01)
    viewer.selection = _selection(1)
    poller.poll_once()

    poller.reset()
    poller.poll_once()

    assert len(seen) == 2


def test_poll_failure_is_a_warning(failing_viewer, caplog):
    seen = []
    poller = SelectionPoller(failing_viewer, seen.append, interval_sec=0.01)
    caplog.set_level(logging.WARNING)

    assert poller.poll_once() is None
    assert seen == []
    assert any("poll failed" in rec.message for rec in caplog.records)


def test_start_and_stop_polling_thread(viewer):
    seen = []
    poller = SelectionPoller(viewer, seen.append, interval_sec=0.01)
    viewer.selection = _selection(5)

    poller.start()
    deadline = time.time() + 2
    while not seen and time.time() < deadline:
        time.sleep(0.01)
    poller.stop(timeout=1)

    assert seen == [["m1-5"]]
    assert poller._thread is None


def test_paint_guids_in_batches(viewer):
    guids = [f"g-{i}" for i in range(250)]
    color = {"r": 1, "g": 2, "b": 3, "a": 255}

    assert paint_guids(viewer, guids, color, batch_size=100) is True

    assert [len(batch) for batch, _ in viewer.painted] == [100, 100, 50]
    assert all(painted == color for _, painted in viewer.painted)


def test_paint_guids_failure_returns_false(failing_viewer, caplog):
    caplog.set_level(logging.WARNING)

    assert paint_guids(failing_viewer, ["g-1"], {"r": 0, "g": 0, "b": 0, "a": 255}) is False
    assert any("coloring failed" in rec.message for rec in caplog.records)


def test_paint_without_viewer_or_guids_is_a_noop(viewer):
    assert paint_guids(None, ["g-1"], {}) is True
    assert paint_guids(viewer, [], {}) is True
    assert viewer.painted == []


def test_select_guids(viewer, failing_viewer):
    assert select_guids(viewer, ["g-1", "g-2"]) is True
    assert viewer.selected == ["g-1", "g-2"]
    assert select_guids(failing_viewer, ["g-1"]) is False


def test_helpers():
    assert list(batched(["a", "b", "c"], 2)) == [["a", "b"], ["c"]]
    assert selection_dedupe_key(["b", "a", "b"]) == ("a", "b")


def test_object_details_reads_mark_product_and_weight():
    record = {
        "product": {"name": "Wall panel"},
        "properties": [
            {"name": "Identity", "properties": [{"name": "Assembly/Cast unit Mark", "displayValue": "W-301"}]},
            {"name": "Tekla", "properties": [
                {"name": "Cast unit weight", "value": "1250,5 kg"},
                {"name": "Assembly_Pos", "displayValue": "ignored"},
            ]},
        ],
    }

    assert object_details(record, 12) == {"assembly_mark": "W-301", "product_name": "Wall panel", "weight": 1250.5}


def test_object_details_falls_back_to_runtime_id():
    record = {"properties": [{"properties": [{"name": "Cast mark", "displayValue": ""}]}]}

    assert object_details(record, 12) == {"assembly_mark": "Object_12", "product_name": None, "weight": None}
    assert object_details(None)["assembly_mark"] is None
