import json

from core.schemas.events import FrameType
from services.mirror.dispatcher import EventDispatcher
from tests.mocks.payloads import frame, position_payload


def test_handler_table_is_exhaustive(dispatcher):
    assert set(dispatcher._handlers) == set(FrameType)


def test_valid_frame_is_applied(store, dispatcher):
    assert dispatcher.dispatch(frame("POSITION_UPDATE", position_payload("P1"))) is True
    assert [p.id for p in store.positions] == ["P1"]
    assert dispatcher.get_metrics() == {"frames_received": 1, "frames_applied": 1, "frames_dropped": 0}


def test_unknown_type_is_dropped_without_side_effects(store, dispatcher):
    changes = []
    store.subscribe(changes.append)

    assert dispatcher.dispatch(json.dumps({"type": "PORTFOLIO_SNAPSHOT", "data": {"id": "P1"}})) is False
    assert changes == []
    assert store.positions == ()


def test_malformed_frames_are_dropped(store, dispatcher):
    dispatcher.dispatch(frame("POSITION_UPDATE", position_payload("P1")))
    before = store.positions

    assert dispatcher.dispatch("{not json") is False
    assert dispatcher.dispatch(frame("POSITION_UPDATE", {"epic": "no id"})) is False
    assert dispatcher.dispatch("42") is False

    assert store.positions == before
    metrics = dispatcher.get_metrics()
    assert metrics["frames_received"] == 4
    assert metrics["frames_dropped"] == 3


def test_bad_frame_does_not_block_following_frames(store, dispatcher):
    frames = [
        frame("POSITION_UPDATE", position_payload("P1")),
        "garbage",
        frame("POSITION_UPDATE", position_payload("P2")),
    ]
    results = [dispatcher.dispatch(raw) for raw in frames]

    assert results == [True, False, True]
    assert [p.id for p in store.positions] == ["P1", "P2"]


def test_connected_ack_changes_nothing(store, dispatcher):
    changes = []
    store.subscribe(changes.append)

    assert dispatcher.dispatch(frame("CONNECTED", {"message": "Welcome", "timestamp": "2024-05-01T09:00:00Z"})) is True
    assert changes == []


def test_each_dispatcher_keeps_own_counters(store):
    first = EventDispatcher(store)
    second = EventDispatcher(store)
    first.dispatch("garbage")

    assert first.frames_dropped == 1
    assert second.frames_dropped == 0
