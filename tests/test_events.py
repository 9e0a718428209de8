import enum

from natsmanager.events import (
    EVENT_TYPE_NORMAL,
    EVENT_TYPE_WARNING,
    EventRecorder,
    normal,
    warn,
)


class Reason(str, enum.Enum):
    PROCESSING = "Processing"
    DEPLOYED = "Deployed"


def test_normal_records_event():
    recorder = EventRecorder()
    obj = {"kind": "NATS"}
    normal(recorder, obj, Reason.PROCESSING, "Initializing NATS resource.")
    assert len(recorder.events) == 1
    event = recorder.events[0]
    assert event.obj is obj
    assert event.type == EVENT_TYPE_NORMAL
    assert event.reason == Reason.PROCESSING.value
    assert event.message == "Initializing NATS resource."


def test_warn_records_warning_type():
    recorder = EventRecorder()
    event = warn(recorder, {}, "Forbidden", "NATS is not allowed")
    assert event.type == EVENT_TYPE_WARNING
    assert event.reason == "Forbidden"
    assert recorder.events == [event]


def test_event_types_are_kubernetes_values():
    recorder = EventRecorder()
    assert normal(recorder, {}, "r", "m").type == "Normal"
    assert warn(recorder, {}, "r", "m").type == "Warning"


def test_message_formatted_with_args():
    recorder = EventRecorder()
    event = normal(recorder, {}, Reason.DEPLOYED, "StatefulSet %s has %d replicas", "sts", 3)
    assert event.message == "StatefulSet sts has 3 replicas"


def test_message_without_args_keeps_percent():
    recorder = EventRecorder()
    event = warn(recorder, {}, "r", "100% done")
    assert event.message == "100% done"


def test_events_kept_in_order():
    recorder = EventRecorder()
    first = normal(recorder, {}, "a", "one")
    second = warn(recorder, {}, "b", "two")
    assert recorder.events == [first, second]


def test_eventf_directly():
    recorder = EventRecorder()
    event = recorder.eventf({}, EVENT_TYPE_NORMAL, "reason", "%s-%s", "x", "y")
    assert event.message == "x-y"
    assert recorder.events[-1] is event