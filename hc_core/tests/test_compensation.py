import pytest

from hc_core.common.compensation import CompensationStack


def test_unwinds_in_reverse_order_and_reraises():
    calls = []

    with pytest.raises(RuntimeError, match="step 3 failed"):
        with CompensationStack("test") as undo:
            undo.push("one", calls.append, "undo-1")
            undo.push("two", calls.append, "undo-2")
            raise RuntimeError("step 3 failed")

    assert calls == ["undo-2", "undo-1"]


def test_success_discards_compensations():
    calls = []

    with CompensationStack("test") as undo:
        undo.push("one", calls.append, "undo-1")

    assert calls == []
    assert len(undo) == 0


def test_failing_compensation_does_not_stop_the_rest():
    calls = []

    def broken():
        raise ValueError("cannot undo")

    undo = CompensationStack("test")
    undo.push("first", calls.append, "undo-1")
    undo.push("broken", broken)
    undo.push("last", calls.append, "undo-3")

    failed = undo.unwind()

    assert failed == ["broken"]
    assert calls == ["undo-3", "undo-1"]


def test_kwargs_are_passed_through():
    seen = {}

    def record(*, item_id, quantity):
        seen[item_id] = quantity

    undo = CompensationStack("test")
    undo.push("credit", record, item_id="a", quantity=2)
    undo.unwind()

    assert seen == {"a": 2}
