import pytest

from toolgate.batch import MAX_BATCH_ITEMS, run_batch
from toolgate.errors import BatchLimitExceeded, ConnectionExhausted, InvalidArgument


def _echo(item):
    return {"n": item["n"]}


def test_oversized_batch_rejected_before_any_item():
    calls = []

    def handler(item):
        calls.append(item)
        return item

    with pytest.raises(BatchLimitExceeded):
        run_batch([{"n": i} for i in range(MAX_BATCH_ITEMS + 1)], handler, "ok")
    assert calls == []


def test_full_batch_succeeds_in_order():
    result = run_batch([{"n": i} for i in range(MAX_BATCH_ITEMS)], _echo, "ok").to_dict()

    assert result["status"] is True
    assert result["message"] == "ok"
    assert [item["data"]["n"] for item in result["data"]] == list(range(MAX_BATCH_ITEMS))
    assert all(item["status"] for item in result["data"])


def test_single_object_is_a_batch_of_one():
    result = run_batch({"n": 7}, _echo, "ok").to_dict()
    assert result["data"] == [{"status": True, "data": {"n": 7}}]


def test_item_failures_are_isolated():
    def handler(item):
        if item["n"] == 1:
            raise InvalidArgument("IP address is required")
        if item["n"] == 2:
            raise ConnectionExhausted("database down")
        if item["n"] == 3:
            raise RuntimeError("boom")
        return item["n"]

    data = run_batch([{"n": i} for i in range(5)], handler, "ok").to_dict()["data"]

    assert data[0] == {"status": True, "data": 0}
    assert data[1] == {"status": False, "message": "IP address is required", "code": "invalid_argument"}
    assert data[2]["code"] == "connection_exhausted"
    assert data[3] == {"status": False, "message": "Error: boom", "code": "internal_error"}
    assert data[4] == {"status": True, "data": 4}


def test_non_object_item():
    data = run_batch(["8.8.8.8"], _echo, "ok").to_dict()["data"]
    assert data[0]["status"] is False
    assert data[0]["code"] == "invalid_argument"


def test_missing_body():
    with pytest.raises(InvalidArgument):
        run_batch(None, _echo, "ok")


def test_empty_list():
    assert run_batch([], _echo, "ok").to_dict() == {"status": True, "message": "ok", "data": []}
