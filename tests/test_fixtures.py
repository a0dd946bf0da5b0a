"""Tests for the recorded traffic store."""

import json

import pytest

from busmgmt.exceptions import FixtureError, ReplayMismatchError
from busmgmt.fixtures import FixtureStore
from busmgmt.schemas import FixtureEntry, FixtureRequest, FixtureResponse


def _entry(method: str, path: str, status_code: int = 200) -> FixtureEntry:
    return FixtureEntry(
        request=FixtureRequest(method=method, path=path),
        response=FixtureResponse(status_code=status_code, body="{}"),
    )


@pytest.fixture
def store(tmp_path):
    return FixtureStore(tmp_path)


def test_fixture_store_save_load_fifo(store):
    store.reset("suite/test_a")
    store.record("suite/test_a", _entry("PUT", "/namespaces/a"))
    store.record("suite/test_a", _entry("GET", "/namespaces/a"))
    store.record_name("suite/test_a", "nodesdk-aaaaaa")
    path = store.save("suite/test_a")

    assert path == store.root / "suite" / "test_a.json"
    raw = json.loads(path.read_text())
    assert raw["names"] == ["nodesdk-aaaaaa"]
    assert [e["request"]["method"] for e in raw["entries"]] == ["PUT", "GET"]

    replay = FixtureStore(store.root)
    replay.load("suite/test_a")
    assert replay.remaining("suite/test_a") == 2
    assert replay.next_name("suite/test_a") == "nodesdk-aaaaaa"
    assert replay.next("suite/test_a").request.signature == "PUT /namespaces/a"
    assert replay.next("suite/test_a").request.signature == "GET /namespaces/a"
    assert replay.remaining("suite/test_a") == 0


def test_fixture_store_next_exhausted(store):
    store.reset("suite/test_b")
    store.save("suite/test_b")
    store.load("suite/test_b")

    with pytest.raises(ReplayMismatchError, match="no more entries"):
        store.next("suite/test_b")
    with pytest.raises(ReplayMismatchError, match="no more generated names"):
        store.next_name("suite/test_b")


def test_fixture_store_next_not_loaded(store):
    with pytest.raises(ReplayMismatchError):
        store.next("suite/never_loaded")


def test_fixture_store_load_missing(store):
    with pytest.raises(ReplayMismatchError, match="No recording"):
        store.load("suite/missing")


def test_fixture_store_load_malformed(store):
    path = store.path("suite/bad")
    path.parent.mkdir(parents=True)
    path.write_text('{"entries": [{"request": {}}]}')

    with pytest.raises(ReplayMismatchError, match="malformed"):
        store.load("suite/bad")


def test_fixture_store_reserved_slots_keep_issue_order(store):
    store.reset("suite/test_c")
    first = store.reserve("suite/test_c")
    second = store.reserve("suite/test_c")

    # The second request completes first.
    store.record("suite/test_c", _entry("DELETE", "/namespaces/b"), slot=second)
    store.record("suite/test_c", _entry("DELETE", "/namespaces/a"), slot=first)
    store.save("suite/test_c")

    store.load("suite/test_c")
    assert store.next("suite/test_c").request.path == "/namespaces/a"
    assert store.next("suite/test_c").request.path == "/namespaces/b"


def test_fixture_store_slot_recorded_twice(store):
    store.reset("suite/test_d")
    slot = store.reserve("suite/test_d")
    store.record("suite/test_d", _entry("GET", "/regions/"), slot=slot)

    with pytest.raises(FixtureError, match="already recorded"):
        store.record("suite/test_d", _entry("GET", "/regions/"), slot=slot)


def test_fixture_store_save_unfilled_slot(store):
    store.reset("suite/test_e")
    store.reserve("suite/test_e")

    with pytest.raises(FixtureError, match="never completed"):
        store.save("suite/test_e")
    assert not store.path("suite/test_e").exists()


def test_fixture_store_reset_clears_recording(store):
    store.reset("suite/test_f")
    store.record("suite/test_f", _entry("GET", "/regions/"))
    store.record_name("suite/test_f", "nodesdk-ffffff")
    store.reset("suite/test_f")
    store.save("suite/test_f")

    store.load("suite/test_f")
    assert store.remaining("suite/test_f") == 0


def test_fixture_store_released_slot_left_out(store):
    store.reset("suite/test_a")
    abandoned = store.reserve("suite/test_a")
    kept = store.reserve("suite/test_a")
    store.record("suite/test_a", _entry("GET", "/namespaces/b"), slot=kept)
    store.release("suite/test_a", abandoned)

    raw = json.loads(store.save("suite/test_a").read_text())
    assert [e["request"]["path"] for e in raw["entries"]] == ["/namespaces/b"]

    with pytest.raises(FixtureError, match="not reserved or is already recorded"):
        store.record("suite/test_a", _entry("GET", "/namespaces/a"), slot=abandoned)


def test_fixture_store_release_recorded_slot_is_noop(store):
    store.reset("suite/test_a")
    slot = store.reserve("suite/test_a")
    store.record("suite/test_a", _entry("GET", "/namespaces/a"), slot=slot)
    store.release("suite/test_a", slot)

    raw = json.loads(store.save("suite/test_a").read_text())
    assert len(raw["entries"]) == 1


def test_fixture_entry_needs_one_outcome():
    request = FixtureRequest(method="GET", path="/namespaces/a")
    with pytest.raises(ValueError, match="Exactly one"):
        FixtureEntry(request=request)
    with pytest.raises(ValueError, match="Exactly one"):
        FixtureEntry(
            request=request,
            response=FixtureResponse(status_code=200),
            error="connection refused",
        )
