import logging

from busmgmt.logging import FixtureIdFilter, current_test_id


def _record():
    return logging.LogRecord("busmgmt", logging.INFO, __file__, 1, "msg", None, None)


def test_fixture_id_filter_tags_active_test():
    token = current_test_id.set("test_namespace/test_create")
    try:
        record = _record()
        assert FixtureIdFilter().filter(record)
        assert record.test_id == " <test_namespace/test_create>"
    finally:
        current_test_id.reset(token)


def test_fixture_id_filter_outside_test():
    record = _record()
    assert FixtureIdFilter().filter(record)
    assert record.test_id == ""
