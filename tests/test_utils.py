import re
import uuid
from datetime import datetime, timedelta, timezone

from chime.utils import iso_string, make_id, parse_timestamp, pseudo_uuid4

UUID4 = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


def test_make_id_uses_uuid4():
    rid = make_id()
    assert uuid.UUID(rid).version == 4


def test_make_id_falls_back_when_source_raises():
    def broken():
        raise NotImplementedError("no entropy")

    assert UUID4.match(make_id(broken))


def test_pseudo_uuid4_shape():
    ids = {pseudo_uuid4() for _ in range(50)}
    assert all(UUID4.match(i) for i in ids)
    assert len(ids) == 50


def test_parse_timestamp_variants():
    expected = datetime(2020, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("2020-01-01T00:00:00.000Z") == expected
    assert parse_timestamp("2020-01-01T00:00") == expected
    assert parse_timestamp("2020-01-01") == expected
    assert parse_timestamp("2020-01-01T02:00:00+02:00") == expected
    assert parse_timestamp(datetime(2020, 1, 1)) == expected
    assert parse_timestamp("2020-01-01T08:00", "Asia/Shanghai") == expected


def test_parse_timestamp_rejects_garbage():
    for value in (None, "", "   ", "tomorrow", "2020-02-30", 1577836800, object()):
        assert parse_timestamp(value) is None


def test_iso_string():
    dt = datetime(2020, 1, 1, 8, 0, 0, 123456, tzinfo=timezone(timedelta(hours=8)))
    assert iso_string(dt) == "2020-01-01T00:00:00.123Z"
    assert iso_string(datetime(2020, 1, 1)) == "2020-01-01T00:00:00.000Z"


def test_parse_timestamp_out_of_range_after_utc_conversion():
    assert parse_timestamp("0001-01-01T00:00:00+01:00") is None
    assert parse_timestamp("9999-12-31T23:30:00-01:00") is None
    assert parse_timestamp("0001-01-01T00:00", "Asia/Shanghai") is None
    assert parse_timestamp("0001-01-01T00:00:00Z") == datetime(1, 1, 1, tzinfo=timezone.utc)
