from datetime import datetime, timedelta, timezone

import pytest

from agentdash.db.codec import (
    decode_record,
    decode_records,
    encode_records,
    format_timestamp,
    is_timestamp,
    parse_timestamp,
    timestamp_text,
)


def test_format_timestamp_is_utc_with_millis_and_z():
    dt = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
    assert format_timestamp(dt) == "2025-01-02T03:04:05.678Z"

    # Other offsets are normalized to UTC
    plus_two = timezone(timedelta(hours=2))
    assert format_timestamp(datetime(2025, 1, 2, 5, 0, tzinfo=plus_two)) == "2025-01-02T03:00:00.000Z"


def test_parse_timestamp_accepts_z_and_naive():
    assert parse_timestamp("2025-01-02T03:04:05.678Z") == datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    assert parse_timestamp("2025-01-02T03:04:05").tzinfo == timezone.utc


def test_only_whole_timestamp_strings_are_revived():
    assert is_timestamp("2025-01-02T03:04:05.678Z")
    assert not is_timestamp("meeting at 2025-01-02T03:04:05Z")
    assert not is_timestamp("2025-01-02")

    records = decode_records(encode_records([{
        "id": "a",
        "createdAt": "2025-01-02T03:04:05.678Z",
        "content": "see 2025-01-02T03:04:05Z",
        "nested": {"lastUsed": "2025-01-02T03:04:05.000Z", "tags": ["2025-01-02T03:04:05Z"]},
    }]))
    record = records[0]
    assert isinstance(record["createdAt"], datetime)
    assert record["content"] == "see 2025-01-02T03:04:05Z"
    assert isinstance(record["nested"]["lastUsed"], datetime)
    assert isinstance(record["nested"]["tags"][0], datetime)


def test_revived_timestamp_keeps_its_source_text():
    [record] = decode_records('[{"note": "2025-06-01T12:00:00Z", "at": "2025-06-01T12:00:00.000Z"}]')
    assert record["note"] == datetime(2025, 6, 1, 12, tzinfo=timezone.utc)
    assert timestamp_text(record["note"]) == "2025-06-01T12:00:00Z"
    assert timestamp_text(datetime(2025, 6, 1, 12, tzinfo=timezone.utc)) == "2025-06-01T12:00:00.000Z"

    # Re-encoding writes the canonical form
    assert '"note": "2025-06-01T12:00:00.000Z"' in encode_records([record])


def test_encode_records_writes_datetimes_and_indents():
    text = encode_records([{"id": "a", "at": datetime(2025, 1, 1, tzinfo=timezone.utc)}])
    assert '"at": "2025-01-01T00:00:00.000Z"' in text
    assert text.startswith("[\n  {")


def test_decode_rejects_wrong_document_shapes():
    with pytest.raises(ValueError):
        decode_records('{"id": "a"}')
    with pytest.raises(ValueError):
        decode_record("[]")
    with pytest.raises(ValueError):
        decode_records("not json")
