"""
Tests for envelope discrimination.

classify_envelope must keep the historical order:
current envelope, then legacy list, then legacy single object.
"""

import datetime

from stairval.notepad import create_notepad

from implantpass.envelope import (
    CurrentMulti,
    CurrentSingle,
    LegacyMulti,
    LegacySingle,
    build_collection_envelope,
    build_single_envelope,
    classify_envelope,
    iso_timestamp,
)


def test_current_single():
    note = create_notepad("envelope")
    env = classify_envelope({"formatVersion": "1.0", "dateFormat": "DD.MM.YYYY", "procedure": {"id": "p"}}, note)
    assert isinstance(env, CurrentSingle)
    assert env.procedure == {"id": "p"}
    assert not note.has_warnings(include_subsections=True)


def test_current_multi_carries_metadata():
    note = create_notepad("envelope")
    env = classify_envelope(
        {
            "formatVersion": "1.0",
            "dateFormat": "DD.MM.YYYY",
            "type": "allProcedures",
            "count": 2,
            "procedures": [{}, {}],
            "generatedAt": "2024-03-01T12:00:00.000Z",
            "appName": "Implant Pass",
        },
        note,
    )
    assert isinstance(env, CurrentMulti)
    assert env.count == 2
    assert env.generated_at == "2024-03-01T12:00:00.000Z"
    assert env.app_name == "Implant Pass"


def test_legacy_list():
    env = classify_envelope([{"id": "p", "date": "2020-01-01"}], create_notepad("envelope"))
    assert isinstance(env, LegacyMulti)


def test_legacy_single_is_flagged():
    note = create_notepad("envelope")
    env = classify_envelope({"id": "p", "date": "2020-01-01"}, note)
    assert isinstance(env, LegacySingle)
    assert note.has_warnings(include_subsections=True)


def test_versioned_object_without_payload_falls_back_to_legacy_checks():
    note = create_notepad("envelope")
    env = classify_envelope({"formatVersion": "1.0", "dateFormat": "DD.MM.YYYY", "id": "p", "date": "x"}, note)
    assert isinstance(env, LegacySingle)
    assert classify_envelope({"formatVersion": "1.0", "dateFormat": "DD.MM.YYYY"}, note) is None


def test_unknown_version_warns_but_is_read():
    note = create_notepad("envelope")
    env = classify_envelope({"formatVersion": "2.0", "dateFormat": "DD.MM.YYYY", "procedure": {}}, note)
    assert isinstance(env, CurrentSingle)
    assert note.has_warnings(include_subsections=True)


def test_unrecognized_shapes():
    note = create_notepad("envelope")
    assert classify_envelope({"foo": 1}, note) is None
    assert classify_envelope(42, note) is None
    assert classify_envelope(None, note) is None
    assert classify_envelope({"id": "p"}, note) is None


def test_build_envelopes(hip_procedure, knee_procedure):
    single = build_single_envelope(hip_procedure)
    assert single["formatVersion"] == "1.0"
    assert single["dateFormat"] == "DD.MM.YYYY"
    assert single["procedure"]["id"] == "p1"

    moment = datetime.datetime(2024, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)
    multi = build_collection_envelope([hip_procedure, knee_procedure], moment, "Tester")
    assert multi["type"] == "allProcedures"
    assert multi["count"] == 2
    assert [p["id"] for p in multi["procedures"]] == ["p1", "p2"]
    assert multi["appName"] == "Tester"


def test_iso_timestamp_is_utc_with_milliseconds():
    naive = datetime.datetime(2024, 3, 1, 12, 0, 0, 123456)
    assert iso_timestamp(naive) == "2024-03-01T12:00:00.123Z"
    plus_two = datetime.timezone(datetime.timedelta(hours=2))
    assert iso_timestamp(datetime.datetime(2024, 3, 1, 14, 0, tzinfo=plus_two)) == "2024-03-01T12:00:00.000Z"
