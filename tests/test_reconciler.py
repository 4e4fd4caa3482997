"""Tests for error extraction and reconciliation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from dex_monitor.errors.models import (
    EA1,
    MA5,
    ErrorRecord,
    decode_event_timestamp,
    format_utc,
    to_utc,
)
from dex_monitor.errors.reconciler import (
    extract_event_errors,
    extract_fault_errors,
    reconcile,
    set_actioned,
    sort_for_display,
)
from dex_monitor.ingestion.formatter import parse_dex

T1 = datetime(2024, 1, 20, 12, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 21, 8, 30, tzinfo=timezone.utc)


def ea1(code, ts, actioned=False, actioned_at=None):
    return ErrorRecord(type=EA1, code=code, timestamp=ts, actioned=actioned, actioned_at=actioned_at)


def ma5(code, ts=format_utc(T1), actioned=False, actioned_at=None):
    return ErrorRecord(type=MA5, code=code, timestamp=ts, actioned=actioned, actioned_at=actioned_at)


def as_set(errors):
    return {(e.type, e.code, e.timestamp, e.actioned, e.actioned_at) for e in errors}


class TestTimestamps:
    """Test EA1 timestamp decoding and UTC helpers."""

    def test_decode_event_timestamp(self):
        assert decode_event_timestamp("240115", "1430") == "2024-01-15T14:30:00"

    def test_short_time_is_zero_padded(self):
        assert decode_event_timestamp("240115", "930") == "2024-01-15T09:30:00"
        assert decode_event_timestamp("240115", "5") == "2024-01-15T00:05:00"

    @pytest.mark.parametrize("date,time", [
        ("2401", "1430"), ("24011a", "1430"), ("240115", "14:30"), ("", "1430"), ("240115", "12345"),
    ])
    def test_malformed(self, date, time):
        assert decode_event_timestamp(date, time) is None

    def test_to_utc_accepts_z_suffix(self):
        assert to_utc("2024-01-20T12:00:00Z") == T1
        assert to_utc("2024-01-20T12:00:00.000Z") == T1

    def test_to_utc_converts_offsets(self):
        assert to_utc("2024-01-20T14:00:00+02:00") == T1

    def test_naive_is_utc(self):
        assert to_utc(datetime(2024, 1, 20, 12, 0)) == T1

    def test_format_utc(self):
        assert format_utc(T1) == "2024-01-20T12:00:00.000Z"


class TestExtraction:
    """Test candidate extraction from a key-value map."""

    def test_event_candidates(self):
        kv = {"ea1_event_EJL_date": "240115", "ea1_event_EJL_time": "930"}
        assert extract_event_errors(kv) == [ea1("EJL", "2024-01-15T09:30:00")]

    def test_event_with_bad_date_is_skipped(self):
        kv = {"ea1_event_EJL_date": "nope", "ea1_event_EJL_time": "930"}
        assert extract_event_errors(kv) == []

    def test_fault_candidates_stamped_with_capture_time(self):
        errors = extract_fault_errors({"ma5_error_codes": "dS,SS01"}, T1)
        assert errors == [ma5("dS"), ma5("SS01")]

    def test_no_fault_codes(self):
        assert extract_fault_errors({}, T1) == []
        assert extract_fault_errors({"ma5_error_codes": ""}, T1) == []

    def test_codes_keep_their_case(self):
        errors = extract_fault_errors({"ma5_error_codes": "dS,DS"}, T1)
        assert [e.code for e in errors] == ["dS", "DS"]


class TestReconcile:
    """Test merging a capture into the stored error list."""

    def test_first_capture(self, sample_dex):
        errors = reconcile([], parse_dex(sample_dex).key_values, T1)
        assert as_set(errors) == as_set([
            ea1("EJL", "2024-01-15T09:30:00"),
            ea1("EGS", "2024-01-16T14:05:00"),
            ma5("dS"),
            ma5("SS01"),
        ])

    def test_idempotent(self, sample_dex):
        kv = parse_dex(sample_dex).key_values
        existing = [
            ea1("EJL", "2024-01-15T09:30:00", actioned=True, actioned_at="2024-01-16T00:00:00.000Z"),
            ea1("OLD", "2023-12-01T10:00:00", actioned=True, actioned_at="2023-12-02T00:00:00.000Z"),
            ma5("dS", actioned=True, actioned_at="2024-01-20T13:00:00.000Z"),
        ]
        once = reconcile(existing, kv, T1)
        twice = reconcile(once, kv, T1)
        assert as_set(twice) == as_set(once)
        assert len(twice) == len(once)

    def test_actioned_event_survives_when_absent(self):
        old = ea1("EJB", "2024-01-10T08:00:00", actioned=True, actioned_at="2024-01-11T00:00:00.000Z")
        kv = {"ea1_event_EJL_date": "240115", "ea1_event_EJL_time": "930"}
        errors = reconcile([old], kv, T1)
        assert old in errors
        assert ea1("EJL", "2024-01-15T09:30:00") in errors

    def test_unactioned_event_list_follows_newest_capture(self):
        """Unactioned EA1 events mirror the capture's event log; an event the
        machine no longer reports is not carried forward."""
        old = ea1("EJB", "2024-01-10T08:00:00")
        errors = reconcile([old], {}, T1)
        assert errors == []

    def test_newer_event_supersedes_actioned_one(self):
        old = ea1("EJL", "2024-01-10T08:00:00", actioned=True, actioned_at="2024-01-11T00:00:00.000Z")
        kv = {"ea1_event_EJL_date": "240115", "ea1_event_EJL_time": "930"}
        errors = reconcile([old], kv, T1)
        assert errors == [ea1("EJL", "2024-01-15T09:30:00")]

    def test_same_event_keeps_actioned_state(self):
        old = ea1("EJL", "2024-01-15T09:30:00", actioned=True, actioned_at="2024-01-16T00:00:00.000Z")
        kv = {"ea1_event_EJL_date": "240115", "ea1_event_EJL_time": "930"}
        assert reconcile([old], kv, T1) == [old]

    def test_persisting_fault_keeps_actioned_state_new_stamp(self):
        old = ma5("dS", ts=format_utc(T1), actioned=True, actioned_at="2024-01-20T13:00:00.000Z")
        errors = reconcile([old], {"ma5_error_codes": "dS"}, T2)
        assert errors == [ma5("dS", ts=format_utc(T2), actioned=True, actioned_at="2024-01-20T13:00:00.000Z")]

    def test_cleared_fault_is_dropped_even_if_actioned(self):
        old = ma5("dS", actioned=True, actioned_at="2024-01-20T13:00:00.000Z")
        assert reconcile([old], {}, T2) == []

    def test_fault_match_is_case_sensitive(self):
        old = ma5("DS", actioned=True, actioned_at="2024-01-20T13:00:00.000Z")
        errors = reconcile([old], {"ma5_error_codes": "dS"}, T2)
        assert errors == [ma5("dS", ts=format_utc(T2))]

    def test_no_actioned_event_lost(self, sample_dex):
        kv = parse_dex(sample_dex).key_values
        existing = [
            ea1("EJL", "2024-01-15T09:30:00", actioned=True, actioned_at="a"),
            ea1("ENE", "2023-11-01T10:00:00", actioned=True, actioned_at="b"),
            ea1("EGS", "2024-01-01T10:00:00", actioned=True, actioned_at="c"),
        ]
        errors = reconcile(existing, kv, T1)
        fresh = {e.code for e in errors if e.type == EA1}
        for old in existing:
            assert old in errors or old.code in fresh


class TestSetActioned:
    """Test the acknowledgement operation."""

    def test_marks_matching_error(self):
        errors = [ea1("EJL", "2024-01-15T09:30:00"), ma5("dS")]
        updated = set_actioned(errors, "EJL", "2024-01-15T09:30:00", True, T2)
        assert updated[0].actioned is True
        assert updated[0].actioned_at == "2024-01-21T08:30:00.000Z"
        assert updated[1] == errors[1]

    def test_unmark_clears_actioned_at(self):
        errors = [ea1("EJL", "2024-01-15T09:30:00", actioned=True, actioned_at="x")]
        updated = set_actioned(errors, "EJL", "2024-01-15T09:30:00", False, T2)
        assert updated[0].actioned is False
        assert updated[0].actioned_at is None

    def test_timestamp_must_match(self):
        errors = [ea1("EJL", "2024-01-15T09:30:00")]
        assert set_actioned(errors, "EJL", "2024-01-16T09:30:00", True, T2) == errors


class TestErrorRecord:
    """Test record identity and serialization."""

    def test_ea1_identity_includes_timestamp(self):
        assert ea1("EJL", "a").matches(ea1("EJL", "a", actioned=True))
        assert not ea1("EJL", "a").matches(ea1("EJL", "b"))

    def test_ma5_identity_is_code(self):
        assert ma5("dS", ts="a").matches(ma5("dS", ts="b"))
        assert not ma5("dS").matches(ea1("dS", format_utc(T1)))

    def test_dict_round_trip(self):
        record = ea1("EJL", "2024-01-15T09:30:00", actioned=True, actioned_at="x")
        assert ErrorRecord.from_dict(record.to_dict()) == record

    def test_sort_for_display_newest_first(self):
        errors = [ea1("A", "2024-01-01T00:00:00"), ma5("dS"), ea1("B", "2024-01-15T09:30:00")]
        assert [e.code for e in sort_for_display(errors)] == ["dS", "B", "A"]
