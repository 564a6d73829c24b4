"""
Unit tests for referral models and the wire timestamp format.
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from idoheart.models import (
    ReceivedCode,
    ReceivedCodeState,
    Referral,
    UseCodeResult,
    format_timestamp,
    now,
    parse_timestamp,
)
from tests.conftest import referral_payload


class TestTimestamps:
    """Tests for parse_timestamp / format_timestamp"""

    def test_parse_with_compact_offset(self):
        """+HHMM offsets are parsed with millisecond precision"""
        value = parse_timestamp("2025-03-22T10:15:30.123+1100")
        assert value == datetime(
            2025, 3, 22, 10, 15, 30, 123000, tzinfo=timezone(timedelta(hours=11))
        )

    def test_parse_utc_designator(self):
        """Z is accepted as UTC"""
        value = parse_timestamp("2025-03-22T00:00:00.000Z")
        assert value.utcoffset() == timedelta(0)

    def test_parse_without_fraction(self):
        value = parse_timestamp("2025-03-22T10:15:30-0500")
        assert value.utcoffset() == timedelta(hours=-5)

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp("22/03/2025 10:15")

    def test_format_uses_milliseconds_and_compact_offset(self):
        value = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=timezone(timedelta(hours=-8)))
        assert format_timestamp(value) == "2025-01-02T03:04:05.678-0800"

    def test_format_naive_is_utc(self):
        assert format_timestamp(datetime(2025, 1, 2, 3, 4, 5)) == "2025-01-02T03:04:05.000+0000"

    def test_now_is_truncated_to_milliseconds(self):
        assert now().microsecond % 1000 == 0


class TestReferral:
    """Tests for the Referral model"""

    def test_decode_wire_payload(self):
        referral = Referral.model_validate(referral_payload("a1b2c3d4", used_count=2))
        assert referral.referral_ref_id == "doc-a1b2c3d4"
        assert referral.used_count == 2
        assert referral.code == "a1b2c3d4"
        assert referral.used_at is None
        assert referral.is_used is True

    def test_serializes_with_wire_names(self):
        payload = referral_payload("a1b2c3d4", used_at="2025-03-23T08:00:00.500+1100")
        data = Referral.model_validate(payload).to_json_dict()
        assert data == payload

    def test_absent_used_at_survives_round_trip(self):
        referral = Referral.model_validate(referral_payload("a1b2c3d4"))
        assert Referral.model_validate(referral.to_json_dict()) == referral

    def test_negative_used_count_rejected(self):
        with pytest.raises(ValidationError):
            Referral.model_validate(referral_payload("a1b2c3d4", used_count=-1))

    def test_missing_field_rejected(self):
        payload = referral_payload("a1b2c3d4")
        del payload["referralRefId"]
        with pytest.raises(ValidationError):
            Referral.model_validate(payload)

    def test_bad_timestamp_rejected(self):
        payload = referral_payload("a1b2c3d4")
        payload["createdAt"] = "yesterday"
        with pytest.raises(ValidationError):
            Referral.model_validate(payload)


class TestReceivedCode:
    """Tests for the ReceivedCode model"""

    def test_round_trip(self):
        received = ReceivedCode(code="ABC123", state=ReceivedCodeState.INSTALLED)
        data = received.to_json_dict()
        assert data["state"] == "installed"
        assert ReceivedCode.model_validate(data) == received

    def test_unknown_state_rejected(self):
        with pytest.raises(ValidationError):
            ReceivedCode.model_validate(
                {"code": "ABC123", "timestamp": "2025-03-22T10:15:30.123+0000", "state": "used"}
            )


def test_use_code_result_decodes():
    result = UseCodeResult.model_validate({"usedCount": 1, "success": True})
    assert result.used_count == 1
    assert result.success is True


def test_absent_used_at_is_omitted():
    """An unused referral serializes without a usedAt key"""
    data = Referral.model_validate(referral_payload("a1b2c3d4")).to_json_dict()
    assert "usedAt" not in data
    assert data == referral_payload("a1b2c3d4")
