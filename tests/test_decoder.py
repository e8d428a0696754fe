"""Tests for the radio packet decoder."""

from dataclasses import replace

import pytest

from rocketdata.records import FlightPhase, GeoPosition, TelemetryRecord
from rocketlink.decoder import (
    DEFAULT_SIGNAL,
    DecodeError,
    NUM_FIELDS,
    decode,
    encode_framed,
    encode_payload,
    parse_packet,
    unwrap_framing,
)

PAYLOAD = "0,90,0,0,1.0,0,37.7,-122.4,LANDED,10"


class TestFraming:
    def test_bare_payload(self):
        signal, payload, framed = unwrap_framing(PAYLOAD)
        assert signal == DEFAULT_SIGNAL
        assert payload == PAYLOAD
        assert not framed

    def test_rssi_framing(self):
        signal, payload, framed = unwrap_framing(f"RSSI: -89, Message: {PAYLOAD}")
        assert signal == -89
        assert payload == PAYLOAD
        assert framed

    def test_receiver_prefix(self):
        signal, payload, _ = unwrap_framing(f"Received - RSSI: -101, Message: {PAYLOAD}")
        assert signal == -101
        assert payload == PAYLOAD

    def test_whitespace_tolerant(self):
        signal, payload, _ = unwrap_framing(f"RSSI :-42 ,  Message:   {PAYLOAD}   ")
        assert signal == -42
        assert payload == PAYLOAD

    def test_positive_rssi(self):
        signal, _, _ = unwrap_framing(f"RSSI: 5, Message: {PAYLOAD}")
        assert signal == 5

    def test_non_ascii_rssi_digits_not_framing(self):
        _, _, framed = unwrap_framing(f"RSSI: -８９, Message: {PAYLOAD}")
        assert not framed

    def test_rssi_out_of_64_bit_range_uses_default(self):
        signal, payload, framed = unwrap_framing(f"RSSI: -{10**30}, Message: {PAYLOAD}")
        assert signal == DEFAULT_SIGNAL
        assert payload == PAYLOAD
        assert framed

    def test_huge_rssi_digit_string_uses_default(self):
        signal, _, framed = unwrap_framing(f"RSSI: {'9' * 5000}, Message: {PAYLOAD}")
        assert signal == DEFAULT_SIGNAL
        assert framed

    def test_rssi_int64_bounds(self):
        signal, _, _ = unwrap_framing(f"RSSI: {-(2**63)}, Message: {PAYLOAD}")
        assert signal == -(2**63)
        signal, _, _ = unwrap_framing(f"RSSI: {2**63}, Message: {PAYLOAD}")
        assert signal == DEFAULT_SIGNAL

    def test_keyword_case_sensitive(self):
        _, payload, framed = unwrap_framing(f"rssi: -89, message: {PAYLOAD}")
        assert not framed
        assert payload.startswith("rssi")


class TestDecode:
    def test_valid_payload(self):
        rec = decode(PAYLOAD)
        assert rec.signal == DEFAULT_SIGNAL
        assert rec.timestamp == 0.0
        assert rec.pitch == 90.0
        assert rec.gforce == 1.0
        assert rec.position == GeoPosition(37.7, -122.4)
        assert rec.phase is FlightPhase.LANDED
        assert rec.sample_rate == 10.0

    def test_framed_matches_bare(self):
        framed = decode(f"RSSI: -89, Message: {PAYLOAD}")
        bare = decode(PAYLOAD)
        assert framed.signal == -89
        assert framed == replace(bare, signal=-89)

    def test_whitespace_around_fields(self):
        rec = decode(" 1 , 2 ,3,4 , 5,6 ,7,8, apex ,9 ")
        assert rec.timestamp == 1.0
        assert rec.altitude == 6.0
        assert rec.phase is FlightPhase.APEX
        assert rec.sample_rate == 9.0

    @pytest.mark.parametrize("raw,count", [
        ("1,2,3", 3),
        ("", 1),
        ("0,90,0,0,1.0,0,37.7,-122.4,LANDED", 9),
        ("0,90,0,0,1.0,0,37.7,-122.4,LANDED,10,11", 11),
        ("RSSI: -89, Message: 1,2,3", 3),
    ])
    def test_wrong_field_count(self, raw, count):
        with pytest.raises(DecodeError) as exc:
            decode(raw)
        assert exc.value.expected == NUM_FIELDS
        assert exc.value.actual == count
        assert "malformed field count" in str(exc.value)

    def test_decode_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode("1,2,3")

    def test_unknown_phase(self):
        rec = decode(PAYLOAD.replace("LANDED", "FOO"))
        assert rec.phase is FlightPhase.LANDED

    def test_lowercase_phase(self):
        rec = decode(PAYLOAD.replace("LANDED", "descending"))
        assert rec.phase is FlightPhase.DESCENDING

    def test_calibration_phase(self):
        rec = decode(PAYLOAD.replace("LANDED", "CALIBRATION"))
        assert rec.phase is FlightPhase.CALIBRATION

    def test_unparseable_numeric_defaults_to_zero(self):
        rec = decode("0,90,0,0,1.0,N/A,37.7,-122.4,LANDED,10")
        assert rec.altitude == 0.0
        assert rec.pitch == 90.0

    def test_empty_numeric_defaults_to_zero(self):
        rec = decode("0,90,,0,1.0,100,37.7,-122.4,LANDED,10")
        assert rec.roll == 0.0
        assert rec.altitude == 100.0

    def test_no_range_validation(self):
        rec = decode("0,90,0,0,1.0,-50,123.0,-500.0,LANDED,10")
        assert rec.altitude == -50.0
        assert rec.position.latitude == 123.0
        assert rec.position.longitude == -500.0

    def test_deterministic(self):
        raw = f"RSSI: -77, Message: {PAYLOAD}"
        assert decode(raw) == decode(raw)


class TestParsePacket:
    def test_reports_defaulted_fields(self):
        packet = parse_packet("abc,90,0,0,1.0,N/A,37.7,-122.4,LANDED,xx")
        assert packet.defaulted_fields == ("timestamp", "altitude", "sample_rate")
        assert packet.record.timestamp == 0.0
        assert packet.record.sample_rate == 0.0

    def test_clean_packet_has_no_defaults(self):
        packet = parse_packet(PAYLOAD)
        assert packet.defaulted_fields == ()
        assert not packet.framed

    def test_framed_flag(self):
        assert parse_packet(f"RSSI: -1, Message: {PAYLOAD}").framed

    @pytest.mark.parametrize("text", [
        "1_000",
        "１２",
        "١٢",
        "0x10",
        "1.5.2",
        "1e",
        "--1",
        "1e999",
    ])
    def test_non_plain_numbers_default(self, text):
        packet = parse_packet(f"0,90,0,0,1.0,{text},37.7,-122.4,LANDED,10")
        assert packet.defaulted_fields == ("altitude",)
        assert packet.record.altitude == 0.0

    @pytest.mark.parametrize("text,value", [
        ("-12.5", -12.5),
        ("+3", 3.0),
        (".5", 0.5),
        ("7.", 7.0),
        ("1.5E+3", 1500.0),
        ("2e-2", 0.02),
        ("-Inf", float("-inf")),
    ])
    def test_plain_numbers_parse(self, text, value):
        packet = parse_packet(f"0,90,0,0,1.0,{text},37.7,-122.4,LANDED,10")
        assert packet.defaulted_fields == ()
        assert packet.record.altitude == value

    def test_nan_field_parses(self):
        packet = parse_packet("0,90,0,0,NaN,0,37.7,-122.4,LANDED,10")
        assert packet.defaulted_fields == ()
        assert packet.record.gforce != packet.record.gforce

    @pytest.mark.parametrize("text", ["nan", "inf", "-inf", "1e30", "-1e19"])
    def test_unrepresentable_timestamp_defaults(self, text):
        packet = parse_packet(f"{text},90,0,0,1.0,0,37.7,-122.4,LANDED,10")
        assert packet.defaulted_fields == ("timestamp",)
        assert packet.record.timestamp == 0.0
        assert packet.record.timestamp_ms == 0

    def test_garbled_phase_not_reported_as_defaulted(self):
        packet = parse_packet(PAYLOAD.replace("LANDED", "???"))
        assert packet.defaulted_fields == ()


class TestEncode:
    def _record(self):
        return TelemetryRecord(
            signal=-63,
            timestamp=1712345678901.0,
            pitch=87.123456789,
            roll=-0.1,
            yaw=359.99,
            gforce=1.0 + (42.1 / 9.8) / 10.0,
            altitude=1148.0000000001,
            position=GeoPosition(37.7749 + 0.00005, -122.4194 + 0.00005),
            phase=FlightPhase.DESCENDING,
            sample_rate=10.0,
        )

    def test_payload_has_ten_fields(self):
        assert len(encode_payload(self._record()).split(",")) == NUM_FIELDS

    def test_payload_round_trip(self):
        rec = self._record()
        decoded = decode(encode_payload(rec))
        assert decoded == replace(rec, signal=DEFAULT_SIGNAL)

    def test_framed_round_trip(self):
        rec = self._record()
        assert decode(encode_framed(rec)) == rec

    def test_phase_case_insensitive_round_trip(self):
        rec = self._record()
        payload = encode_payload(rec).replace("DESCENDING", "Descending")
        assert decode(payload).phase is FlightPhase.DESCENDING
