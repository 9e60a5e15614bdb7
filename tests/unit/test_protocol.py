"""
Unit Tests for the Wire Protocol
================================

CRC-8, packet encoding and decoding, corruption handling.
"""

import pytest

from armlink.exceptions import PacketError, ProtocolError
from armlink.hardware import PacketCodec, crc8

FEEDBACK_LINE = "$ACTUAL:J1:10.0;J2:20.0;J3:30.0;J4:40.0;J5:50.0;CRC:4E#"


@pytest.fixture
def command_codec():
    return PacketCodec(5, gripper_field=True)


@pytest.fixture
def feedback_codec():
    return PacketCodec(5, prefix="ACTUAL:", gripper_field=False)


class TestCrc8:
    """Tests for the checksum."""

    def test_check_value(self):
        """Standard CRC-8 (poly 0x31, init 0) check value."""
        assert crc8("123456789") == 0xA2

    def test_empty(self):
        assert crc8("") == 0x00

    def test_bytes_and_text_agree(self):
        assert crc8(b"J1:10.0") == crc8("J1:10.0")

    def test_feedback_body(self):
        assert crc8("ACTUAL:J1:10.0;J2:20.0;J3:30.0;J4:40.0;J5:50.0") == 0x4E


class TestEncode:
    """Tests for outbound packets."""

    def test_command_packet(self, command_codec):
        packet = command_codec.encode([12.3, -4.0, 0.0, 90.0, 0.0, 90.0])
        assert packet == "$J1:12.3;J2:-4.0;J3:0.0;J4:90.0;J5:0.0;J6:90.0;CRC:38#"

    def test_one_decimal(self, command_codec):
        packet = command_codec.encode([1.26, 2.0, -3.04, 4.0, 5.0, 0.0])
        assert packet.startswith("$J1:1.3;J2:2.0;J3:-3.0;")

    def test_wrong_value_count(self, command_codec):
        with pytest.raises(PacketError):
            command_codec.encode([1.0, 2.0, 3.0, 4.0, 5.0])

    def test_round_trip(self, command_codec):
        values = [12.34, -4.0, 179.96, -0.04, 33.3, 90.0]
        decoded = command_codec.decode(command_codec.encode(values))

        assert decoded == pytest.approx([round(v, 1) for v in values], abs=1e-9)


class TestDecode:
    """Tests for inbound packets."""

    def test_feedback_scenario(self, feedback_codec):
        assert feedback_codec.decode(FEEDBACK_LINE) == [10.0, 20.0, 30.0, 40.0, 50.0]

    def test_without_end_marker(self, feedback_codec):
        assert feedback_codec.decode(FEEDBACK_LINE[:-1]) == [10.0, 20.0, 30.0, 40.0, 50.0]

    def test_altered_checksum(self, feedback_codec):
        with pytest.raises(PacketError):
            feedback_codec.decode(FEEDBACK_LINE.replace("CRC:4E", "CRC:4F"))

    def test_altered_value(self, feedback_codec):
        with pytest.raises(PacketError):
            feedback_codec.decode(FEEDBACK_LINE.replace("J3:30.0", "J3:31.0"))

    def test_field_count_mismatch(self, feedback_codec):
        with pytest.raises(PacketError):
            feedback_codec.decode("$ACTUAL:J1:10.0;J2:20.0;J3:30.0;J4:40.0;CRC:4E#")

    def test_non_numeric_field(self, feedback_codec):
        with pytest.raises(PacketError):
            feedback_codec.decode("$ACTUAL:J1:ten;J2:20.0;J3:30.0;J4:40.0;J5:50.0;CRC:4E#")

    def test_wrong_field_name(self, feedback_codec):
        with pytest.raises(PacketError):
            feedback_codec.decode("$ACTUAL:J1:10.0;J3:20.0;J2:30.0;J4:40.0;J5:50.0;CRC:4E#")

    def test_invalid_checksum_text(self, feedback_codec):
        with pytest.raises(PacketError):
            feedback_codec.decode(FEEDBACK_LINE.replace("CRC:4E", "CRC:ZZ"))

    def test_missing_prefix(self, feedback_codec):
        with pytest.raises(PacketError):
            feedback_codec.decode("$J1:10.0;J2:20.0;J3:30.0;J4:40.0;J5:50.0;CRC:07#")

    def test_missing_start_marker(self, feedback_codec):
        with pytest.raises(PacketError):
            feedback_codec.decode(FEEDBACK_LINE[1:])

    def test_resyncs_on_last_start_marker(self, feedback_codec):
        """Garbage and a broken frame before the last $ are ignored."""
        line = "noise$ACTUAL:J1:1" + FEEDBACK_LINE
        assert feedback_codec.decode(line) == [10.0, 20.0, 30.0, 40.0, 50.0]

    def test_gripper_field(self):
        codec = PacketCodec(5, prefix="ACTUAL:", gripper_field=True)
        line = "$ACTUAL:J1:10.0;J2:20.0;J3:30.0;J4:40.0;J5:50.0;J6:85.0;CRC:61#"

        assert codec.field_count == 7
        assert codec.decode(line) == [10.0, 20.0, 30.0, 40.0, 50.0, 85.0]

    def test_packet_error_is_protocol_error(self, feedback_codec):
        with pytest.raises(ProtocolError):
            feedback_codec.decode("")
