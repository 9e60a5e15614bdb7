"""
Unit Tests for the Serial Transport
===================================

Handshake probing, command output, feedback reassembly, queue overflow
and reconnection, all against scripted serial doubles.
"""

import logging
import threading
import time

import pytest

from armlink.exceptions import InvalidInputError, TransportError
from armlink.hardware import PacketCodec, SerialTransport, TransportConfig, TransportState
from armlink.types import GripperState, JointVector

FEEDBACK_LINE = "$ACTUAL:J1:10.0;J2:20.0;J3:30.0;J4:40.0;J5:50.0;CRC:4E#"


def feedback(values, gripper_field=False):
    return PacketCodec(5, prefix="ACTUAL:", gripper_field=gripper_field).encode(values)


def wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


# =============================================================================
# Connection
# =============================================================================


class TestConnection:
    """Tests for handshake probing and connection state."""

    def test_probe_finds_answering_port(self, make_device, make_factory, transport_config):
        silent = make_device(reply=b"HELLO\n")
        arm = make_device()
        factory = make_factory({"/dev/silent": silent, "/dev/arm": arm})
        transport = SerialTransport(transport_config, serial_factory=factory,
                                    port_lister=factory.lister)

        assert transport._probe()
        assert transport.port == "/dev/arm"
        assert transport.state is TransportState.CONNECTED
        assert not silent.is_open
        assert arm.written[0] == b"IDENTIFY?#"
        transport.disconnect()

    def test_read_timeout_after_handshake(self, transport, fake_device, transport_config):
        factory = transport._serial_factory

        assert transport._probe()
        _, kwargs = factory.opened[0]
        assert kwargs["timeout"] == transport_config.handshake_timeout
        assert fake_device.timeout == transport_config.read_timeout

    def test_fixed_port_only(self, make_device, make_factory):
        factory = make_factory({"/dev/other": make_device(), "/dev/arm": make_device()})
        transport = SerialTransport(TransportConfig(port="/dev/arm"), serial_factory=factory,
                                    port_lister=factory.lister)

        assert transport._probe()
        assert [port for port, _ in factory.opened] == ["/dev/arm"]
        transport.disconnect()

    def test_no_ports(self, transport_config):
        transport = SerialTransport(transport_config, port_lister=lambda: [])

        assert not transport.connect()
        assert transport.state is TransportState.DISCONNECTED
        with pytest.raises(TransportError):
            transport.require_connected()

    def test_no_controller_answers(self, make_device, make_factory, transport_config):
        device = make_device(reply=b"")
        factory = make_factory({"/dev/arm": device})
        transport = SerialTransport(transport_config, serial_factory=factory,
                                    port_lister=factory.lister)

        assert not transport.connect()
        assert not device.is_open
        assert transport._worker is None

    def test_connect_starts_worker(self, transport, fake_device):
        assert transport.connect()
        assert transport._worker.is_alive()
        assert transport._worker.name == "armlink-serial"

        transport.disconnect()
        assert transport._worker is None
        assert transport.state is TransportState.DISCONNECTED
        assert not fake_device.is_open

    def test_disconnect_when_idle(self, transport):
        transport.disconnect()
        transport.disconnect()
        assert transport.state is TransportState.DISCONNECTED

    def test_stuck_worker_is_abandoned(self, transport, fake_device, caplog):
        transport.config.join_timeout = 0.05
        transport._probe()

        release = threading.Event()
        transport._stop_event = threading.Event()
        transport._worker = threading.Thread(target=release.wait, daemon=True)
        transport._worker.start()

        with caplog.at_level(logging.WARNING):
            transport.disconnect()
        release.set()

        assert "still running" in caplog.text
        assert not fake_device.is_open
        assert transport.state is TransportState.DISCONNECTED

    def test_disconnect_during_handshake_releases_port(self, make_device, make_factory):
        """A handshake that completes after disconnect() must not reopen the link."""
        device = make_device(reply_delay=0.3)
        factory = make_factory({"/dev/arm": device})
        config = TransportConfig(dof=5, reconnect_interval=0.05, join_timeout=0.05)
        transport = SerialTransport(config, serial_factory=factory, port_lister=factory.lister)

        transport.start()
        assert wait_for(lambda: factory.opened)
        worker = transport._worker
        transport.disconnect()
        worker.join(timeout=2.0)

        assert not worker.is_alive()
        assert transport.state is TransportState.DISCONNECTED
        assert transport._serial is None
        assert not device.is_open
        assert [port for port, _ in factory.opened] == ["/dev/arm"]


# =============================================================================
# Output
# =============================================================================


class TestSend:
    """Tests for command packets."""

    def test_packet_format(self, transport, fake_device):
        transport._probe()

        assert transport.send([12.3, -4.0, 0.0, 90.0, 0.0], GripperState.OPEN)
        assert fake_device.written[-1] == b"$J1:12.3;J2:-4.0;J3:0.0;J4:90.0;J5:0.0;J6:90.0;CRC:38#"

    def test_close_maps_to_close_angle(self, transport, fake_device):
        transport._probe()
        transport.send([0.0] * 5, GripperState.CLOSE)

        assert b";J6:0.0;" in fake_device.written[-1]

    def test_rejects_undetermined_gripper(self, transport, fake_device):
        transport._probe()

        assert not transport.send([0.0] * 5, GripperState.UNDETERMINED)
        assert fake_device.written == [b"IDENTIFY?#"]

    def test_rejects_wrong_length(self, transport, fake_device):
        transport._probe()

        assert not transport.send([0.0] * 4, GripperState.OPEN)
        assert fake_device.written == [b"IDENTIFY?#"]

    def test_not_connected(self, transport, fake_device):
        assert not transport.send([0.0] * 5, GripperState.OPEN)
        assert fake_device.written == []

    def test_write_failure_drops_link(self, transport, fake_device):
        transport._probe()
        fake_device.fail_write = True

        assert not transport.send([0.0] * 5, GripperState.OPEN)
        assert transport.state is TransportState.DISCONNECTED


# =============================================================================
# Feedback
# =============================================================================


class TestFeedback:
    """Tests for packet reassembly and the feedback queue."""

    def test_reassembles_split_packet(self, transport, fake_device):
        transport._probe()

        fake_device.feed(FEEDBACK_LINE[:20])
        transport._read_available()
        assert transport.drain_actual_states() == []

        fake_device.feed(FEEDBACK_LINE[20:])
        transport._read_available()
        states = transport.drain_actual_states()

        assert len(states) == 1
        assert states[0].joints == JointVector([10.0, 20.0, 30.0, 40.0, 50.0])
        assert states[0].gripper is GripperState.UNDETERMINED

    def test_several_packets_in_order(self, transport, fake_device):
        transport._probe()
        fake_device.feed(feedback([0.0] * 5) + "\r\n" + feedback([1.0, 2.0, 3.0, 4.0, 5.0]))
        transport._read_available()

        states = transport.drain_actual_states()
        assert [s.joints[0] for s in states] == [0.0, 1.0]

    def test_stale_partial_packet_is_dropped(self, transport, fake_device):
        transport._probe()
        fake_device.feed("$ACTUAL:J1:10.0;J2:2")
        transport._read_available()

        transport._buffer_started -= 10.0
        transport._read_available()
        assert transport._buffer == ""
        assert transport.dropped_packets == 1

        fake_device.feed(FEEDBACK_LINE)
        transport._read_available()
        assert len(transport.drain_actual_states()) == 1

    def test_trickle_without_end_marker_is_dropped(self, transport, fake_device):
        transport._probe()
        fake_device.feed("$ACTUAL:J1:1")
        transport._read_available()
        started = transport._buffer_started

        fake_device.feed("0.0;J2:2")
        transport._read_available()
        assert transport._buffer_started == started

        transport._buffer_started -= 10.0
        fake_device.feed("0.0;J3:3")
        transport._read_available()

        assert transport._buffer == ""
        assert transport.dropped_packets == 1

    def test_window_restarts_after_complete_packet(self, transport, fake_device):
        transport._probe()
        fake_device.feed(FEEDBACK_LINE[:20])
        transport._read_available()

        transport._buffer_started -= 10.0
        fake_device.feed(FEEDBACK_LINE[20:] + "$ACTUAL:J1")
        transport._read_available()

        assert len(transport.drain_actual_states()) == 1
        assert transport._buffer == "$ACTUAL:J1"
        assert transport.dropped_packets == 0

    def test_bad_checksum_is_dropped(self, transport, fake_device):
        transport._probe()
        fake_device.feed(FEEDBACK_LINE.replace("CRC:4E", "CRC:4F") + FEEDBACK_LINE)
        transport._read_available()

        assert transport.dropped_packets == 1
        assert len(transport.drain_actual_states()) == 1

    def test_queue_overflow_keeps_newest(self, make_factory, fake_device):
        factory = make_factory({"/dev/arm": fake_device})
        transport = SerialTransport(TransportConfig(queue_size=2), serial_factory=factory,
                                    port_lister=factory.lister)
        transport._probe()

        fake_device.feed(feedback([0.0] * 5) + feedback([1.0] * 5) + feedback([2.0] * 5))
        transport._read_available()
        states = transport.drain_actual_states()

        assert [s.joints[0] for s in states] == [1.0, 2.0]
        assert transport.overflowed_states == 1
        transport.disconnect()

    def test_callback_for_drained_states(self, transport, fake_device):
        received = []
        transport.on_actual_state = lambda joints, gripper: received.append((joints, gripper))
        transport._probe()

        fake_device.feed(FEEDBACK_LINE)
        transport._read_available()
        transport.drain_actual_states()

        assert received == [(JointVector([10.0, 20.0, 30.0, 40.0, 50.0]), GripperState.UNDETERMINED)]

    def test_read_error_drops_link(self, transport, fake_device):
        transport._probe()
        fake_device.fail_read = True
        transport._read_available()

        assert transport.state is TransportState.DISCONNECTED


class TestGripperFeedback:
    """Tests for gripper angle classification."""

    @pytest.mark.parametrize("angle, expected", [
        (0.0, GripperState.CLOSE),
        (30.0, GripperState.CLOSE),
        (45.0, GripperState.UNDETERMINED),
        (60.0, GripperState.OPEN),
        (85.0, GripperState.OPEN),
    ])
    def test_gripper_state(self, transport, angle, expected):
        assert transport.gripper_state(angle) is expected

    def test_gripper_angle(self, transport):
        assert transport.gripper_angle(GripperState.OPEN) == 90.0
        assert transport.gripper_angle(GripperState.CLOSE) == 0.0
        with pytest.raises(InvalidInputError):
            transport.gripper_angle(GripperState.UNDETERMINED)

    def test_decode_with_gripper_field(self):
        transport = SerialTransport(TransportConfig(feedback_gripper_field=True))

        opened = transport.decode_feedback(
            "$ACTUAL:J1:10.0;J2:20.0;J3:30.0;J4:40.0;J5:50.0;J6:85.0;CRC:61#")
        between = transport.decode_feedback(
            "$ACTUAL:J1:10.0;J2:20.0;J3:30.0;J4:40.0;J5:50.0;J6:45.0;CRC:73#")

        assert opened.gripper is GripperState.OPEN
        assert opened.joints == JointVector([10.0, 20.0, 30.0, 40.0, 50.0])
        assert between.gripper is GripperState.UNDETERMINED


# =============================================================================
# Background Worker
# =============================================================================


class TestWorker:
    """Tests with the reader thread running."""

    def test_reads_in_background(self, transport, fake_device):
        assert transport.connect()
        fake_device.feed(FEEDBACK_LINE)

        states = []
        assert wait_for(lambda: states.extend(transport.drain_actual_states()) or states)
        assert states[0].joints == JointVector([10.0, 20.0, 30.0, 40.0, 50.0])

    def test_reconnects_when_controller_appears(self, make_device, make_factory, transport_config):
        device = make_device(reply=b"")
        factory = make_factory({"/dev/arm": device})
        transport = SerialTransport(transport_config, serial_factory=factory,
                                    port_lister=factory.lister)
        try:
            assert not transport.connect()
            transport.start()

            device.reply = b"ROBOT_READY\n"
            assert wait_for(lambda: transport.is_connected)
            assert transport.port == "/dev/arm"
        finally:
            transport.disconnect()
