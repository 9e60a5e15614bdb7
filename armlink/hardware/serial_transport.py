"""
Reconnecting serial transport
Handshake probing, framed command output and a background feedback reader
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from queue import Empty, Full, Queue
from typing import Callable, List, Optional, Sequence

import serial

from ..config import GRIPPER_DEFAULTS, PROTOCOL_DEFAULTS, SERIAL_DEFAULTS
from ..exceptions import InvalidInputError, PacketError, TransportError
from ..types import DEFAULT_DOF, ActualState, GripperState, JointVector, now
from .port_utils import list_port_names
from .protocol import PacketCodec

logger = logging.getLogger(__name__)

SERIAL_ERRORS = (serial.SerialException, OSError)


class TransportState(Enum):
    DISCONNECTED = "disconnected"
    PROBING = "probing"
    CONNECTED = "connected"


@dataclass
class TransportConfig:
    """Serial link parameters"""
    dof: int = DEFAULT_DOF
    port: Optional[str] = None  # None = probe every port
    baudrate: int = SERIAL_DEFAULTS["baudrate"]
    read_timeout: float = SERIAL_DEFAULTS["read_timeout"]
    write_timeout: float = SERIAL_DEFAULTS["write_timeout"]
    handshake_timeout: float = SERIAL_DEFAULTS["handshake_timeout"]
    receive_timeout: float = SERIAL_DEFAULTS["receive_timeout"]
    reconnect_interval: float = SERIAL_DEFAULTS["reconnect_interval"]
    join_timeout: float = SERIAL_DEFAULTS["join_timeout"]
    queue_size: int = SERIAL_DEFAULTS["queue_size"]

    handshake_command: str = PROTOCOL_DEFAULTS["handshake_command"]
    handshake_response: str = PROTOCOL_DEFAULTS["handshake_response"]
    feedback_gripper_field: bool = PROTOCOL_DEFAULTS["feedback_gripper_field"]

    gripper_open_angle: float = GRIPPER_DEFAULTS["open_angle"]
    gripper_close_angle: float = GRIPPER_DEFAULTS["close_angle"]
    gripper_close_threshold: float = GRIPPER_DEFAULTS["close_threshold"]
    gripper_open_threshold: float = GRIPPER_DEFAULTS["open_threshold"]


class SerialTransport:
    """
    Owns the serial link to the arm controller.

    One worker thread per transport probes for the controller, reads feedback
    while connected and reconnects after a link loss. Decoded feedback is
    handed over through a bounded queue drained by the control tick.
    """

    def __init__(self,
                 config: Optional[TransportConfig] = None,
                 serial_factory: Callable[..., serial.Serial] = serial.Serial,
                 port_lister: Callable[[], List[str]] = list_port_names,
                 on_actual_state: Optional[Callable[[JointVector, GripperState], None]] = None):
        """
        Initialize transport

        Args:
            config: Link parameters
            serial_factory: Opens a port, called with serial.Serial's keyword arguments
            port_lister: Returns the device names to probe
            on_actual_state: Called for every drained feedback state
        """
        self.config = config or TransportConfig()
        self._serial_factory = serial_factory
        self._port_lister = port_lister
        self.on_actual_state = on_actual_state

        self.end_marker = PROTOCOL_DEFAULTS["end_marker"]
        self.command_codec = PacketCodec(self.config.dof, gripper_field=True)
        self.feedback_codec = PacketCodec(
            self.config.dof,
            prefix=PROTOCOL_DEFAULTS["feedback_prefix"],
            gripper_field=self.config.feedback_gripper_field,
        )

        self._serial = None
        self.port: Optional[str] = None
        self._state = TransportState.DISCONNECTED

        self._state_lock = threading.Lock()
        self._connect_lock = threading.Lock()
        self._write_lock = threading.Lock()

        self._queue: "Queue[ActualState]" = Queue(maxsize=self.config.queue_size)
        self._worker: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

        # Reassembly buffer, touched only by the worker
        self._buffer = ""
        self._buffer_started = 0.0

        self.dropped_packets = 0
        self.overflowed_states = 0

    # ==================== State ====================

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is TransportState.CONNECTED

    def _set_state(self, state: TransportState):
        with self._state_lock:
            self._state = state

    def _mark_link_lost(self):
        with self._state_lock:
            if self._state is not TransportState.CONNECTED:
                return
            self._state = TransportState.DISCONNECTED
        logger.warning(f"⚠️ Link to {self.port} lost - reconnecting")

    def require_connected(self):
        """Raise TransportError unless the link is up"""
        if not self.is_connected:
            raise TransportError("Arm controller not connected")

    # ==================== Connection Management ====================

    def connect(self) -> bool:
        """
        Probe ports once and start the worker on success

        Returns:
            True if a controller answered the handshake
        """
        if not self._probe():
            return False
        self.start()
        return True

    def start(self):
        """Start the worker; it connects, reads and reconnects until stopped"""
        if self._worker is not None and self._worker.is_alive() and not self._stop_event.is_set():
            return

        self._stop_event = threading.Event()
        self._worker = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name="armlink-serial",
            daemon=True,
        )
        self._worker.start()
        logger.debug("Serial worker started")

    def stop(self):
        """Stop the worker and release the port"""
        self.disconnect()

    def disconnect(self):
        """
        Stop the worker (bounded join) and close the port

        A worker that does not stop in time is left to exit on its own; the
        port is released regardless.
        """
        worker, stop_event = self._worker, self._stop_event
        if stop_event is not None:
            stop_event.set()

        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=self.config.join_timeout)
            if worker.is_alive():
                logger.warning(
                    f"⚠️ Serial worker still running after {self.config.join_timeout}s - releasing port anyway")
        self._worker = None

        if self._release_port(TransportState.DISCONNECTED):
            logger.info("🔌 Serial connection closed")

    def _release_port(self, final_state: Optional[TransportState] = None) -> bool:
        """Close the link if one is open; returns True if it was"""
        with self._write_lock:
            link, self._serial = self._serial, None
            if final_state is not None:
                self._set_state(final_state)
        if link is not None:
            self._close_quietly(link)
        self._buffer = ""
        return link is not None

    @staticmethod
    def _close_quietly(link):
        try:
            link.close()
        except SERIAL_ERRORS as e:
            logger.debug(f"Error closing serial: {e}")

    def _candidate_ports(self) -> List[str]:
        if self.config.port:
            return [self.config.port]
        try:
            return list(self._port_lister())
        except SERIAL_ERRORS as e:
            logger.error(f"❌ Port enumeration failed: {e}")
            return []

    def _probe(self, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Try the handshake on every candidate port

        Args:
            stop_event: Worker stop flag; once set, no further port is tried
                and a link that just answered is closed instead of kept
        """
        def stopped():
            return stop_event is not None and stop_event.is_set()

        with self._connect_lock:
            if self.is_connected:
                return True
            if stopped():
                return False

            self._set_state(TransportState.PROBING)
            ports = self._candidate_ports()
            if not ports:
                logger.warning("⚠️ No serial ports found")

            for port in ports:
                if stopped():
                    break
                link = self._try_port(port)
                if link is None:
                    continue

                # Checked under the write lock so disconnect() either sees
                # this link or makes us drop it
                with self._write_lock:
                    kept = not stopped()
                    if kept:
                        self._serial = link
                        self.port = port
                        self._buffer = ""
                        self._set_state(TransportState.CONNECTED)
                if not kept:
                    logger.debug(f"Stopped during handshake on {port} - closing it")
                    self._close_quietly(link)
                    break

                logger.info(f"✅ Connected to {port} @ {self.config.baudrate} baud")
                return True

            self._set_state(TransportState.DISCONNECTED)
            logger.debug(f"No controller found on {len(ports)} port(s)")
            return False

    def _try_port(self, port: str):
        """Open a port and run the handshake; returns the open link or None"""
        cfg = self.config
        try:
            link = self._serial_factory(
                port=port,
                baudrate=cfg.baudrate,
                timeout=cfg.handshake_timeout,
                write_timeout=cfg.write_timeout,
            )
        except (SERIAL_ERRORS + (ValueError,)) as e:
            logger.debug(f"Cannot open {port}: {e}")
            return None

        try:
            link.reset_input_buffer()
            link.reset_output_buffer()
            link.write((cfg.handshake_command + self.end_marker).encode('ascii'))
            reply = link.readline().decode('ascii', errors='ignore').strip()
        except SERIAL_ERRORS as e:
            logger.warning(f"⚠️ Handshake on {port} failed: {e}")
            self._close_quietly(link)
            return None

        if cfg.handshake_response not in reply:
            logger.warning(f"⚠️ {port}: unexpected handshake reply {reply!r}")
            self._close_quietly(link)
            return None

        link.timeout = cfg.read_timeout
        return link

    # ==================== Worker ====================

    def _run(self, stop_event: threading.Event):
        while not stop_event.is_set():
            if self.is_connected:
                self._read_available()
                continue

            self._release_port()
            if self._probe(stop_event):
                continue
            stop_event.wait(self.config.reconnect_interval)

        if self._stop_event is stop_event:
            self._release_port(TransportState.DISCONNECTED)
        logger.debug("Serial worker stopped")

    def _read_available(self):
        """Read pending bytes and process complete packets"""
        link = self._serial
        if link is None:
            time.sleep(0.01)
            return

        try:
            waiting = link.in_waiting
            data = link.read(waiting) if waiting > 0 else b""
        except SERIAL_ERRORS as e:
            logger.error(f"❌ Serial read error: {e}")
            self._mark_link_lost()
            return

        current = time.monotonic()
        if data:
            if not self._buffer:
                self._buffer_started = current
            self._buffer += data.decode('ascii', errors='ignore')
            self._process_buffer(current)
            self._discard_stale(current)
            return

        self._discard_stale(current)

        # Small sleep to prevent CPU hogging
        time.sleep(0.01)

    def _process_buffer(self, current: float):
        if self.end_marker not in self._buffer:
            return

        while self.end_marker in self._buffer:
            line, self._buffer = self._buffer.split(self.end_marker, 1)
            line = line.strip()
            if line:
                self._handle_line(line)

        # Any remainder is a new frame that began with this chunk
        self._buffer_started = current

    def _discard_stale(self, current: float):
        """Drop a partial packet whose end marker has not arrived in time"""
        if self._buffer and current - self._buffer_started > self.config.receive_timeout:
            logger.warning(f"⚠️ Discarding stale partial packet: {self._buffer[:64]!r}")
            self._buffer = ""
            self.dropped_packets += 1

    def _handle_line(self, line: str):
        try:
            state = self.decode_feedback(line)
        except (PacketError, InvalidInputError) as e:
            self.dropped_packets += 1
            logger.warning(f"⚠️ Dropped packet: {e}")
            return

        logger.debug(f"Received: {line}{self.end_marker}")
        self._enqueue(state)

    def _enqueue(self, state: ActualState):
        """Put without blocking, dropping the oldest state when full"""
        while True:
            try:
                self._queue.put_nowait(state)
                return
            except Full:
                try:
                    self._queue.get_nowait()
                    self.overflowed_states += 1
                except Empty:
                    pass

    def drain_actual_states(self) -> List[ActualState]:
        """
        Take every queued feedback state without blocking

        Returns:
            States in arrival order; on_actual_state is invoked for each
        """
        states = []
        while True:
            try:
                states.append(self._queue.get_nowait())
            except Empty:
                break

        if self.on_actual_state is not None:
            for state in states:
                self.on_actual_state(state.joints, state.gripper)
        return states

    # ==================== Codec ====================

    def gripper_angle(self, gripper: GripperState) -> float:
        """Actuator angle for a gripper command"""
        if gripper is GripperState.OPEN:
            return self.config.gripper_open_angle
        if gripper is GripperState.CLOSE:
            return self.config.gripper_close_angle
        raise InvalidInputError(f"Cannot command gripper state {gripper!r}")

    def gripper_state(self, angle: float) -> GripperState:
        """Classify a reported gripper angle"""
        if angle <= self.config.gripper_close_threshold:
            return GripperState.CLOSE
        if angle >= self.config.gripper_open_threshold:
            return GripperState.OPEN
        return GripperState.UNDETERMINED

    def encode_command(self, joints: Sequence[float], gripper: GripperState) -> str:
        """Outbound packet for joints and gripper"""
        joints = JointVector(joints, self.config.dof)
        return self.command_codec.encode(list(joints) + [self.gripper_angle(gripper)])

    def decode_feedback(self, line: str) -> ActualState:
        """Parse one inbound ACTUAL packet"""
        values = self.feedback_codec.decode(line)
        joints = JointVector(values[:self.config.dof], self.config.dof)

        if self.config.feedback_gripper_field:
            gripper = self.gripper_state(values[self.config.dof])
        else:
            gripper = GripperState.UNDETERMINED
        return ActualState(joints, gripper, now())

    # ==================== Output ====================

    def send(self, joints: Sequence[float], gripper: GripperState) -> bool:
        """
        Write one command packet

        Returns:
            True if the packet was written; invalid input, no link or a
            write failure return False
        """
        try:
            packet = self.encode_command(joints, gripper)
        except (InvalidInputError, PacketError) as e:
            logger.error(f"❌ Command rejected: {e}")
            return False

        if not self.is_connected:
            logger.debug("Not connected - command dropped")
            return False

        with self._write_lock:
            link = self._serial
            if link is None:
                return False
            try:
                link.write(packet.encode('ascii'))
            except SERIAL_ERRORS as e:
                logger.error(f"❌ Write failed: {e}")
                write_failed = True
            else:
                write_failed = False

        if write_failed:
            self._mark_link_lost()
            return False

        logger.debug(f"Sent: {packet}")
        return True
