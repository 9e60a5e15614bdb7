"""
Simulated arm controller
Speaks the wire protocol through the subset of serial.Serial the transport uses
"""

import logging
import threading
import time
from typing import List, Optional

from ..config import GRIPPER_DEFAULTS, PROTOCOL_DEFAULTS
from ..exceptions import PacketError
from ..types import DEFAULT_DOF
from .protocol import PacketCodec

logger = logging.getLogger(__name__)


class MockArmSerial:
    """
    In-memory stand-in for serial.Serial.

    Bytes written are parsed as command packets; the simulated joints move
    toward the commanded angles at max_speed and ACTUAL feedback packets are
    queued for reading. With realtime=True the simulation advances with the
    wall clock whenever the transport polls, otherwise only through step().
    """

    def __init__(self,
                 port: Optional[str] = None,
                 baudrate: int = 115200,
                 timeout: Optional[float] = None,
                 write_timeout: Optional[float] = None,
                 dof: int = DEFAULT_DOF,
                 max_speed: float = 90.0,
                 feedback_rate: float = 20.0,
                 feedback_gripper_field: bool = PROTOCOL_DEFAULTS["feedback_gripper_field"],
                 realtime: bool = True,
                 **kwargs):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.write_timeout = write_timeout
        self.is_open = True

        self.dof = dof
        self.max_speed = max_speed  # deg/s
        self.feedback_rate = feedback_rate  # Hz
        self.realtime = realtime

        self.end_marker = PROTOCOL_DEFAULTS["end_marker"]
        self.command_codec = PacketCodec(dof, gripper_field=True)
        self.feedback_codec = PacketCodec(
            dof, prefix=PROTOCOL_DEFAULTS["feedback_prefix"], gripper_field=feedback_gripper_field)

        self.joints: List[float] = [0.0] * dof
        self.commanded: List[float] = [0.0] * dof
        self.gripper_angle = GRIPPER_DEFAULTS["close_angle"]

        self.received_packets: List[str] = []
        self.rejected_packets = 0

        self._rx = ""
        self._tx = bytearray()
        self._lock = threading.Lock()
        self._last_update = time.monotonic()
        self._last_feedback = self._last_update

    # ==================== serial.Serial interface ====================

    @property
    def in_waiting(self) -> int:
        self._advance()
        with self._lock:
            return len(self._tx)

    def write(self, data: bytes) -> int:
        if not self.is_open:
            raise OSError("Port not open")

        with self._lock:
            self._rx += bytes(data).decode('ascii', errors='ignore')
            while self.end_marker in self._rx:
                line, self._rx = self._rx.split(self.end_marker, 1)
                self._handle_line(line.strip())
        return len(data)

    def read(self, size: int = 1) -> bytes:
        self._advance()
        with self._lock:
            chunk = bytes(self._tx[:size])
            del self._tx[:size]
        return chunk

    def readline(self) -> bytes:
        with self._lock:
            index = self._tx.find(b"\n")
            end = len(self._tx) if index < 0 else index + 1
            line = bytes(self._tx[:end])
            del self._tx[:end]
        return line

    def reset_input_buffer(self):
        with self._lock:
            self._tx.clear()

    def reset_output_buffer(self):
        with self._lock:
            self._rx = ""

    def flush(self):
        pass

    def close(self):
        self.is_open = False

    # ==================== Simulation ====================

    def _handle_line(self, line: str):
        if PROTOCOL_DEFAULTS["handshake_command"] in line:
            self._tx += (PROTOCOL_DEFAULTS["handshake_response"] + "\n").encode('ascii')
            return

        try:
            values = self.command_codec.decode(line)
        except PacketError as e:
            self.rejected_packets += 1
            logger.debug(f"Simulator rejected {line!r}: {e}")
            return

        self.received_packets.append(line + self.end_marker)
        self.commanded = values[:self.dof]
        self.gripper_angle = values[self.dof]

    def _advance(self):
        if not self.realtime:
            return
        current = time.monotonic()
        elapsed = current - self._last_update
        self._last_update = current
        self._move(elapsed)

        if current - self._last_feedback >= 1.0 / self.feedback_rate:
            self._last_feedback = current
            self.emit_feedback()

    def _move(self, elapsed: float):
        limit = self.max_speed * elapsed
        with self._lock:
            self.joints = [
                joint + max(-limit, min(limit, target - joint))
                for joint, target in zip(self.joints, self.commanded)
            ]

    def step(self, elapsed: float):
        """Advance the simulation by elapsed seconds and queue one feedback packet"""
        self._move(elapsed)
        self.emit_feedback()

    def emit_feedback(self):
        values = list(self.joints)
        if self.feedback_codec.gripper_field:
            values.append(self.gripper_angle)
        with self._lock:
            self._tx += self.feedback_codec.encode(values).encode('ascii')
