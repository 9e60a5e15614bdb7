"""
Framed, checksummed text protocol
$J1:12.3;J2:-4.0;...;CRC:XX#  with CRC-8 (poly 0x31, init 0x00)
"""

import math
from typing import List, Sequence, Union

from ..config import PROTOCOL_DEFAULTS
from ..exceptions import PacketError

CRC_POLYNOMIAL = 0x31
CRC_FIELD = "CRC"


def crc8(data: Union[str, bytes], polynomial: int = CRC_POLYNOMIAL, init: int = 0x00) -> int:
    """
    CRC-8, MSB first, no reflection, no final xor

    Args:
        data: ASCII text or raw bytes

    Returns:
        Checksum 0-255
    """
    if isinstance(data, str):
        data = data.encode('ascii')

    crc = init
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ polynomial) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
    return crc


class PacketCodec:
    """Encode and decode one packet layout"""

    def __init__(self,
                 dof: int,
                 prefix: str = "",
                 gripper_field: bool = True,
                 start: str = PROTOCOL_DEFAULTS["start_marker"],
                 end: str = PROTOCOL_DEFAULTS["end_marker"],
                 delimiter: str = PROTOCOL_DEFAULTS["delimiter"]):
        """
        Initialize codec

        Args:
            dof: Number of joint fields
            prefix: Text between start marker and first field, e.g. "ACTUAL:"
            gripper_field: Whether a J{dof+1} gripper angle follows the joints
        """
        self.dof = dof
        self.prefix = prefix
        self.gripper_field = gripper_field
        self.start = start
        self.end = end
        self.delimiter = delimiter

    @property
    def value_count(self) -> int:
        return self.dof + (1 if self.gripper_field else 0)

    @property
    def field_count(self) -> int:
        """Delimited fields per packet, checksum included"""
        return self.value_count + 1

    def _body(self, values: Sequence[float]) -> str:
        """Checksummed text: prefix and value fields, markers and CRC excluded"""
        fields = [f"J{i}:{value:.1f}" for i, value in enumerate(values, start=1)]
        return self.prefix + self.delimiter.join(fields)

    def encode(self, values: Sequence[float]) -> str:
        """
        Build a packet

        Args:
            values: Joint angles, then the gripper angle if gripper_field

        Returns:
            Complete packet including markers
        """
        if len(values) != self.value_count:
            raise PacketError(f"Expected {self.value_count} values, got {len(values)}")

        body = self._body(values)
        return f"{self.start}{body}{self.delimiter}{CRC_FIELD}:{crc8(body):02X}{self.end}"

    def decode(self, line: str) -> List[float]:
        """
        Parse and verify a packet

        Everything before the last start marker is ignored, so a line holding
        the tail of a broken frame still decodes its final packet.

        Returns:
            Values in field order

        Raises:
            PacketError: malformed frame, wrong field count, bad value or CRC mismatch
        """
        text = line.strip()
        index = text.rfind(self.start)
        if index < 0:
            raise PacketError(f"No start marker in {line!r}")
        text = text[index + len(self.start):]
        if text.endswith(self.end):
            text = text[:-len(self.end)]

        if not text.startswith(self.prefix):
            raise PacketError(f"Missing prefix {self.prefix!r} in {line!r}")
        text = text[len(self.prefix):]

        fields = text.split(self.delimiter)
        if len(fields) != self.field_count:
            raise PacketError(f"Expected {self.field_count} fields, got {len(fields)}: {line!r}")

        values = []
        for i, field in enumerate(fields[:-1], start=1):
            name, _, raw = field.partition(":")
            if name != f"J{i}":
                raise PacketError(f"Expected field J{i}, got {field!r}")
            try:
                value = float(raw)
            except ValueError:
                raise PacketError(f"Non-numeric value in {field!r}") from None
            if not math.isfinite(value):
                raise PacketError(f"Non-finite value in {field!r}")
            values.append(value)

        name, _, raw = fields[-1].partition(":")
        if name != CRC_FIELD:
            raise PacketError(f"Expected {CRC_FIELD} field, got {fields[-1]!r}")
        try:
            received = int(raw, 16)
        except ValueError:
            raise PacketError(f"Invalid checksum {raw!r}") from None

        expected = crc8(self._body(values))
        if received != expected:
            raise PacketError(f"Checksum mismatch: got {received:02X}, expected {expected:02X}")

        return values
