"""Hardware communication module"""

from .protocol import PacketCodec, crc8
from .serial_transport import SerialTransport, TransportConfig, TransportState
from .port_utils import list_available_ports, list_port_names
from .mock_serial import MockArmSerial

__all__ = [
    'PacketCodec',
    'crc8',
    'SerialTransport',
    'TransportConfig',
    'TransportState',
    'list_available_ports',
    'list_port_names',
    'MockArmSerial'
]
