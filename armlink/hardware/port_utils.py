"""
Serial port detection utilities
Candidate ordering for handshake probing
"""

import serial.tools.list_ports
from typing import List

# Description / device fragments of common USB-serial bridges
USB_SERIAL_PATTERNS = [
    'usbserial',    # Common macOS pattern
    'ttyusb',       # Linux USB adapters
    'ttyacm',       # Linux CDC-ACM boards
    'ch340',        # Common USB-Serial chip
    'cp210',        # Another common chip
    'ftdi',         # FTDI chips
    'arduino',      # Sometimes shows as Arduino
]


def list_available_ports() -> List[dict]:
    """
    List all available serial ports with details
    Returns list of dicts with device, description, hwid and is_usb
    """
    ports = []

    for port in serial.tools.list_ports.comports():
        description = port.description or 'Unknown'
        hwid = port.hwid or 'Unknown'
        port_info = {
            'device': port.device,
            'description': description,
            'hwid': hwid,
            'is_usb': 'USB' in description or 'USB' in hwid,
        }
        ports.append(port_info)

    # Sort by device name
    ports.sort(key=lambda x: x['device'])

    return ports


def _looks_like_controller(port: dict) -> bool:
    text = f"{port['device']} {port['description']}".lower()
    return port['is_usb'] or any(pattern in text for pattern in USB_SERIAL_PATTERNS)


def list_port_names() -> List[str]:
    """
    Device names to probe, USB-serial adapters first
    """
    ports = list_available_ports()
    likely = [p['device'] for p in ports if _looks_like_controller(p)]
    others = [p['device'] for p in ports if not _looks_like_controller(p)]
    return likely + others
