"""
Pytest Configuration and Fixtures
==================================

Shared fixtures: the default solver and planner, and scriptable serial
port doubles for transport tests.
"""

import logging
import logging.handlers
import sys
import time
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import colorama
import pytest
import serial

from armlink.config import Settings
from armlink.control import MotionPlanner, PlannerConfig
from armlink.hardware import SerialTransport, TransportConfig
from armlink.types import Pose
from armlink.utils import ColoredFormatter


# =============================================================================
# Serial Doubles
# =============================================================================

class FakeSerial:
    """Scriptable stand-in for an open serial.Serial"""

    def __init__(self, reply=b"ROBOT_READY\n", reply_delay=0.0):
        self.reply = reply
        self.reply_delay = reply_delay
        self.written = []
        self.incoming = bytearray()
        self.is_open = True
        self.timeout = None
        self.fail_write = False
        self.fail_read = False

    def reset_input_buffer(self):
        pass

    def reset_output_buffer(self):
        pass

    def write(self, data):
        if self.fail_write:
            raise serial.SerialException("write failed")
        self.written.append(bytes(data))
        return len(data)

    def readline(self):
        if self.reply_delay:
            time.sleep(self.reply_delay)
        return self.reply

    @property
    def in_waiting(self):
        if self.fail_read:
            raise serial.SerialException("read failed")
        return len(self.incoming)

    def read(self, size=1):
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        return chunk

    def feed(self, text):
        self.incoming += text.encode('ascii')

    def close(self):
        self.is_open = False


class FakeSerialFactory:
    """serial_factory replacement mapping port names to FakeSerial devices"""

    def __init__(self, devices):
        self.devices = devices
        self.opened = []

    def __call__(self, port=None, **kwargs):
        self.opened.append((port, kwargs))
        device = self.devices.get(port)
        if device is None:
            raise serial.SerialException(f"could not open port {port}")
        device.is_open = True
        return device

    def lister(self):
        return list(self.devices) + ["/dev/missing"]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings():
    """Default settings, never touching the user's settings file."""
    return Settings()


@pytest.fixture
def solver(settings):
    """Solver for the default arm with joint limits."""
    return settings.build_solver()


@pytest.fixture
def planner(solver):
    """Planner with a one second task-control blend."""
    return MotionPlanner(solver, PlannerConfig(dof=5, smoothing_duration=1.0))


@pytest.fixture
def level_target():
    """Reachable level-tool target in front of the arm."""
    return Pose(0.2, 0.0, 0.3)


@pytest.fixture
def make_device():
    return FakeSerial


@pytest.fixture
def make_factory():
    return FakeSerialFactory


@pytest.fixture
def fake_device():
    return FakeSerial()


@pytest.fixture
def transport_config():
    return TransportConfig(dof=5, reconnect_interval=0.05, join_timeout=1.0)


@pytest.fixture
def transport(fake_device, transport_config):
    """Transport whose only answering port is /dev/arm."""
    factory = FakeSerialFactory({"/dev/arm": fake_device})
    transport = SerialTransport(transport_config, serial_factory=factory,
                                port_lister=factory.lister)
    yield transport
    transport.disconnect()


@pytest.fixture
def restore_logging():
    """Drop the handlers setup_logging installs and restore the root level."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if isinstance(handler, logging.handlers.RotatingFileHandler) or \
                isinstance(handler.formatter, ColoredFormatter):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    colorama.deinit()


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Add custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
