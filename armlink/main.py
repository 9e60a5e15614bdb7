#!/usr/bin/env python3
"""
armlink - Main Entry Point
Runs the control loop against a serial arm controller or the simulator
"""

import sys
import argparse
import functools
import logging
import threading

from armlink import __version__
from armlink.config import Settings
from armlink.control import ControlLoop, MotionPlanner, TaskControlIntent
from armlink.exceptions import ArmlinkError, TransportError
from armlink.hardware import MockArmSerial, SerialTransport, list_available_ports
from armlink.types import Pose
from armlink.utils import setup_logging

logger = logging.getLogger("armlink")

SIMULATED_PORT = "sim://arm"


def list_ports_command():
    """List available serial ports"""
    print("📋 Available Serial Ports:")
    print("-" * 50)

    ports = list_available_ports()

    if not ports:
        print("❌ No serial ports found!")
        print("\nPossible issues:")
        print("  - No USB devices connected")
        print("  - Missing USB drivers")
        print("  - Permission issues")
        return

    for port in ports:
        print(f"\n📍 {port['device']}")
        print(f"   Description: {port['description']}")
        print(f"   Hardware ID: {port['hwid']}")
        if port['is_usb']:
            print("   ✅ USB Device")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f'armlink v{__version__} - 5-joint arm motion control',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  armlink --list-ports                      # Show available ports
  armlink --simulate --target 0.2 0 0.3     # Move the simulated arm
  armlink --port /dev/ttyUSB0 --duration 5  # Hold position for 5 s
        """
    )

    parser.add_argument('--version', action='version', version=f'armlink v{__version__}')
    parser.add_argument('--config', '-c', default=None,
                        help='Settings file (default: ~/.armlink/settings.yaml)')
    parser.add_argument('--port', '-p', default=None,
                        help='Serial port (probe all ports if not specified)')
    parser.add_argument('--list-ports', '-l', action='store_true',
                        help='List available serial ports and exit')
    parser.add_argument('--simulate', '-s', action='store_true',
                        help='Use the built-in simulated controller')
    parser.add_argument('--rate', type=float, default=None,
                        help='Control loop rate in Hz (default from settings)')
    parser.add_argument('--duration', type=float, default=None,
                        help='Stop after this many seconds')
    parser.add_argument('--target', nargs=3, type=float, metavar=('X', 'Y', 'Z'),
                        help='Task-control target position in metres')
    parser.add_argument('--pitch', type=float, default=0.0,
                        help='Target tool pitch in degrees, 0 = level (default: 0)')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default=None, help='Set logging level (default from settings)')
    return parser


def build_transport(settings: Settings, simulate: bool) -> SerialTransport:
    config = settings.transport_config()
    if not simulate:
        return SerialTransport(config)

    config.port = SIMULATED_PORT
    factory = functools.partial(MockArmSerial, dof=config.dof,
                                feedback_gripper_field=config.feedback_gripper_field)
    return SerialTransport(config, serial_factory=factory, port_lister=lambda: [SIMULATED_PORT])


def run(args) -> int:
    settings = Settings.load(args.config)
    if not args.debug and args.log_level is None:
        setup_logging(settings.log_level, settings.log_file)
    elif settings.log_file:
        setup_logging('DEBUG' if args.debug else args.log_level, settings.log_file)

    if args.port:
        settings.serial.port = args.port

    solver = settings.build_solver()
    planner = MotionPlanner(solver, settings.planner_config())
    transport = build_transport(settings, args.simulate)
    loop = ControlLoop(planner, transport)

    rate = args.rate or settings.planner.tick_rate
    if rate <= 0:
        logger.error(f"❌ Invalid rate: {rate}")
        return 1

    try:
        if not transport.connect():
            if not settings.auto_connect:
                transport.require_connected()
            logger.warning(
                f"⚠️ No controller found - retrying every {settings.serial.reconnect_interval}s")
            transport.start()

        if args.target:
            pose = Pose(*args.target, pitch=args.pitch)
            if not solver.is_reachable(pose):
                logger.warning(f"⚠️ Target {tuple(args.target)} is outside the workspace")
            loop.submit(TaskControlIntent(pose))

        loop.run(1.0 / rate, threading.Event(), duration=args.duration)
        logger.info(f"Final actual joints: {planner.actual_joints}")
    finally:
        transport.disconnect()

    return 0


def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)

    level = 'DEBUG' if args.debug else (args.log_level or 'INFO')
    setup_logging(level)

    # Handle list ports command
    if args.list_ports:
        list_ports_command()
        return 0

    try:
        return run(args)
    except KeyboardInterrupt:
        print("\n\n👋 Interrupted by user")
        return 0
    except TransportError as e:
        logger.error(f"❌ {e}")
        return 1
    except ArmlinkError as e:
        logger.error(f"Fatal error: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
