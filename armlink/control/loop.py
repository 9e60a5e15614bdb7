"""
Control loop
Feedback in, planner tick, command out
"""

import logging
import threading
import time
from typing import Optional

from ..exceptions import InvalidInputError
from ..hardware.serial_transport import SerialTransport
from ..types import DesiredOutput
from .intents import ControlIntent
from .planner import MotionPlanner

logger = logging.getLogger(__name__)


class ControlLoop:
    """Explicit planner → transport pipeline, one tick at a time"""

    def __init__(self, planner: MotionPlanner, transport: SerialTransport):
        if planner.config.dof != transport.config.dof:
            raise InvalidInputError(
                f"Planner dof {planner.config.dof} does not match transport dof {transport.config.dof}")
        self.planner = planner
        self.transport = transport
        self.ticks = 0

    def submit(self, intent: ControlIntent) -> bool:
        """Forward an intent to the planner"""
        return self.planner.process_intent(intent)

    def tick(self, delta_time: float) -> DesiredOutput:
        """
        Run one control cycle

        All feedback received since the last tick is applied in arrival
        order before the desired output is computed and sent.
        """
        for state in self.transport.drain_actual_states():
            self.planner.update_actual_state(state.joints, state.gripper)

        desired = self.planner.compute_desired_output(delta_time)
        self.transport.send(desired.joints, desired.gripper)
        self.ticks += 1
        return desired

    def run(self, period: float, stop_event: Optional[threading.Event] = None,
            duration: Optional[float] = None):
        """
        Tick at a fixed period until stopped

        Args:
            period: Seconds between ticks
            stop_event: Ends the loop when set
            duration: Optional run time limit in seconds
        """
        if period <= 0:
            raise InvalidInputError(f"Tick period must be positive, got {period}")

        stop_event = stop_event or threading.Event()
        start = last = time.monotonic()
        next_tick = start
        logger.info(f"▶️ Control loop running at {1.0 / period:.1f} Hz")

        while not stop_event.is_set():
            current = time.monotonic()
            if duration is not None and current - start >= duration:
                break

            self.tick(current - last)
            last = current

            next_tick += period
            delay = next_tick - time.monotonic()
            if delay > 0:
                stop_event.wait(delay)
            else:
                # Overran, don't try to catch up
                next_tick = time.monotonic()

        logger.info(f"Control loop stopped after {self.ticks} ticks")
