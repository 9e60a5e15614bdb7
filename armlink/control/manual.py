"""
Manual jogging
Turns incremental operator nudges into manual-mode intents
"""

import logging
from dataclasses import replace
from typing import Optional

from ..exceptions import InvalidInputError
from ..types import GripperState, Pose
from .intents import ManualIntent

logger = logging.getLogger(__name__)

LINEAR_AXES = ("x", "y", "z")
ANGULAR_AXES = ("pitch", "roll")


class ManualJog:
    """Incremental pose jogging for manual mode"""

    def __init__(self, start_pose: Pose, linear_step: float = 0.005, angular_step: float = 2.0):
        """
        Initialize jogging
        Args:
            start_pose: Pose to jog from, usually FK of the current joints
            linear_step: Metres per nudge
            angular_step: Degrees per nudge
        """
        if linear_step <= 0 or angular_step <= 0:
            raise InvalidInputError("Jog steps must be positive")

        self._pose = start_pose
        self.linear_step = linear_step
        self.angular_step = angular_step
        self.gripper = GripperState.UNDETERMINED

        # Key mappings
        self.key_map = {
            'a': ('x', 1),       # Forward
            'z': ('x', -1),      # Back
            's': ('y', 1),       # Left
            'x': ('y', -1),      # Right
            'd': ('z', 1),       # Up
            'c': ('z', -1),      # Down
            'f': ('pitch', 1),   # Tip down
            'v': ('pitch', -1),  # Tip up
            'g': ('roll', 1),    # Roll left
            'b': ('roll', -1),   # Roll right
        }

    @property
    def pose(self) -> Pose:
        return self._pose

    def reset(self, pose: Pose):
        """Restart jogging from a new pose"""
        self._pose = pose

    def jog(self, axis: str, direction: float = 1) -> ManualIntent:
        """
        Nudge one axis

        Args:
            axis: One of x, y, z, pitch, roll
            direction: Multiplier of the step, sign gives the direction

        Returns:
            ManualIntent for the jogged pose
        """
        if axis in LINEAR_AXES:
            delta = self.linear_step * direction
        elif axis in ANGULAR_AXES:
            delta = self.angular_step * direction
        else:
            raise InvalidInputError(f"Unknown jog axis: {axis}")

        self._pose = replace(self._pose, **{axis: getattr(self._pose, axis) + delta})
        logger.debug(f"Jog {axis} {delta:+.3f} -> {self._pose}")
        return self.intent()

    def handle_key(self, key: str) -> Optional[ManualIntent]:
        """Map a key press to a jog, None for unmapped keys"""
        mapping = self.key_map.get(key.lower())
        if mapping is None:
            return None
        axis, direction = mapping
        return self.jog(axis, direction)

    def set_gripper(self, state: GripperState) -> ManualIntent:
        self.gripper = state
        return self.intent()

    def intent(self) -> ManualIntent:
        """Intent for the current pose and gripper"""
        return ManualIntent(self._pose, self.gripper)
