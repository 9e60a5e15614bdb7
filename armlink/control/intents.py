"""
Control intents
One frozen dataclass per control mode; the planner dispatches on the type
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence, Union

from ..types import GripperState, Pose, now


class ControlMode(Enum):
    """Planner control modes"""
    JOINT_TEACH = "joint_teach"
    TASK_CONTROL = "task_control"
    GRIPPER_ONLY = "gripper_only"
    MANUAL = "manual"


@dataclass(frozen=True)
class JointTeachIntent:
    """Play back recorded joint angles verbatim"""
    joints: Sequence[float]
    gripper: GripperState = GripperState.UNDETERMINED
    timestamp: float = field(default_factory=now)

    @property
    def mode(self) -> ControlMode:
        return ControlMode.JOINT_TEACH


@dataclass(frozen=True)
class TaskControlIntent:
    """Move the tool to a pose with a smooth blend"""
    pose: Pose
    gripper: GripperState = GripperState.UNDETERMINED
    timestamp: float = field(default_factory=now)

    @property
    def mode(self) -> ControlMode:
        return ControlMode.TASK_CONTROL


@dataclass(frozen=True)
class GripperOnlyIntent:
    """Actuate the gripper, joints follow the hardware"""
    gripper: GripperState
    timestamp: float = field(default_factory=now)

    @property
    def mode(self) -> ControlMode:
        return ControlMode.GRIPPER_ONLY


@dataclass(frozen=True)
class ManualIntent:
    """Track an operator-driven pose directly"""
    pose: Pose
    gripper: GripperState = GripperState.UNDETERMINED
    timestamp: float = field(default_factory=now)

    @property
    def mode(self) -> ControlMode:
        return ControlMode.MANUAL


ControlIntent = Union[JointTeachIntent, TaskControlIntent, GripperOnlyIntent, ManualIntent]
