"""Control module: intents, planner and the control loop"""

from .intents import (ControlMode, ControlIntent, JointTeachIntent, TaskControlIntent,
                      GripperOnlyIntent, ManualIntent)
from .planner import (MotionPlanner, PlannerConfig, JointTeachState, TaskControlState,
                      GripperOnlyState, ManualState)
from .loop import ControlLoop
from .manual import ManualJog

__all__ = [
    'ControlMode',
    'ControlIntent',
    'JointTeachIntent',
    'TaskControlIntent',
    'GripperOnlyIntent',
    'ManualIntent',
    'MotionPlanner',
    'PlannerConfig',
    'JointTeachState',
    'TaskControlState',
    'GripperOnlyState',
    'ManualState',
    'ControlLoop',
    'ManualJog'
]
