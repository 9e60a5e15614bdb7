"""
armlink - Motion control for a 5-joint serial arm
=================================================

Intent → kinematics → blended joint targets → wire protocol → hardware,
with hardware feedback seeding the next solve.
"""

__version__ = "1.0.0"
__author__ = "armlink Team"

# Convenience imports
from .types import GripperState, JointVector, Pose, DesiredOutput, ActualState
from .motion import KinematicsSolver
from .control import MotionPlanner, ControlLoop
from .hardware import SerialTransport

__all__ = [
    'GripperState',
    'JointVector',
    'Pose',
    'DesiredOutput',
    'ActualState',
    'KinematicsSolver',
    'MotionPlanner',
    'ControlLoop',
    'SerialTransport'
]
