"""Kinematics and trajectory module"""

from .kinematics import (KinematicsSolver, LinkParameter, BranchPolicy,
                         normalize_angle, angle_difference)
from .limits import JointLimits
from .trajectory import (QuinticBlend, TrajectoryGenerator, TrajectoryPoint,
                         quintic_coefficients, evaluate)

__all__ = [
    'KinematicsSolver',
    'LinkParameter',
    'BranchPolicy',
    'normalize_angle',
    'angle_difference',
    'JointLimits',
    'QuinticBlend',
    'TrajectoryGenerator',
    'TrajectoryPoint',
    'quintic_coefficients',
    'evaluate'
]
