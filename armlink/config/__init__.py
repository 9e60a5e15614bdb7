"""Configuration module for armlink"""

from .defaults import *
from .settings import Settings, SerialSettings, PlannerSettings, KinematicsSettings

__all__ = [
    'LINK_PARAMETERS', 'JOINT_NAMES', 'JOINT_LIMITS',
    'IK_DEFAULTS', 'PLANNER_DEFAULTS', 'GRIPPER_DEFAULTS',
    'SERIAL_DEFAULTS', 'PROTOCOL_DEFAULTS',
    'Settings', 'SerialSettings', 'PlannerSettings', 'KinematicsSettings'
]
