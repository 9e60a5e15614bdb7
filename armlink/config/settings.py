"""
Runtime settings management
Handles loading/saving the YAML configuration and building the core objects from it
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dataclasses_json import dataclass_json

from ..exceptions import InvalidInputError
from .defaults import (GRIPPER_DEFAULTS, IK_DEFAULTS, JOINT_LIMITS, JOINT_NAMES,
                       LINK_PARAMETERS, PLANNER_DEFAULTS, PROTOCOL_DEFAULTS,
                       SERIAL_DEFAULTS)

logger = logging.getLogger(__name__)


@dataclass_json
@dataclass
class SerialSettings:
    """Serial link and wire protocol settings"""
    port: Optional[str] = None  # None = probe every port
    baudrate: int = SERIAL_DEFAULTS["baudrate"]
    read_timeout: float = SERIAL_DEFAULTS["read_timeout"]
    write_timeout: float = SERIAL_DEFAULTS["write_timeout"]
    handshake_timeout: float = SERIAL_DEFAULTS["handshake_timeout"]
    receive_timeout: float = SERIAL_DEFAULTS["receive_timeout"]
    reconnect_interval: float = SERIAL_DEFAULTS["reconnect_interval"]
    join_timeout: float = SERIAL_DEFAULTS["join_timeout"]
    queue_size: int = SERIAL_DEFAULTS["queue_size"]

    handshake_command: str = PROTOCOL_DEFAULTS["handshake_command"]
    handshake_response: str = PROTOCOL_DEFAULTS["handshake_response"]
    feedback_gripper_field: bool = PROTOCOL_DEFAULTS["feedback_gripper_field"]

    gripper_open_angle: float = GRIPPER_DEFAULTS["open_angle"]
    gripper_close_angle: float = GRIPPER_DEFAULTS["close_angle"]
    gripper_close_threshold: float = GRIPPER_DEFAULTS["close_threshold"]
    gripper_open_threshold: float = GRIPPER_DEFAULTS["open_threshold"]


@dataclass_json
@dataclass
class PlannerSettings:
    """Motion planner settings"""
    smoothing_duration: float = PLANNER_DEFAULTS["smoothing_duration"]
    initial_gripper: str = PLANNER_DEFAULTS["initial_gripper"]
    tick_rate: float = PLANNER_DEFAULTS["tick_rate"]


@dataclass_json
@dataclass
class KinematicsSettings:
    """Arm geometry and IK branch selection"""
    dof: int = len(LINK_PARAMETERS)
    link_parameters: List[Dict[str, float]] = field(
        default_factory=lambda: copy.deepcopy(LINK_PARAMETERS))
    joint_limits: List[List[float]] = field(
        default_factory=lambda: [list(JOINT_LIMITS[name]) for name in JOINT_NAMES])
    cost_weight_step: float = IK_DEFAULTS["cost_weight_step"]
    min_cost_weight: float = IK_DEFAULTS["min_cost_weight"]
    reach_tolerance: float = IK_DEFAULTS["reach_tolerance"]
    singularity_tolerance: float = IK_DEFAULTS["singularity_tolerance"]
    max_tracking_step: float = IK_DEFAULTS["max_tracking_step"]


@dataclass_json
@dataclass
class Settings:
    """Runtime settings that can be modified by user"""

    serial: SerialSettings = field(default_factory=SerialSettings)
    planner: PlannerSettings = field(default_factory=PlannerSettings)
    kinematics: KinematicsSettings = field(default_factory=KinematicsSettings)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    auto_connect: bool = True

    @classmethod
    def load(cls, filepath: str = None) -> "Settings":
        """
        Load settings from YAML file.

        A missing file yields defaults. An unreadable or malformed file is
        logged and also yields defaults; invalid values raise InvalidInputError.
        """
        if filepath is None:
            filepath = cls._get_default_path()

        settings = cls()
        if os.path.exists(filepath):
            try:
                with open(filepath, 'r') as f:
                    data = yaml.safe_load(f) or {}
                settings = cls.from_dict(data, infer_missing=True)
                logger.debug(f"Settings loaded from {filepath}")
            except (OSError, yaml.YAMLError, TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Could not load settings from {filepath}: {e}")
                settings = cls()
            except ValueError as e:
                raise InvalidInputError(f"Invalid value in {filepath}: {e}") from e

        settings.validate()
        return settings

    def save(self, filepath: str = None):
        """Save settings to YAML file"""
        if filepath is None:
            filepath = self._get_default_path()

        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filepath, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Settings saved to {filepath}")

    @staticmethod
    def _get_default_path() -> str:
        """Get default settings path"""
        home = Path.home()
        return str(home / ".armlink" / "settings.yaml")

    def reset_to_defaults(self):
        """Reset all settings to defaults"""
        default = Settings()
        for name in default.__dataclass_fields__:
            setattr(self, name, getattr(default, name))

    def validate(self):
        """Raise InvalidInputError on values the core cannot run with"""
        kin = self.kinematics
        if len(kin.link_parameters) != kin.dof:
            raise InvalidInputError(
                f"dof={kin.dof} but {len(kin.link_parameters)} link parameters configured")
        if len(kin.joint_limits) != kin.dof:
            raise InvalidInputError(
                f"dof={kin.dof} but {len(kin.joint_limits)} joint limits configured")
        for i, (lower, upper) in enumerate(kin.joint_limits):
            if lower >= upper:
                raise InvalidInputError(f"Joint {i + 1}: lower limit {lower} >= upper {upper}")

        positive = {
            "planner.smoothing_duration": self.planner.smoothing_duration,
            "planner.tick_rate": self.planner.tick_rate,
            "serial.baudrate": self.serial.baudrate,
            "serial.reconnect_interval": self.serial.reconnect_interval,
            "serial.receive_timeout": self.serial.receive_timeout,
            "serial.handshake_timeout": self.serial.handshake_timeout,
            "serial.queue_size": self.serial.queue_size,
        }
        for name, value in positive.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise InvalidInputError(f"{name} must be a positive number, got {value!r}")

        if self.serial.gripper_close_threshold >= self.serial.gripper_open_threshold:
            raise InvalidInputError("gripper_close_threshold must be below gripper_open_threshold")

        if self.planner.initial_gripper.lower() not in ("open", "close"):
            raise InvalidInputError(
                f"planner.initial_gripper must be 'open' or 'close', got {self.planner.initial_gripper!r}")

    # ==================== Builders ====================

    def build_solver(self):
        """KinematicsSolver for the configured geometry"""
        from ..motion import KinematicsSolver, LinkParameter, JointLimits

        kin = self.kinematics
        links = [LinkParameter(**params) for params in kin.link_parameters]
        limits = JointLimits([tuple(limit) for limit in kin.joint_limits])
        return KinematicsSolver(
            links,
            joint_limits=limits,
            cost_weight_step=kin.cost_weight_step,
            min_cost_weight=kin.min_cost_weight,
            reach_tolerance=kin.reach_tolerance,
            singularity_tolerance=kin.singularity_tolerance,
            max_tracking_step=kin.max_tracking_step,
        )

    def planner_config(self):
        """PlannerConfig for the MotionPlanner"""
        from ..control.planner import PlannerConfig
        from ..types import GripperState

        return PlannerConfig(
            dof=self.kinematics.dof,
            smoothing_duration=self.planner.smoothing_duration,
            initial_gripper=GripperState(self.planner.initial_gripper.lower()),
        )

    def transport_config(self):
        """TransportConfig for the SerialTransport"""
        from ..hardware.serial_transport import TransportConfig

        s = self.serial
        return TransportConfig(
            dof=self.kinematics.dof,
            port=s.port,
            baudrate=s.baudrate,
            read_timeout=s.read_timeout,
            write_timeout=s.write_timeout,
            handshake_timeout=s.handshake_timeout,
            receive_timeout=s.receive_timeout,
            reconnect_interval=s.reconnect_interval,
            join_timeout=s.join_timeout,
            queue_size=s.queue_size,
            handshake_command=s.handshake_command,
            handshake_response=s.handshake_response,
            feedback_gripper_field=s.feedback_gripper_field,
            gripper_open_angle=s.gripper_open_angle,
            gripper_close_angle=s.gripper_close_angle,
            gripper_close_threshold=s.gripper_close_threshold,
            gripper_open_threshold=s.gripper_open_threshold,
        )
