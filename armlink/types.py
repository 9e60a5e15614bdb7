"""
Core value types shared by the motion pipeline
Joint vectors, gripper states, poses and the per-tick planner output
"""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, NamedTuple, Sequence

import numpy as np

from .exceptions import InvalidInputError

DEFAULT_DOF = 5

# Below this cos(pitch) the Z-Y-X decomposition is treated as gimbal locked
_GIMBAL_EPSILON = 1e-9


class GripperState(Enum):
    """Gripper command / feedback state"""
    OPEN = "open"
    CLOSE = "close"
    UNDETERMINED = "undetermined"  # mid-range feedback or no explicit command

    @property
    def is_determinate(self) -> bool:
        return self is not GripperState.UNDETERMINED


class JointVector(tuple):
    """
    Immutable joint angles in degrees, one per joint.

    The length is checked against ``dof`` on construction; a mismatch is a
    hard error, values are never truncated or padded.
    """

    def __new__(cls, angles: Iterable[float], dof: int = DEFAULT_DOF):
        try:
            values = tuple(float(a) for a in angles)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Joint angles must be numeric: {e}") from e

        if len(values) != dof:
            raise InvalidInputError(
                f"Expected {dof} joint angles, got {len(values)}"
            )
        if not all(math.isfinite(v) for v in values):
            raise InvalidInputError(f"Joint angles must be finite: {values}")

        return super().__new__(cls, values)

    def __getnewargs__(self):
        return (tuple(self), len(self))

    @classmethod
    def zeros(cls, dof: int = DEFAULT_DOF) -> "JointVector":
        return cls([0.0] * dof, dof)

    @property
    def dof(self) -> int:
        return len(self)

    def as_array(self) -> np.ndarray:
        """Copy of the angles as a float numpy array"""
        return np.array(self, dtype=float)

    def __repr__(self) -> str:
        return "JointVector(" + ", ".join(f"{v:.3f}" for v in self) + ")"


@dataclass(frozen=True)
class Pose:
    """
    End effector pose: position in metres, orientation in degrees.

    Orientation uses fixed-axis Z-Y-X angles, ``R = Rz(yaw) @ Ry(pitch) @ Rx(roll)``.
    The tool x axis is the approach direction, so a level tool has pitch 0
    and a positive pitch tips the tool downward.
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def rotation_matrix(self) -> np.ndarray:
        """3x3 rotation matrix of the orientation"""
        r, p, y = np.radians([self.roll, self.pitch, self.yaw])
        cr, sr = math.cos(r), math.sin(r)
        cp, sp = math.cos(p), math.sin(p)
        cy, sy = math.cos(y), math.sin(y)

        return np.array([
            [cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr],
            [sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr],
            [-sp,     cp * sr,                cp * cr],
        ])

    def transform(self) -> np.ndarray:
        """4x4 homogeneous transform"""
        matrix = np.eye(4)
        matrix[:3, :3] = self.rotation_matrix()
        matrix[:3, 3] = self.position
        return matrix

    def as_quaternion(self) -> np.ndarray:
        """Orientation as unit quaternion [w, x, y, z]"""
        return rotation_to_quaternion(self.rotation_matrix())

    @classmethod
    def from_matrix(cls, position: Sequence[float], rotation: np.ndarray) -> "Pose":
        """
        Build a pose from a position and a 3x3 rotation matrix.

        At pitch = ±90° roll and yaw are coupled; roll is then reported as 0
        and the whole rotation about z is carried by yaw, which rebuilds the
        same matrix.
        """
        R = np.asarray(rotation, dtype=float).reshape(3, 3)
        cos_pitch = math.hypot(R[0, 0], R[1, 0])
        pitch = math.atan2(-R[2, 0], cos_pitch)

        if cos_pitch > _GIMBAL_EPSILON:
            roll = math.atan2(R[2, 1], R[2, 2])
            yaw = math.atan2(R[1, 0], R[0, 0])
        else:
            roll = 0.0
            yaw = math.atan2(-R[0, 1], R[1, 1])

        x, y, z = (float(v) for v in position)
        return cls(x, y, z, math.degrees(roll), math.degrees(pitch), math.degrees(yaw))

    @classmethod
    def from_transform(cls, matrix: np.ndarray) -> "Pose":
        matrix = np.asarray(matrix, dtype=float).reshape(4, 4)
        return cls.from_matrix(matrix[:3, 3], matrix[:3, :3])

    @classmethod
    def from_quaternion(cls, position: Sequence[float], quaternion: Sequence[float]) -> "Pose":
        """Build a pose from a position and a [w, x, y, z] quaternion"""
        return cls.from_matrix(position, quaternion_to_rotation(quaternion))


def rotation_to_quaternion(rotation: np.ndarray) -> np.ndarray:
    """Convert a rotation matrix to a unit quaternion [w, x, y, z] with w >= 0"""
    R = np.asarray(rotation, dtype=float)
    trace = R[0, 0] + R[1, 1] + R[2, 2]

    if trace > 0:
        s = 2.0 * math.sqrt(trace + 1.0)
        q = np.array([
            0.25 * s,
            (R[2, 1] - R[1, 2]) / s,
            (R[0, 2] - R[2, 0]) / s,
            (R[1, 0] - R[0, 1]) / s,
        ])
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * math.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        q = np.array([
            (R[2, 1] - R[1, 2]) / s,
            0.25 * s,
            (R[0, 1] + R[1, 0]) / s,
            (R[0, 2] + R[2, 0]) / s,
        ])
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * math.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        q = np.array([
            (R[0, 2] - R[2, 0]) / s,
            (R[0, 1] + R[1, 0]) / s,
            0.25 * s,
            (R[1, 2] + R[2, 1]) / s,
        ])
    else:
        s = 2.0 * math.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        q = np.array([
            (R[1, 0] - R[0, 1]) / s,
            (R[0, 2] + R[2, 0]) / s,
            (R[1, 2] + R[2, 1]) / s,
            0.25 * s,
        ])

    q /= np.linalg.norm(q)
    if q[0] < 0:
        q = -q
    return q


def quaternion_to_rotation(quaternion: Sequence[float]) -> np.ndarray:
    """Convert a [w, x, y, z] quaternion (normalised here) to a rotation matrix"""
    q = np.asarray(quaternion, dtype=float)
    norm = np.linalg.norm(q)
    if q.shape != (4,) or norm == 0.0:
        raise InvalidInputError(f"Invalid quaternion: {quaternion}")

    w, x, y, z = q / norm
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - w * z),     2 * (x * z + w * y)],
        [2 * (x * y + w * z),     1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
        [2 * (x * z - w * y),     2 * (y * z + w * x),     1 - 2 * (x * x + y * y)],
    ])


class DesiredOutput(NamedTuple):
    """Per-tick planner result handed to the transport"""
    joints: JointVector
    gripper: GripperState


class ActualState(NamedTuple):
    """Decoded hardware feedback"""
    joints: JointVector
    gripper: GripperState
    timestamp: float


def now() -> float:
    """Wall clock timestamp used for intents and feedback"""
    return time.time()
