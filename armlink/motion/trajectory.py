"""
Quintic joint-space blending
Zero velocity and acceleration at both ends of every segment
"""

import numpy as np
from typing import List, Optional, Sequence
from dataclasses import dataclass, field

from ..exceptions import InvalidInputError
from ..types import JointVector


def _coefficient_array(q0: float, qf: float, duration: float) -> np.ndarray:
    if duration <= 0:
        raise InvalidInputError(f"Blend duration must be positive, got {duration}")

    delta = qf - q0
    return np.array([
        q0,
        0.0,
        0.0,
        10.0 * delta / duration ** 3,
        -15.0 * delta / duration ** 4,
        6.0 * delta / duration ** 5,
    ])


def _polyval(coefficients: Sequence[float], t: float) -> float:
    a0, a1, a2, a3, a4, a5 = coefficients
    return float(a0 + t * (a1 + t * (a2 + t * (a3 + t * (a4 + t * a5)))))


def quintic_coefficients(q0: float, qf: float, duration: float) -> "QuinticBlend":
    """
    Rest-to-rest quintic from q0 to qf

    Args:
        q0: Start angle
        qf: Target angle
        duration: Segment length in seconds, must be positive

    Returns:
        QuinticBlend whose coefficients are [a0, a1, a2, a3, a4, a5]; it keeps
        the endpoints so evaluation past the duration is exactly qf
    """
    return QuinticBlend(q0, qf, duration)


def evaluate(coefficients: "QuinticBlend", t: float) -> float:
    """Position of a quintic segment at t, clamped to [0, duration]"""
    return coefficients.evaluate(t)


@dataclass(frozen=True)
class QuinticBlend:
    """Single-joint quintic segment"""
    q0: float
    qf: float
    duration: float
    coefficients: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "coefficients",
                           _coefficient_array(self.q0, self.qf, self.duration))

    def evaluate(self, t: float) -> float:
        # Exact endpoints, no polynomial round-off
        if t <= 0.0:
            return self.q0
        if t >= self.duration:
            return self.qf
        return _polyval(self.coefficients, t)

    def velocity(self, t: float) -> float:
        t = min(max(t, 0.0), self.duration)
        _, a1, a2, a3, a4, a5 = self.coefficients
        return float(a1 + 2 * a2 * t + 3 * a3 * t ** 2 + 4 * a4 * t ** 3 + 5 * a5 * t ** 4)

    def acceleration(self, t: float) -> float:
        t = min(max(t, 0.0), self.duration)
        _, _, a2, a3, a4, a5 = self.coefficients
        return float(2 * a2 + 6 * a3 * t + 12 * a4 * t ** 2 + 20 * a5 * t ** 3)


@dataclass
class TrajectoryPoint:
    """Single point in a trajectory"""
    positions: JointVector  # Joint positions in degrees
    velocities: Optional[List[float]] = None  # deg/s
    time: float = 0.0  # Time from start in seconds


class TrajectoryGenerator:
    """Sample quintic joint-space trajectories at a fixed rate"""

    def __init__(self, sample_rate: float = 50):
        """
        Initialize trajectory generator
        Args:
            sample_rate: Points per second (Hz)
        """
        if sample_rate <= 0:
            raise InvalidInputError(f"Sample rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate

    def generate(self,
                 start_pos: Sequence[float],
                 end_pos: Sequence[float],
                 duration: float,
                 speed_factor: float = 1.0) -> List[TrajectoryPoint]:
        """
        Generate trajectory between two joint positions

        Args:
            start_pos: Starting joint angles
            end_pos: Target joint angles
            duration: Movement duration in seconds at speed_factor 1.0
            speed_factor: >1 is faster, <1 slower

        Returns:
            List of trajectory points, the last one exactly at end_pos
        """
        if speed_factor <= 0:
            raise InvalidInputError(f"Speed factor must be positive, got {speed_factor}")

        start = JointVector(start_pos, len(start_pos))
        end = JointVector(end_pos, len(start))
        duration = duration / speed_factor

        blends = [QuinticBlend(q0, qf, duration) for q0, qf in zip(start, end)]

        # Calculate number of points
        num_points = max(int(round(duration * self.sample_rate)) + 1, 2)
        time_vec = np.linspace(0.0, duration, num_points)

        points = []
        for t in time_vec:
            points.append(TrajectoryPoint(
                positions=JointVector([blend.evaluate(t) for blend in blends], len(start)),
                velocities=[blend.velocity(t) for blend in blends],
                time=float(t),
            ))

        return points

    def interpolate_waypoints(self,
                              waypoints: Sequence[Sequence[float]],
                              durations: Sequence[float]) -> List[TrajectoryPoint]:
        """
        Generate trajectory through multiple waypoints

        Each segment is an independent rest-to-rest quintic.

        Args:
            waypoints: List of joint positions
            durations: Time between waypoints

        Returns:
            Complete trajectory through all waypoints
        """
        if len(waypoints) < 2:
            raise InvalidInputError("Need at least 2 waypoints")

        if len(durations) != len(waypoints) - 1:
            raise InvalidInputError("Number of durations must be len(waypoints) - 1")

        complete_trajectory = []

        for i in range(len(waypoints) - 1):
            segment = self.generate(waypoints[i], waypoints[i + 1], durations[i])

            # Adjust time stamps
            if complete_trajectory:
                time_offset = complete_trajectory[-1].time
                for point in segment[1:]:  # Skip first point (duplicate)
                    point.time += time_offset
                    complete_trajectory.append(point)
            else:
                complete_trajectory.extend(segment)

        return complete_trajectory
