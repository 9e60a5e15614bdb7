"""
Kinematics calculations for the 5-joint arm
Forward kinematics via chained DH transforms, closed-form inverse kinematics
with seed-based branch selection
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from ..config import IK_DEFAULTS, LINK_PARAMETERS
from ..exceptions import InvalidInputError
from ..types import JointVector, Pose
from .limits import JointLimits

logger = logging.getLogger(__name__)

# Tool frame expressed in the last DH frame: tool x is the chain's z axis
# (approach), tool z is the chain's x axis.
TOOL_ALIGNMENT = np.array([
    [0.0, 0.0, 1.0],
    [0.0, -1.0, 0.0],
    [1.0, 0.0, 0.0],
])

# alpha per joint for the yaw / pitch / pitch / pitch / roll chain
_SUPPORTED_TWISTS = (90.0, 0.0, 0.0, 90.0, 0.0)


def normalize_angle(angle: float) -> float:
    """Wrap an angle in degrees to (-180, 180]"""
    wrapped = math.fmod(angle + 180.0, 360.0)
    if wrapped <= 0.0:
        wrapped += 360.0
    return wrapped - 180.0


def angle_difference(a: float, b: float) -> float:
    """Shortest signed difference a - b in degrees, in (-180, 180]"""
    return normalize_angle(a - b)


@dataclass(frozen=True)
class LinkParameter:
    """
    DH parameters for a single link.

    Attributes:
        d: Offset along the previous z axis (m)
        a: Link length along the common normal (m)
        alpha: Link twist (deg)
        theta_offset: Constant added to the joint angle (deg)
    """
    d: float = 0.0
    a: float = 0.0
    alpha: float = 0.0
    theta_offset: float = 0.0

    def transform(self, angle: float) -> np.ndarray:
        """4x4 link transform for a joint angle in degrees"""
        theta = math.radians(angle + self.theta_offset)
        alpha = math.radians(self.alpha)
        ct, st = math.cos(theta), math.sin(theta)
        ca, sa = math.cos(alpha), math.sin(alpha)

        return np.array([
            [ct, -st * ca, st * sa, self.a * ct],
            [st, ct * ca, -ct * sa, self.a * st],
            [0.0, sa, ca, self.d],
            [0.0, 0.0, 0.0, 1.0],
        ])


class BranchPolicy(Enum):
    """How IK picks between candidate solutions"""
    WEIGHTED = "weighted"  # task control: proximal joints weighted heavier
    TRACKING = "tracking"  # manual: uniform squared cost, bounded jumps


class KinematicsSolver:
    """Forward and inverse kinematics for the base-yaw / 3-pitch / wrist-roll arm"""

    def __init__(self,
                 link_parameters: Optional[Sequence[LinkParameter]] = None,
                 joint_limits: Optional[JointLimits] = None,
                 cost_weight_step: float = IK_DEFAULTS["cost_weight_step"],
                 min_cost_weight: float = IK_DEFAULTS["min_cost_weight"],
                 reach_tolerance: float = IK_DEFAULTS["reach_tolerance"],
                 singularity_tolerance: float = IK_DEFAULTS["singularity_tolerance"],
                 max_tracking_step: float = IK_DEFAULTS["max_tracking_step"]):
        """
        Initialize solver

        Args:
            link_parameters: DH table, base first; defaults to the configured arm
            joint_limits: Candidates outside these limits are discarded
            cost_weight_step: Weight decrease per joint index in WEIGHTED cost
            min_cost_weight: Floor for the WEIGHTED cost weights
            reach_tolerance: Allowed excess of the elbow cosine beyond [-1, 1]
            singularity_tolerance: Distance (m) below which the target counts
                as on the base axis
            max_tracking_step: Largest single-joint jump (deg) TRACKING accepts
        """
        if link_parameters is None:
            link_parameters = [LinkParameter(**params) for params in LINK_PARAMETERS]

        self.links = tuple(link_parameters)
        self.dof = len(self.links)
        self._check_topology()

        if joint_limits is not None and len(joint_limits) != self.dof:
            raise InvalidInputError(
                f"{len(joint_limits)} joint limits for a {self.dof}-joint arm")
        if min_cost_weight <= 0:
            raise InvalidInputError("min_cost_weight must be positive")

        self.joint_limits = joint_limits
        self.reach_tolerance = reach_tolerance
        self.singularity_tolerance = singularity_tolerance
        self.max_tracking_step = max_tracking_step
        self.weights = np.array([
            max(min_cost_weight, 1.0 - i * cost_weight_step) for i in range(self.dof)
        ])

    def _check_topology(self):
        """The closed-form IK only covers the yaw/pitch/pitch/pitch/roll chain"""
        twists = tuple(round(link.alpha, 6) for link in self.links)
        if twists != _SUPPORTED_TWISTS:
            raise InvalidInputError(
                f"Unsupported link twists {twists}, expected {_SUPPORTED_TWISTS}")

        base, upper, fore, wrist, roll = self.links
        if upper.a <= 0 or fore.a <= 0:
            raise InvalidInputError("Upper arm and forearm lengths must be positive")
        if base.a != 0 or wrist.a != 0 or roll.a != 0 or any(
                link.d != 0 for link in (upper, fore, wrist)):
            raise InvalidInputError("Link offsets do not match the supported arm geometry")

    def _as_joints(self, joints: Sequence[float]) -> JointVector:
        if isinstance(joints, JointVector) and joints.dof == self.dof:
            return joints
        return JointVector(joints, self.dof)

    # ==================== Forward Kinematics ====================

    def link_transforms(self, joints: Sequence[float]) -> List[np.ndarray]:
        """
        Cumulative base-to-frame transforms, one per joint

        Args:
            joints: Joint angles in degrees

        Returns:
            List of 4x4 matrices, the last one being the flange frame
        """
        joints = self._as_joints(joints)
        frames = []
        frame = np.eye(4)

        for link, angle in zip(self.links, joints):
            frame = frame @ link.transform(angle)
            frames.append(frame)

        return frames

    def solve_fk(self, joints: Sequence[float]) -> Pose:
        """
        Calculate end effector pose from joint angles

        Args:
            joints: Joint angles in degrees

        Returns:
            Tool pose in the base frame
        """
        flange = self.link_transforms(joints)[-1]
        rotation = flange[:3, :3] @ TOOL_ALIGNMENT
        return Pose.from_matrix(flange[:3, 3], rotation)

    # ==================== Inverse Kinematics ====================

    def solve_ik(self, target: Pose, seed: Sequence[float],
                 policy: BranchPolicy = BranchPolicy.WEIGHTED) -> Optional[JointVector]:
        """
        Calculate joint angles for a target pose

        Args:
            target: Desired tool pose. Yaw is dictated by the position for a
                5-joint arm; only the in-plane approach elevation and the roll
                of the requested orientation are honoured.
            seed: Current joint angles, used for branch selection
            policy: Branch selection cost

        Returns:
            Closest candidate to the seed, or None if the target is unreachable
        """
        seed = self._as_joints(seed)
        candidates = self.candidates(target, seed)

        if not candidates:
            logger.debug(f"IK: no solution for {target}")
            return None

        return self.select_branch(candidates, seed, policy)

    def candidates(self, target: Pose, seed: Sequence[float]) -> List[JointVector]:
        """
        All closed-form solutions within joint limits

        Two base headings (facing the target and reaching over the top) times
        two elbow branches give at most four candidates.
        """
        seed = self._as_joints(seed)
        base_link, upper, fore, _, tool_link = self.links
        offsets = [link.theta_offset for link in self.links]

        height = base_link.d
        l1, l2 = upper.a, fore.a
        tool = tool_link.d

        position = target.position
        rotation = target.rotation_matrix()
        approach = rotation[:, 0]
        tool_z = rotation[:, 2]
        up = np.array([0.0, 0.0, 1.0])

        if math.hypot(position[0], position[1]) > self.singularity_tolerance:
            heading = math.atan2(position[1], position[0])
        elif math.hypot(approach[0], approach[1]) > self.singularity_tolerance:
            heading = math.atan2(approach[1], approach[0])
        else:
            # On the base axis with a vertical tool: keep the current base angle
            heading = math.radians(seed[0] + offsets[0])

        solutions: List[JointVector] = []

        for base in (heading, heading + math.pi):
            radial = np.array([math.cos(base), math.sin(base), 0.0])
            normal = np.array([math.sin(base), -math.cos(base), 0.0])

            # Arm-plane coordinates
            reach = float(position @ radial)
            elevation = math.atan2(float(approach @ up), float(approach @ radial))
            roll_reference = -math.sin(elevation) * radial + math.cos(elevation) * up
            roll = math.atan2(float(tool_z @ normal), float(tool_z @ roll_reference))

            # Wrist centre relative to the shoulder
            wrist_r = reach - tool * math.cos(elevation)
            wrist_z = position[2] - height - tool * math.sin(elevation)

            cos_elbow = (wrist_r ** 2 + wrist_z ** 2 - l1 ** 2 - l2 ** 2) / (2 * l1 * l2)
            if abs(cos_elbow) > 1.0 + self.reach_tolerance:
                logger.debug(f"IK: wrist centre out of reach (cos={cos_elbow:.4f})")
                continue
            cos_elbow = max(-1.0, min(1.0, cos_elbow))

            for sign in (1.0, -1.0):
                elbow = sign * math.acos(cos_elbow)
                shoulder = (math.atan2(wrist_z, wrist_r)
                            - math.atan2(l2 * math.sin(elbow), l1 + l2 * math.cos(elbow)))
                wrist = elevation + math.pi / 2 - shoulder - elbow

                dh_angles = (base, shoulder, elbow, wrist, roll)
                joints = JointVector(
                    [normalize_angle(math.degrees(theta) - offset)
                     for theta, offset in zip(dh_angles, offsets)],
                    self.dof,
                )

                if self.joint_limits is not None and not self.joint_limits.is_position_safe(joints):
                    logger.debug(f"IK: candidate {joints} outside joint limits")
                    continue
                if any(self._same_solution(joints, other) for other in solutions):
                    continue
                solutions.append(joints)

        return solutions

    @staticmethod
    def _same_solution(a: JointVector, b: JointVector, tolerance: float = 1e-9) -> bool:
        return all(abs(angle_difference(x, y)) <= tolerance for x, y in zip(a, b))

    def branch_cost(self, candidate: Sequence[float], seed: Sequence[float],
                    policy: BranchPolicy = BranchPolicy.WEIGHTED) -> float:
        """
        Displacement cost of a candidate relative to the seed

        Differences are taken along the shortest circular path, so wrap-around
        never inflates the cost. TRACKING returns inf for candidates needing a
        single-joint jump above max_tracking_step.
        """
        diffs = np.array([angle_difference(c, s) for c, s in zip(candidate, seed)])

        if policy is BranchPolicy.WEIGHTED:
            return float(np.abs(diffs) @ self.weights)

        if np.max(np.abs(diffs)) > self.max_tracking_step:
            return math.inf
        return float(np.sum(diffs ** 2))

    def select_branch(self, candidates: Sequence[JointVector], seed: Sequence[float],
                      policy: BranchPolicy = BranchPolicy.WEIGHTED) -> Optional[JointVector]:
        """Lowest-cost candidate, None if every candidate is rejected"""
        best, best_cost = None, math.inf

        for candidate in candidates:
            cost = self.branch_cost(candidate, seed, policy)
            if cost < best_cost:
                best, best_cost = candidate, cost

        if best is None:
            logger.debug(f"IK: all {len(candidates)} candidates rejected by {policy.value} policy")
        return best

    def is_reachable(self, target: Pose, seed: Optional[Sequence[float]] = None) -> bool:
        """Check if any IK candidate exists for the target"""
        if seed is None:
            seed = JointVector.zeros(self.dof)
        return bool(self.candidates(target, seed))
