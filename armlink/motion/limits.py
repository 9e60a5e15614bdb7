"""
Joint limits validation and clamping
Keeps IK candidates and commanded angles within the physical joint ranges
"""

import logging
from typing import Optional, Sequence, Tuple

from ..config import JOINT_LIMITS, JOINT_NAMES
from ..exceptions import InvalidInputError
from ..types import JointVector

logger = logging.getLogger(__name__)


class JointLimits:
    """Manage and validate joint limits (degrees), indexed base to wrist"""

    def __init__(self, limits: Optional[Sequence[Tuple[float, float]]] = None):
        """
        Initialize joint limits
        Args:
            limits: (lower, upper) per joint; defaults to the configured table
        """
        if limits is None:
            limits = [JOINT_LIMITS[name] for name in JOINT_NAMES]

        self._limits = tuple((float(lower), float(upper)) for lower, upper in limits)
        for i, (lower, upper) in enumerate(self._limits):
            if lower >= upper:
                raise InvalidInputError(f"Joint {i + 1}: lower limit {lower} >= upper {upper}")

    def __len__(self) -> int:
        return len(self._limits)

    def get_limits(self, joint: int) -> Tuple[float, float]:
        """Get limits for a joint index"""
        return self._limits[joint]

    def _check_length(self, joints: Sequence[float]):
        if len(joints) != len(self._limits):
            raise InvalidInputError(
                f"Expected {len(self._limits)} joint angles, got {len(joints)}")

    def is_position_safe(self, joints: Sequence[float], margin: float = 1e-9) -> bool:
        """
        Check if all joint angles are within their limits

        Args:
            joints: Joint angles in degrees
            margin: Numeric slack on both ends

        Returns:
            True if every joint is inside its range
        """
        self._check_length(joints)
        return all(
            lower - margin <= value <= upper + margin
            for value, (lower, upper) in zip(joints, self._limits)
        )

    def clamp(self, joints: Sequence[float]) -> JointVector:
        """
        Clamp joint angles to their limits

        Args:
            joints: Joint angles in degrees

        Returns:
            Clamped JointVector
        """
        self._check_length(joints)
        clamped = []

        for i, (value, (lower, upper)) in enumerate(zip(joints, self._limits)):
            if value < lower or value > upper:
                limited = max(lower, min(upper, value))
                logger.warning(
                    f"⚠️ J{i + 1}={value:.1f}° clamped to {limited:.1f}° "
                    f"(limits: {lower:.1f}° to {upper:.1f}°)"
                )
                clamped.append(limited)
            else:
                clamped.append(value)

        return JointVector(clamped, len(self._limits))
