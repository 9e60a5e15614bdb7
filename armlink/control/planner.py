"""
Motion planner
Turns control intents into one desired joint vector and gripper command per tick
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Dict, Optional, Sequence, Union

from ..config import PLANNER_DEFAULTS
from ..exceptions import InvalidInputError
from ..motion import BranchPolicy, KinematicsSolver, QuinticBlend
from ..types import DEFAULT_DOF, DesiredOutput, GripperState, JointVector, Pose
from .intents import (ControlIntent, ControlMode, GripperOnlyIntent, JointTeachIntent,
                      ManualIntent, TaskControlIntent)

logger = logging.getLogger(__name__)


@dataclass
class PlannerConfig:
    """Planner parameters"""
    dof: int = DEFAULT_DOF
    smoothing_duration: float = PLANNER_DEFAULTS["smoothing_duration"]
    initial_gripper: GripperState = GripperState.CLOSE

    def __post_init__(self):
        if self.dof <= 0:
            raise InvalidInputError(f"dof must be positive, got {self.dof}")
        if self.smoothing_duration <= 0:
            raise InvalidInputError(
                f"smoothing_duration must be positive, got {self.smoothing_duration}")
        if not self.initial_gripper.is_determinate:
            raise InvalidInputError("initial_gripper must be OPEN or CLOSE")


# ==================== Mode States ====================

@dataclass(frozen=True)
class JointTeachState:
    joints: JointVector
    gripper: GripperState


@dataclass(frozen=True)
class TaskControlState:
    pose: Pose
    gripper: GripperState
    solution: Optional[JointVector]  # None = unreachable
    segment_start: float


@dataclass(frozen=True)
class GripperOnlyState:
    gripper: GripperState


@dataclass(frozen=True)
class ManualState:
    pose: Pose
    gripper: GripperState
    solution: Optional[JointVector]  # None = unreachable


ModeState = Union[JointTeachState, TaskControlState, GripperOnlyState, ManualState]


class MotionPlanner:
    """Control-mode state machine feeding the transport"""

    def __init__(self, solver: KinematicsSolver, config: Optional[PlannerConfig] = None):
        """
        Initialize planner

        Args:
            solver: Kinematics for task-space modes
            config: Planner parameters; dof must match the solver
        """
        self.config = config or PlannerConfig(dof=solver.dof)
        if self.config.dof != solver.dof:
            raise InvalidInputError(
                f"Planner dof {self.config.dof} does not match solver dof {solver.dof}")

        self.solver = solver
        self._lock = threading.Lock()

        self._active_mode: Optional[ControlMode] = None
        self._states: Dict[ControlMode, ModeState] = {}

        self._clock = 0.0
        self._actual_joints = JointVector.zeros(self.config.dof)
        self._actual_gripper = GripperState.UNDETERMINED
        self._held_gripper = self.config.initial_gripper

    # ==================== Properties ====================

    @property
    def active_mode(self) -> Optional[ControlMode]:
        return self._active_mode

    @property
    def actual_joints(self) -> JointVector:
        return self._actual_joints

    @property
    def actual_gripper(self) -> GripperState:
        return self._actual_gripper

    @property
    def held_gripper(self) -> GripperState:
        """Last determinate gripper reading, never UNDETERMINED"""
        return self._held_gripper

    @property
    def clock(self) -> float:
        """Planner time in seconds, advanced by compute_desired_output"""
        return self._clock

    def stored_state(self, mode: ControlMode) -> Optional[ModeState]:
        """Last accepted state for a mode, None if never commanded"""
        return self._states.get(mode)

    # ==================== Intents ====================

    def process_intent(self, intent: ControlIntent) -> bool:
        """
        Accept an intent and make its mode active

        Task control and manual intents are solved immediately against the
        current actual joints.

        Returns:
            True if accepted; False leaves all state unchanged
        """
        try:
            state = self._build_state(intent)
        except InvalidInputError as e:
            logger.error(f"❌ Rejected {type(intent).__name__}: {e}")
            return False

        with self._lock:
            self._states[intent.mode] = state
            self._active_mode = intent.mode

        logger.debug(f"Mode {intent.mode.value} active")
        return True

    def _build_state(self, intent: ControlIntent) -> ModeState:
        if isinstance(intent, JointTeachIntent):
            self._check_gripper(intent.gripper)
            return JointTeachState(JointVector(intent.joints, self.config.dof), intent.gripper)

        if isinstance(intent, TaskControlIntent):
            self._check_pose(intent.pose)
            self._check_gripper(intent.gripper)
            solution = self._solve(intent.pose, BranchPolicy.WEIGHTED)
            return TaskControlState(intent.pose, intent.gripper, solution, self._clock)

        if isinstance(intent, GripperOnlyIntent):
            self._check_gripper(intent.gripper)
            if not intent.gripper.is_determinate:
                raise InvalidInputError("Gripper-only target must be OPEN or CLOSE")
            return GripperOnlyState(intent.gripper)

        if isinstance(intent, ManualIntent):
            self._check_pose(intent.pose)
            self._check_gripper(intent.gripper)
            solution = self._solve(intent.pose, BranchPolicy.TRACKING)
            return ManualState(intent.pose, intent.gripper, solution)

        raise InvalidInputError(f"Unknown intent type {type(intent).__name__}")

    @staticmethod
    def _check_pose(pose):
        if not isinstance(pose, Pose):
            raise InvalidInputError(f"Expected Pose, got {type(pose).__name__}")

    @staticmethod
    def _check_gripper(gripper):
        if not isinstance(gripper, GripperState):
            raise InvalidInputError(f"Expected GripperState, got {gripper!r}")

    def _solve(self, pose: Pose, policy: BranchPolicy) -> Optional[JointVector]:
        solution = self.solver.solve_ik(pose, self._actual_joints, policy)
        if solution is not None:
            return solution

        where = f"({pose.x:.3f}, {pose.y:.3f}, {pose.z:.3f})"
        if policy is BranchPolicy.TRACKING and self.solver.is_reachable(pose, self._actual_joints):
            logger.warning(
                f"⚠️ Target {where} rejected: jump exceeds max_tracking_step "
                f"({self.solver.max_tracking_step:.1f}°) - holding position")
        else:
            logger.warning(f"⚠️ Target {where} unreachable - holding position")
        return None

    def select_mode(self, mode: ControlMode) -> bool:
        """
        Reactivate a previously commanded mode

        Task-space targets are re-solved from the current actual joints and
        the task control segment restarts now.

        Returns:
            False if the mode was never commanded
        """
        with self._lock:
            state = self._states.get(mode)
            if state is None:
                logger.error(f"❌ Mode {mode.value} has no stored target")
                return False

            if isinstance(state, TaskControlState):
                state = replace(state,
                                solution=self._solve(state.pose, BranchPolicy.WEIGHTED),
                                segment_start=self._clock)
            elif isinstance(state, ManualState):
                state = replace(state, solution=self._solve(state.pose, BranchPolicy.TRACKING))

            self._states[mode] = state
            self._active_mode = mode

        logger.info(f"Mode {mode.value} reselected")
        return True

    # ==================== Feedback ====================

    def update_actual_state(self, joints: Sequence[float], gripper: GripperState) -> bool:
        """
        Overwrite the cached hardware state

        Call before compute_desired_output in the same tick.

        Returns:
            False on invalid input, leaving the cache unchanged
        """
        try:
            actual = JointVector(joints, self.config.dof)
            self._check_gripper(gripper)
        except InvalidInputError as e:
            logger.error(f"❌ Rejected actual state: {e}")
            return False

        with self._lock:
            self._actual_joints = actual
            self._actual_gripper = gripper
            if gripper.is_determinate:
                self._held_gripper = gripper
        return True

    # ==================== Tick ====================

    def compute_desired_output(self, delta_time: float) -> DesiredOutput:
        """
        Advance the planner clock and compute this tick's output

        Args:
            delta_time: Seconds since the previous tick, must not be negative

        Returns:
            DesiredOutput for the transport
        """
        if delta_time < 0:
            raise InvalidInputError(f"delta_time must not be negative, got {delta_time}")

        with self._lock:
            self._clock += delta_time
            state = self._states.get(self._active_mode)

            if isinstance(state, JointTeachState):
                gripper = state.gripper if state.gripper.is_determinate else self._held_gripper
                return DesiredOutput(state.joints, gripper)

            if isinstance(state, TaskControlState):
                return DesiredOutput(self._blend(state), self._held_gripper)

            if isinstance(state, GripperOnlyState):
                return DesiredOutput(self._actual_joints, state.gripper)

            if isinstance(state, ManualState):
                joints = state.solution if state.solution is not None else self._actual_joints
                return DesiredOutput(joints, self._held_gripper)

            # No intent yet
            return DesiredOutput(self._actual_joints, self._held_gripper)

    def _blend(self, state: TaskControlState) -> JointVector:
        if state.solution is None:
            return self._actual_joints

        duration = self.config.smoothing_duration
        elapsed = self._clock - state.segment_start
        if elapsed >= duration:
            return state.solution

        return JointVector(
            [QuinticBlend(start, target, duration).evaluate(elapsed)
             for start, target in zip(self._actual_joints, state.solution)],
            self.config.dof,
        )
