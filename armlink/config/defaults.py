"""
Default configuration values for armlink
Arm geometry, joint limits, serial link, wire protocol and planner parameters
"""

# ==================== GEOMETRY ====================

# Denavit-Hartenberg table, one entry per joint (base to wrist roll).
# d and a in metres, alpha and theta_offset in degrees.
# All-zero joint angles put the arm in the upright "candle" pose.
LINK_PARAMETERS = [
    {"d": 0.10, "a": 0.0,  "alpha": 90.0, "theta_offset": 0.0},   # base yaw
    {"d": 0.0,  "a": 0.15, "alpha": 0.0,  "theta_offset": 90.0},  # shoulder
    {"d": 0.0,  "a": 0.15, "alpha": 0.0,  "theta_offset": 0.0},   # elbow
    {"d": 0.0,  "a": 0.0,  "alpha": 90.0, "theta_offset": 90.0},  # wrist pitch
    {"d": 0.08, "a": 0.0,  "alpha": 0.0,  "theta_offset": 0.0},   # wrist roll / tool
]

JOINT_NAMES = ["base", "shoulder", "elbow", "wrist_pitch", "wrist_roll"]

# ==================== HARDWARE LIMITS ====================

# Joint limits in degrees
JOINT_LIMITS = {
    "base": (-180.0, 180.0),
    "shoulder": (-120.0, 120.0),
    "elbow": (-150.0, 150.0),
    "wrist_pitch": (-120.0, 120.0),
    "wrist_roll": (-180.0, 180.0),
}

# ==================== KINEMATICS ====================

IK_DEFAULTS = {
    "cost_weight_step": 0.2,      # weight drop per joint away from the base
    "min_cost_weight": 0.1,       # floor for distal joints
    "reach_tolerance": 1e-6,      # law-of-cosines slack before "unreachable"
    "singularity_tolerance": 1e-6,
    "max_tracking_step": 30.0,    # deg, largest jump accepted in manual tracking
}

# ==================== MOTION ====================

PLANNER_DEFAULTS = {
    "smoothing_duration": 1.0,    # s, task control quintic blend
    "initial_gripper": "close",
    "tick_rate": 50.0,            # Hz
}

# ==================== GRIPPER ====================

# Gripper actuator angles (degrees) and feedback thresholds
GRIPPER_DEFAULTS = {
    "open_angle": 90.0,
    "close_angle": 0.0,
    "close_threshold": 30.0,      # feedback <= this reads as closed
    "open_threshold": 60.0,       # feedback >= this reads as open
}

# ==================== COMMUNICATION ====================

SERIAL_DEFAULTS = {
    "baudrate": 115200,
    "read_timeout": 0.05,
    "write_timeout": 0.5,
    "handshake_timeout": 0.5,
    "receive_timeout": 0.2,       # stale partial packet window
    "reconnect_interval": 5.0,
    "join_timeout": 0.2,
    "queue_size": 256,
}

PROTOCOL_DEFAULTS = {
    "start_marker": "$",
    "end_marker": "#",
    "delimiter": ";",
    "feedback_prefix": "ACTUAL:",
    "handshake_command": "IDENTIFY?",
    "handshake_response": "ROBOT_READY",
    "feedback_gripper_field": False,
}
