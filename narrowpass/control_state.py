"""Robot state, motion parameters and path legs used by vehicle controllers."""

from __future__ import annotations

from dataclasses import dataclass, field

from .messages import Pose, Vector3


@dataclass
class RobotControlState:
    """Current robot state together with the current control targets."""

    velocity_linear: Vector3 = field(default_factory=Vector3)
    velocity_angular: Vector3 = field(default_factory=Vector3)
    pose: Pose = field(default_factory=Pose)
    dt: float = 0.0

    desired_velocity_linear: float = 0.0
    desired_position: Vector3 = field(default_factory=Vector3)
    error_2_path_angular: float = 0.0
    error_2_carrot_angular: float = 0.0
    carrot_distance: float = 0.0
    signed_carrot_distance_2_robot: float = 0.0
    approaching_goal_point: bool = False
    reverse_allowed: bool = False

    def set_robot_state(
        self, velocity_linear: Vector3, velocity_angular: Vector3, pose: Pose, dt: float
    ) -> None:
        """Store the measured robot state."""
        self.velocity_linear = velocity_linear
        self.velocity_angular = velocity_angular
        self.pose = pose
        self.dt = dt

    def clear_control_state(self) -> None:
        """Reset every control target to its neutral value."""
        self.desired_velocity_linear = 0.0
        self.desired_position = Vector3()
        self.error_2_path_angular = 0.0
        self.error_2_carrot_angular = 0.0
        self.carrot_distance = 0.0
        self.signed_carrot_distance_2_robot = 0.0
        self.approaching_goal_point = False
        self.reverse_allowed = False

    def set_control_state(
        self,
        desired_velocity_linear: float,
        desired_position: Vector3,
        error_2_path_angular: float,
        error_2_carrot_angular: float,
        carrot_distance: float,
        signed_carrot_distance_2_robot: float,
        approaching_goal_point: bool,
        reverse_allowed: bool,
    ) -> None:
        """Store the control targets computed for this cycle."""
        self.desired_velocity_linear = desired_velocity_linear
        self.desired_position = desired_position
        self.error_2_path_angular = error_2_path_angular
        self.error_2_carrot_angular = error_2_carrot_angular
        self.carrot_distance = carrot_distance
        self.signed_carrot_distance_2_robot = signed_carrot_distance_2_robot
        self.approaching_goal_point = approaching_goal_point
        self.reverse_allowed = reverse_allowed


@dataclass
class MotionParameters:
    """Motion parameters for wheeled and tracked robots."""

    use_final_twist: bool = False
    final_twist_trials_max: int = 0
    y_symmetry: bool = False
    carrot_distance: float = 0.0
    min_speed: float = 0.0
    commanded_speed: float = 0.0
    speed_p_gain: float = 0.0
    inclination_speed_reduction_factor: float = 0.0
    inclination_speed_reduction_time_constant: float = 0.0
    current_inclination: float = 0.0
    max_controller_speed: float = 0.0
    max_unlimited_speed: float = 0.0
    max_controller_angular_rate: float = 0.0
    max_unlimited_angular_rate: float = 0.0

    def is_y_symmetric(self) -> bool:
        """Whether the robot can drive equally well in both directions."""
        return self.y_symmetry


@dataclass
class LegPoint:
    """An end point of a path leg."""

    x: float = 0.0
    y: float = 0.0
    orientation: float = 0.0


@dataclass
class Leg:
    """One straight segment of a tracked path."""

    p1: LegPoint = field(default_factory=LegPoint)
    p2: LegPoint = field(default_factory=LegPoint)
    course: float = 0.0
    backward: bool = False
    speed: float = 0.0
    length2: float = 0.0
    length: float = 0.0
    percent: float = 0.0
    start_time: float = 0.0
    finish_time: float = 0.0