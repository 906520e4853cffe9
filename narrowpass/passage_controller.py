"""Plans an arc towards a detected narrow passage and reports when it is reached."""

from __future__ import annotations

import math
import time
from typing import Callable

from .geometry import constrain_angle_mpi_pi, quaternion_from_rpy
from .gridmap import GridMap
from .messages import (
    ApproachStatus,
    NarrowPassage,
    NarrowPassageDetection,
    Path,
    Pose,
    PoseStamped,
    Vector3,
)

APPROACH_TOLERANCE = 0.15
MAX_RADIUS = 20.0
COLLISION_RADIUS = 0.26
COLLISION_HEIGHT = 0.3
END_OFFSET = 0.5


def _ignore(_msg: object) -> None:
    pass


class NarrowPassageController:
    """Follows approach goals from the detector and publishes arc paths."""

    def __init__(
        self,
        publish_path: Callable[[Path], None] | None = None,
        publish_status: Callable[[ApproachStatus], None] | None = None,
    ) -> None:
        self._publish_path = publish_path or _ignore
        self._publish_status = publish_status or _ignore
        self.robot_pose = Pose()
        self.mid_point = Pose()
        self.end_point = Pose()
        self.extend_point = Pose()
        self.elevation_map: GridMap | None = None
        self.approached_endpoint = False
        self.approached_extendpoint = False
        self.lookahead_detected = False

    def on_approach_goal(self, msg: NarrowPassage) -> None:
        """Start approaching a newly detected passage."""
        self.reset()
        self.mid_point = msg.midpose
        self.end_point = msg.endpose
        self.extend_point = msg.extendpose
        self.lookahead_detected = True

    def on_map(self, grid_map: GridMap) -> None:
        """Store the latest elevation map."""
        self.elevation_map = grid_map

    def on_detection(self, msg: NarrowPassageDetection) -> None:
        """Forget the current goal once the passage is no longer handled."""
        if not msg.narrow_passage_detected:
            self.reset()

    def reset(self) -> None:
        """Clear the approach progress."""
        self.approached_endpoint = False
        self.approached_extendpoint = False
        self.lookahead_detected = False

    def _report_endpoint(self) -> None:
        self._publish_status(ApproachStatus(approached_endpoint=True, approached_extendpoint=False))
        self.approached_endpoint = True
        self.lookahead_detected = False

    def on_odometry(self, pose: Pose) -> None:
        """Update the robot pose, replan the arc and report arrival."""
        self.robot_pose = pose
        if not self.approached_endpoint and self.endpoint_approached(self.mid_point):
            self._report_endpoint()
        if self.lookahead_detected and not self.approached_endpoint:
            self.path_to_approach(self.robot_pose, self.end_point, self.mid_point)

    def endpoint_approached(self, end: Pose) -> bool:
        """Whether the robot is within the approach tolerance of ``end``."""
        distance = math.hypot(
            end.position.x - self.robot_pose.position.x,
            end.position.y - self.robot_pose.position.y,
        )
        return distance < APPROACH_TOLERANCE

    def path_to_approach(self, start: Pose, end: Pose, mid: Pose) -> bool:
        """Publish a circular arc from ``start`` through ``end`` followed by ``mid``.

        Returns False when no usable arc exists.
        """
        end_x = end.position.x - start.position.x
        end_y = end.position.y - start.position.y
        mid_x = mid.position.x - start.position.x
        mid_y = mid.position.y - start.position.y

        denominator = mid_x * end_y - mid_y * end_x
        if denominator == 0.0:
            return False
        center_x = (
            2 * end_x * mid_x * end_y
            - end_x**2 * mid_y
            + end_y**2 * mid_y
            - end_y * end_x**2
            - end_y**3
        ) / (2 * denominator)
        center_y = (
            2 * end_x * mid_y * end_y
            - end_y**2 * mid_x
            + end_x**2 * mid_x
            - end_x * end_y**2
            - end_x**3
        ) / (-2 * denominator)
        radius = math.hypot(center_x, center_y)
        center_x += start.position.x
        center_y += start.position.y

        end_angle = mid.yaw()
        e_x = end.position.x - END_OFFSET * math.cos(end_angle)
        e_y = end.position.y - END_OFFSET * math.sin(end_angle)

        angle_end = math.atan2(end.position.y - center_y, end.position.x - center_x)
        angle_e = math.atan2(e_y - center_y, e_x - center_x)
        direction = 1.0 if constrain_angle_mpi_pi(angle_e - angle_end) > 0.0 else -1.0
        angle_start = math.atan2(start.position.y - center_y, start.position.x - center_x)

        arc: list[PoseStamped] = []
        step = 0.0
        while True:
            angle = step / 180.0 * math.pi * direction + angle_end
            x = center_x + math.cos(angle) * radius
            y = center_y + math.sin(angle) * radius
            if (
                abs(constrain_angle_mpi_pi(angle_start - angle)) < 0.06
                and math.hypot(x - start.position.x, y - start.position.y) < 0.1
            ):
                break
            if step > 360:
                return False
            arc.append(PoseStamped(pose=Pose(position=Vector3(x, y, 0.0))))
            step += 1

        path = Path(poses=list(reversed(arc)))
        path.poses.append(PoseStamped(pose=end))
        for current, following in zip(path.poses, path.poses[1:]):
            heading = math.atan2(
                following.pose.position.y - current.pose.position.y,
                following.pose.position.x - current.pose.position.x,
            )
            current.pose = Pose(
                position=current.pose.position,
                orientation=quaternion_from_rpy(0.0, 0.0, heading),
            )
        if len(path.poses) >= 2:
            path.poses[-1] = PoseStamped(
                pose=Pose(position=end.position, orientation=path.poses[-2].pose.orientation)
            )

        self.check_path_collision(path)
        if radius > MAX_RADIUS:
            return False

        path.poses.append(PoseStamped(pose=mid))
        path.frame_id = "world"
        path.stamp = time.time()
        self._publish_path(path)
        return True

    def check_path_collision(self, path: Path) -> bool:
        """Whether high terrain lies near any pose of ``path`` but the last."""
        grid_map = self.elevation_map
        if grid_map is None:
            return False
        elevation = grid_map["elevation"]
        for stamped in path.poses[:-1]:
            center = (stamped.pose.position.x, stamped.pose.position.y)
            for index in grid_map.circle(center, COLLISION_RADIUS):
                if elevation[index] > COLLISION_HEIGHT:
                    return True
        return False