"""Detects narrow passages ahead of the robot on an elevation map."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Sequence

import numpy as np

from .geometry import constrain_angle_mpi_pi, quaternion_from_rpy
from .gridmap import GridMap, MapError
from .map_processing import (
    ELEVATION,
    adjust_map,
    extend_point,
    is_point_on_segment,
    path_index_at_distance,
)
from .messages import NarrowPassage, NarrowPassageDetection, Path, Pose, Vector3

_log = logging.getLogger(__name__)

FLOAT_MAX = float(np.finfo(np.float32).max)
SUBMAP_LENGTH = (2.0, 2.0)
RAY_RADIUS = 0.5
OBSTACLE_HEIGHT = 0.20
MIN_PASSAGE_WIDTH = 0.5
WIDTH_TOLERANCE = 0.02
SIDE_ANGLE = math.pi / 1.8
ROBOT_RADIUS = 0.425
ROBOT_OBSTACLE_HEIGHT = 0.40
MARK_HEIGHT = 0.2
APPROACH_OFFSET = 0.2
DETECTION_COUNT = 10
LOOKAHEAD_START = 2.0
LOOKAHEAD_END = 0.3
LOOKAHEAD_STEP = 0.1
VELOCITY_DEADBAND = 0.0002


def _ignore(_msg: object) -> None:
    pass


class NarrowPassageDetector:
    """Watches the planned path for narrow passages and announces approach goals."""

    def __init__(
        self,
        publish_approach: Callable[[NarrowPassage], None] | None = None,
        publish_detected: Callable[[NarrowPassageDetection], None] | None = None,
        publish_map: Callable[[GridMap], None] | None = None,
    ) -> None:
        self._publish_approach = publish_approach or _ignore
        self._publish_detected = publish_detected or _ignore
        self._publish_map = publish_map or _ignore
        self.elevation_map: GridMap | None = None
        self.occupancy_map: GridMap | None = None
        self.path: Path | None = None
        self.robot_pose = Pose()
        self.backward = False
        self.lookahead_detection_count = 0
        self.lookahead_narrow_passage_detected = False
        self.extended_point = False
        self.global_min_width = FLOAT_MAX
        self._last_timer: float | None = None

    # Inputs

    def on_elevation_map(self, grid_map: GridMap) -> None:
        """Filter a new elevation map down to obstacle edges and keep it."""
        adjust_map(grid_map)
        self.elevation_map = grid_map

    def on_occupancy_map(self, grid_map: GridMap) -> None:
        """Keep the planning map holding the distance transform."""
        self.occupancy_map = grid_map

    def on_path(self, path: Path) -> None:
        """Keep the latest planned path."""
        self.path = path

    def on_odometry(self, pose: Pose) -> None:
        """Keep the latest robot pose."""
        self.robot_pose = pose

    def on_velocity(self, linear_x: float) -> None:
        """Track whether the robot is commanded to drive backwards."""
        if linear_x < -VELOCITY_DEADBAND:
            self.backward = True
        if linear_x > VELOCITY_DEADBAND:
            self.backward = False

    def on_timer(self) -> None:
        """Run one detection cycle once an elevation map has arrived."""
        now = time.monotonic()
        if self._last_timer is not None:
            _log.debug("detection cycle, interval: %f seconds", now - self._last_timer)
        if self.elevation_map is not None:
            self.detecting()
        self._last_timer = time.monotonic()

    # Detection cycle

    def detecting(self) -> None:
        """Look for a passage ahead, announce it, and notice when it is passed."""
        mid_pose = Pose()
        if self.path is not None:
            lookahead, mid_pose = self.lookahead_detection()
            if lookahead and not self.extended_point:
                self.lookahead_narrow_passage_detected = True
            if not lookahead and self.extended_point and not self.robot_detection():
                _log.info("passed through the narrow passage")
                self._publish_detected(NarrowPassageDetection(narrow_passage_detected=False))
                self.reset()

        if (
            self.lookahead_detection_count > DETECTION_COUNT
            and self.lookahead_narrow_passage_detected
            and not self.extended_point
        ):
            _log.info("detected a narrow passage")
            self.extended_point = True
            approach_pose = extend_point(mid_pose, APPROACH_OFFSET, self.occupancy_map)
            self._publish_approach(
                NarrowPassage(midpose=mid_pose, endpose=approach_pose, extendpose=Pose())
            )
            self._publish_detected(NarrowPassageDetection(narrow_passage_detected=True))
            self.lookahead_detection_count = 0

        if self.elevation_map is not None:
            self._publish_map(self.elevation_map)

    def lookahead_detection(self) -> tuple[bool, Pose]:
        """Probe the path from 2 m ahead back towards the robot.

        Returns whether any probe found a passage and the midpoint of the
        last passage found.
        """
        mid_pose = Pose()
        grid_map = self.elevation_map
        poses = self.path.poses if self.path is not None else []
        if grid_map is None or not poses:
            return False, mid_pose

        narrow = False
        min_width = FLOAT_MAX
        count = 0
        distance = LOOKAHEAD_START
        while distance > LOOKAHEAD_END:
            index = min(path_index_at_distance(self.path, distance), len(poses) - 1)
            distance -= LOOKAHEAD_STEP
            probe = poses[index].pose
            x, y = probe.position.x, probe.position.y
            try:
                submap = grid_map.submap((x, y), SUBMAP_LENGTH)
            except MapError:
                continue
            found, min_width = self.generate_output(x, y, probe.yaw(), submap, min_width)
            if found is not None:
                narrow = True
                mid_pose = found
                count += 1
            if (
                -WIDTH_TOLERANCE < min_width - self.global_min_width < WIDTH_TOLERANCE
                and count > 1
            ):
                self.lookahead_detection_count = DETECTION_COUNT + 1
            self.global_min_width = min(min_width, self.global_min_width)
        return narrow, mid_pose

    def robot_detection(self) -> bool:
        """Whether tall obstacles still surround the robot."""
        grid_map = self.elevation_map
        if grid_map is None:
            return False
        elevation = grid_map[ELEVATION]
        center = (self.robot_pose.position.x, self.robot_pose.position.y)
        return any(
            elevation[index] > ROBOT_OBSTACLE_HEIGHT
            for index in grid_map.circle(center, ROBOT_RADIUS)
        )

    def reset(self) -> None:
        """Forget the passage currently being handled."""
        self.lookahead_detection_count = 0
        self.lookahead_narrow_passage_detected = False
        self.extended_point = False
        self.global_min_width = FLOAT_MAX

    # Passage measurement

    def generate_output(
        self, x: float, y: float, yaw: float, grid_map: GridMap, min_width: float
    ) -> tuple[Pose | None, float]:
        """Measure the gap between obstacles left and right of a pose.

        Returns the passage midpoint (or None if no passage qualifies) and
        the updated narrowest width seen so far.
        """
        center = (x, y)
        elevation = grid_map[ELEVATION]
        obstacles = [
            grid_map.position_of(index)
            for index in grid_map.spiral(center, RAY_RADIUS)
            if elevation[index] > OBSTACLE_HEIGHT
        ]

        right: list[tuple[float, float]] = []
        left: list[tuple[float, float]] = []
        for point in obstacles:
            angle = math.atan2(point[1] - y, point[0] - x)
            diff = constrain_angle_mpi_pi(yaw - angle)
            if abs(diff) < SIDE_ANGLE:
                (left if diff > 0 else right).append(point)

        min_distance = FLOAT_MAX
        pair: tuple[tuple[float, float], tuple[float, float]] | None = None
        for a in right:
            for b in left:
                gap = math.hypot(b[0] - a[0], b[1] - a[1])
                if gap < min_distance:
                    min_distance = gap
                    pair = (a, b)

        if pair is None or min_distance == FLOAT_MAX or min_distance <= MIN_PASSAGE_WIDTH:
            return None, min_width
        if min_distance - min_width > WIDTH_TOLERANCE:
            return None, min_width
        min_width = min(min_distance, min_width)

        pos1, pos2 = pair
        self.mark_narrow_passage(pos1, pos2)
        mid = Pose(
            position=Vector3(0.5 * (pos1[0] + pos2[0]), 0.5 * (pos1[1] + pos2[1]), 0.0)
        )
        self._orient_along_path(mid)
        return mid, min_width

    def _orient_along_path(self, pose: Pose) -> None:
        poses = self.path.poses if self.path is not None else []
        if not poses:
            return
        px, py = pose.position.x, pose.position.y
        closest = min(
            range(len(poses)),
            key=lambda k: math.hypot(
                px - poses[k].pose.position.x, py - poses[k].pose.position.y
            ),
        )
        following = closest - 1 if closest == len(poses) - 1 else closest + 1
        a = poses[closest].pose.position
        b = poses[following].pose.position
        pose.orientation = quaternion_from_rpy(0.0, 0.0, math.atan2(b.y - a.y, b.x - a.x))

    def mark_narrow_passage(self, pos1: Sequence[float], pos2: Sequence[float]) -> int:
        """Mark low cells between two obstacle points as passage floor.

        Returns the number of cells lying on the segment.
        """
        grid_map = self.elevation_map
        if grid_map is None:
            return 0
        elevation = grid_map[ELEVATION]
        count = 0
        for index in grid_map.indices():
            position = grid_map.position_of(index)
            if is_point_on_segment(pos1, pos2, position) or is_point_on_segment(
                pos2, pos1, position
            ):
                if elevation[index] < MARK_HEIGHT:
                    elevation[index] = -0.0
                count += 1
        return count