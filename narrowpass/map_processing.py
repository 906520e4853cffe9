"""Elevation map filtering and geometric helpers used by passage detection."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .gridmap import GridMap, MapError
from .messages import Path, Pose, Vector3

ELEVATION = "elevation"
DISTANCE_TRANSFORM = "distance_transform"

GRADIENT_THRESHOLD = 50
LOW_ELEVATION = 0.1
MIN_ELEVATION = 0.01
# Required clearance from obstacles, in cells of the distance transform.
CLEARANCE_CELLS = 0.25 / 0.05
SEGMENT_COS = 0.99
MAX_START_OFFSET = 0.22
MAX_MID_OFFSET = 0.2
_FLOAT_MAX = float(np.finfo(np.float32).max)

_NEIGHBOURS = ((-1, 0), (0, -1), (0, 1), (1, 0), (-1, -1), (-1, 1), (1, -1), (1, 1))


def _elevation_image(grid_map: GridMap) -> np.ndarray | None:
    """Elevation scaled to 0..255 between its finite extremes; None if empty."""
    data = grid_map[ELEVATION]
    finite = np.isfinite(data)
    if not finite.any():
        return None
    lower = float(data[finite].min())
    upper = float(data[finite].max())
    scaled = np.zeros(data.shape, dtype=float)
    if upper > lower:
        scaled[finite] = (data[finite] - lower) / (upper - lower) * 255.0
    return np.trunc(scaled).astype(np.uint8)


def _sobel(image: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """3x3 Sobel derivatives along columns and rows with mirrored borders."""
    padded = np.pad(image.astype(float), 1, mode="reflect")
    diff_x = padded[:, 2:] - padded[:, :-2]
    grad_x = diff_x[:-2] + 2.0 * diff_x[1:-1] + diff_x[2:]
    diff_y = padded[2:, :] - padded[:-2, :]
    grad_y = diff_y[:, :-2] + 2.0 * diff_y[:, 1:-1] + diff_y[:, 2:]
    return grad_x, grad_y


def compute_gradient(grid_map: GridMap) -> np.ndarray | None:
    """Keep only elevation cells on strong height edges.

    Returns the binary (0 or 255) edge image that was applied to the map,
    or None when the elevation layer holds no finite value.
    """
    image = _elevation_image(grid_map)
    if image is None:
        return None
    grad_x, grad_y = _sobel(image)
    magnitude = np.clip(np.rint(np.hypot(grad_x, grad_y)), 0, 255)
    gradient = np.where(magnitude < GRADIENT_THRESHOLD, 0, 255).astype(np.uint8)
    convert_from_gradient(gradient, grid_map)
    return gradient


def convert_from_gradient(gradient, grid_map: GridMap) -> None:
    """Clear finite elevation cells where the edge image is zero."""
    gradient = np.asarray(gradient)
    data = grid_map[ELEVATION]
    if gradient.shape != data.shape:
        raise MapError("gradient size does not correspond to grid map size")
    data[(gradient == 0) & np.isfinite(data)] = math.nan


def adjust_map(grid_map: GridMap) -> None:
    """Drop low terrain, keep edges of the rest and drop near-zero values."""
    data = grid_map[ELEVATION]
    with np.errstate(invalid="ignore"):
        data[data < LOW_ELEVATION] = math.nan
    compute_gradient(grid_map)
    data = grid_map[ELEVATION]
    with np.errstate(invalid="ignore"):
        data[data < MIN_ELEVATION] = math.nan


def is_point_on_segment(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> bool:
    """Whether ``c`` lies strictly between ``a`` and ``b`` on the segment from ``a``."""
    ab_x, ab_y = b[0] - a[0], b[1] - a[1]
    ac_x, ac_y = c[0] - a[0], c[1] - a[1]
    length_ab = math.hypot(ab_x, ab_y)
    length_ac = math.hypot(ac_x, ac_y)
    if length_ab == 0.0 or length_ac == 0.0:
        return False
    dot = ab_x * ac_x + ab_y * ac_y
    return dot / (length_ab * length_ac) > SEGMENT_COS and length_ac < length_ab


def is_direction_aligned(
    a: Sequence[float], b: Sequence[float], max_cos: float = 0.99999
) -> bool:
    """Whether the directions of ``a`` and ``b`` from the origin nearly coincide."""
    length_a = math.hypot(a[0], a[1])
    length_b = math.hypot(b[0], b[1])
    if length_a == 0.0 or length_b == 0.0:
        return False
    dot = a[0] * b[0] + a[1] * b[1]
    return dot / (length_a * length_b) > max_cos


def path_index_at_distance(path: Path, distance: float = 0.7) -> int:
    """Index of the first pose farther than ``distance`` along the path.

    When the path is shorter than ``distance`` the result is
    ``max(len(path), 1)``, one past the last pose.
    """
    poses = path.poses
    travelled = 0.0
    for index in range(1, len(poses)):
        here = poses[index].pose.position
        before = poses[index - 1].pose.position
        travelled += math.hypot(here.x - before.x, here.y - before.y)
        if travelled > distance:
            return index
    return max(len(poses), 1)


def _best_neighbour(
    field: np.ndarray,
    occupancy_map: GridMap,
    current: tuple[int, int],
    mid: Sequence[float],
    start: Sequence[float],
    distance: float,
) -> tuple[float, tuple[int, int] | None]:
    rows, cols = field.shape
    highest = 0.0
    best: tuple[int, int] | None = None
    for di, dj in _NEIGHBOURS:
        i, j = current[0] + di, current[1] + dj
        if not (0 <= i < rows and 0 <= j < cols):
            continue
        value = field[i, j]
        if value == _FLOAT_MAX:
            continue
        delta = value - field[current]
        x, y = occupancy_map.position_of((i, j))
        to_mid = math.hypot(x - mid[0], y - mid[1])
        to_start = math.hypot(x - start[0], y - start[1])
        mid_delta = to_mid - distance
        if (
            delta > 0.0
            and delta > highest
            and 0.0 < mid_delta < MAX_MID_OFFSET
            and to_start < MAX_START_OFFSET
        ):
            highest = float(delta)
            best = (i, j)
    return highest, best


def adjust_point(
    start: Pose,
    mid: Sequence[float],
    distance: float,
    occupancy_map: GridMap | None,
) -> Pose | None:
    """Climb the distance transform from ``start`` to a cell with enough clearance.

    Candidate cells must stay close to ``start`` and slightly farther than
    ``distance`` from ``mid``. Returns the adjusted pose, or None when no
    map is given, ``start`` is off the map, or no clear cell can be reached.
    """
    if occupancy_map is None:
        return None
    field = occupancy_map[DISTANCE_TRANSFORM]
    start_xy = (start.position.x, start.position.y)
    if not occupancy_map.is_inside(start_xy):
        return None
    current = occupancy_map.index_of(start_xy)

    while True:
        highest, best = _best_neighbour(field, occupancy_map, current, mid, start_xy, distance)
        clearance = field[current]
        if highest == 0.0 or best is None:
            if clearance < CLEARANCE_CELLS:
                return None
            break
        if clearance > CLEARANCE_CELLS:
            break
        current = best

    x, y = occupancy_map.position_of(current)
    return Pose(position=Vector3(x, y, 0.0))


def extend_point(pose: Pose, distance: float, occupancy_map: GridMap | None = None) -> Pose:
    """Pose ``distance`` behind ``pose`` along its heading, moved clear of obstacles."""
    yaw = pose.yaw()
    moved = Pose(
        position=Vector3(
            pose.position.x - distance * math.cos(yaw),
            pose.position.y - distance * math.sin(yaw),
            pose.position.z,
        ),
        orientation=pose.orientation,
    )
    if occupancy_map is None or DISTANCE_TRANSFORM not in occupancy_map:
        return moved
    moved_xy = (moved.position.x, moved.position.y)
    if not occupancy_map.is_inside(moved_xy):
        return moved
    index = occupancy_map.index_of(moved_xy)
    if occupancy_map[DISTANCE_TRANSFORM][index] < CLEARANCE_CELLS:
        mid = (pose.position.x, pose.position.y)
        adjusted = adjust_point(moved, mid, distance, occupancy_map)
        if adjusted is not None:
            adjusted.orientation = pose.orientation
            return adjusted
    return moved