import math

import numpy as np
import pytest

from narrowpass.geometry import quaternion_from_rpy
from narrowpass.gridmap import GridMap, MapError
from narrowpass.map_processing import (
    adjust_map,
    adjust_point,
    compute_gradient,
    convert_from_gradient,
    extend_point,
    is_direction_aligned,
    is_point_on_segment,
    path_index_at_distance,
)
from narrowpass.messages import Path, Pose, PoseStamped, Vector3


def _elevation_map(rows, cols, resolution=0.1):
    grid = GridMap(rows * resolution, cols * resolution, resolution)
    grid.add("elevation")
    return grid


def _occupancy(field_fn):
    grid = GridMap(1.0, 1.0, 0.05)
    grid.add("distance_transform", 0.0)
    data = grid["distance_transform"]
    for i, j in grid.indices():
        data[i, j] = field_fn(i, j)
    return grid


def _path(xs):
    return Path(poses=[PoseStamped(pose=Pose(position=Vector3(x, 0.0, 0.0))) for x in xs])


def test_point_on_segment_cases():
    assert is_point_on_segment((0, 0), (2, 0), (1, 0)) is True
    assert is_point_on_segment((0, 0), (2, 0), (3, 0)) is False
    assert is_point_on_segment((0, 0), (2, 0), (0, 0)) is False
    assert is_point_on_segment((0, 0), (2, 0), (1, 1)) is False
    assert is_point_on_segment((0, 0), (0, 0), (1, 0)) is False


def test_point_on_segment_is_directional():
    assert is_point_on_segment((2, 0), (0, 0), (1, 0)) is True
    assert is_point_on_segment((2, 0), (0, 0), (3, 0)) is False


def test_direction_aligned():
    assert is_direction_aligned((1, 0), (2, 0)) is True
    assert is_direction_aligned((1, 0), (0, 1)) is False
    assert is_direction_aligned((1, 0), (-1, 0)) is False
    assert is_direction_aligned((0, 0), (1, 0)) is False
    assert is_direction_aligned((1, 0), (1, 1), max_cos=0.5) is True


def test_path_index_at_distance():
    path = _path([0.0, 1.0, 2.0, 3.0])
    assert path_index_at_distance(path, 1.5) == 2
    assert path_index_at_distance(path) == 1
    assert path_index_at_distance(path, 10.0) == len(path)


def test_path_index_of_empty_path():
    assert path_index_at_distance(Path(), 1.0) == 1


def test_convert_from_gradient_clears_flat_cells():
    grid = _elevation_map(2, 2)
    data = grid["elevation"]
    data[:] = [[0.5, 0.6], [0.7, math.nan]]
    convert_from_gradient(np.array([[0, 255], [255, 0]], dtype=np.uint8), grid)
    assert math.isnan(data[0, 0])
    assert data[0, 1] == 0.6
    assert data[1, 0] == 0.7
    assert math.isnan(data[1, 1])


def test_convert_from_gradient_rejects_wrong_size():
    grid = _elevation_map(2, 2)
    with pytest.raises(MapError):
        convert_from_gradient(np.zeros((3, 3), dtype=np.uint8), grid)


def test_compute_gradient_uniform_map_clears_everything():
    grid = _elevation_map(4, 6)
    grid["elevation"][:] = 0.5
    gradient = compute_gradient(grid)
    assert gradient.shape == grid.size
    assert not gradient.any()
    assert np.isnan(grid["elevation"]).all()


def test_compute_gradient_keeps_step_edge():
    grid = _elevation_map(4, 6)
    data = grid["elevation"]
    data[:, :3] = 0.5
    data[:, 3:] = 1.0
    gradient = compute_gradient(grid)
    assert set(np.unique(gradient)) <= {0, 255}
    kept_columns = sorted(set(np.argwhere(np.isfinite(data))[:, 1]))
    assert kept_columns == [2, 3]
    assert np.all(data[:, 2] == 0.5)
    assert np.all(data[:, 3] == 1.0)


def test_compute_gradient_without_finite_values():
    grid = _elevation_map(3, 3)
    assert compute_gradient(grid) is None
    assert np.isnan(grid["elevation"]).all()


def test_compute_gradient_needs_elevation_layer():
    grid = GridMap(0.3, 0.3, 0.1)
    with pytest.raises(MapError):
        compute_gradient(grid)


def test_adjust_map_drops_low_cells_and_keeps_edges():
    grid = _elevation_map(4, 6)
    data = grid["elevation"]
    data[:, :2] = 0.05
    data[:, 2:4] = 0.5
    data[:, 4:] = 1.0
    adjust_map(grid)
    kept_columns = sorted(set(np.argwhere(np.isfinite(data))[:, 1]))
    assert kept_columns == [3, 4]
    assert np.nanmin(data) >= 0.1


def test_adjust_point_climbs_distance_transform():
    occupancy = _occupancy(lambda i, j: 2.0 * i)
    sx, sy = occupancy.position_of((1, 10))
    start = Pose(position=Vector3(sx, sy, 0.0))
    adjusted = adjust_point(start, (sx + 0.1, sy), 0.1, occupancy)
    expected = occupancy.position_of((3, 10))
    assert adjusted.position.x == pytest.approx(expected[0])
    assert adjusted.position.y == pytest.approx(expected[1])
    assert occupancy["distance_transform"][occupancy.index_of((adjusted.position.x, adjusted.position.y))] > 5


def test_adjust_point_fails_without_clearance():
    occupancy = _occupancy(lambda i, j: 0.0)
    sx, sy = occupancy.position_of((5, 5))
    start = Pose(position=Vector3(sx, sy, 0.0))
    assert adjust_point(start, (sx + 0.1, sy), 0.1, occupancy) is None


def test_adjust_point_without_map():
    assert adjust_point(Pose(), (0.0, 0.0), 0.1, None) is None


def test_adjust_point_outside_map():
    occupancy = _occupancy(lambda i, j: 10.0)
    start = Pose(position=Vector3(5.0, 5.0, 0.0))
    assert adjust_point(start, (0.0, 0.0), 0.1, occupancy) is None


def test_extend_point_moves_backwards_along_heading():
    orientation = quaternion_from_rpy(0.0, 0.0, math.pi / 3)
    pose = Pose(position=Vector3(1.0, 2.0, 0.3), orientation=orientation)
    moved = extend_point(pose, 0.2)
    dx = moved.position.x - pose.position.x
    dy = moved.position.y - pose.position.y
    assert math.hypot(dx, dy) == pytest.approx(0.2)
    assert math.atan2(-dy, -dx) == pytest.approx(math.pi / 3)
    assert moved.position.z == pose.position.z
    assert moved.orientation == orientation


def test_extend_point_with_clear_map_is_not_adjusted():
    occupancy = _occupancy(lambda i, j: 10.0)
    pose = Pose(position=Vector3(0.1, 0.0, 0.0))
    with_map = extend_point(pose, 0.1, occupancy)
    without_map = extend_point(pose, 0.1)
    assert with_map.position.x == pytest.approx(without_map.position.x)
    assert with_map.position.y == pytest.approx(without_map.position.y)


def test_extend_point_adjusts_near_obstacles():
    occupancy = _occupancy(lambda i, j: 2.0 * i)
    cx, cy = occupancy.position_of((1, 10))
    pose = Pose(position=Vector3(cx + 0.1, cy, 0.0))
    moved = extend_point(pose, 0.1, occupancy)
    expected = occupancy.position_of((3, 10))
    assert moved.position.x == pytest.approx(expected[0])
    assert moved.position.y == pytest.approx(expected[1])
    assert moved.orientation == pose.orientation