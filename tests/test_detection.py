import math

import numpy as np
import pytest

from narrowpass.detection import FLOAT_MAX, NarrowPassageDetector
from narrowpass.gridmap import GridMap
from narrowpass.messages import Path, Pose, PoseStamped, Vector3


def corridor_map(inner=0.4, outer=0.5, floor=math.nan):
    grid = GridMap(4.0, 4.0, 0.05)
    grid.add("elevation", floor)
    data = grid["elevation"]
    for index in grid.indices():
        _, y = grid.position_of(index)
        if inner <= abs(y) <= outer:
            data[index] = 0.5
    return grid


def empty_map():
    grid = GridMap(4.0, 4.0, 0.05)
    grid.add("elevation")
    return grid


def straight_path(start=-1.0, count=51):
    return Path(
        poses=[
            PoseStamped(pose=Pose(position=Vector3(start + k * 0.05, 0.0, 0.0)))
            for k in range(count)
        ]
    )


class Recorder:
    def __init__(self):
        self.approach = []
        self.detected = []
        self.maps = []

    def detector(self):
        return NarrowPassageDetector(
            self.approach.append, self.detected.append, self.maps.append
        )


def test_generate_output_finds_corridor():
    detector = NarrowPassageDetector()
    grid = corridor_map()
    detector.elevation_map = grid
    sub = grid.submap((0.0, 0.0), (2.0, 2.0))
    pose, width = detector.generate_output(0.0, 0.0, 0.0, sub, FLOAT_MAX)
    assert pose is not None
    assert 0.5 < width < 1.0
    assert abs(pose.position.y) < 1e-6


def test_generate_output_orients_along_path():
    detector = NarrowPassageDetector()
    grid = corridor_map()
    detector.elevation_map = grid
    detector.on_path(straight_path())
    sub = grid.submap((0.0, 0.0), (2.0, 2.0))
    pose, _ = detector.generate_output(0.0, 0.0, 0.0, sub, FLOAT_MAX)
    assert pose is not None
    assert pose.yaw() == pytest.approx(0.0, abs=1e-9)


def test_generate_output_rejects_gap_below_minimum():
    detector = NarrowPassageDetector()
    grid = corridor_map(inner=0.2, outer=0.3)
    detector.elevation_map = grid
    sub = grid.submap((0.0, 0.0), (2.0, 2.0))
    pose, width = detector.generate_output(0.0, 0.0, 0.0, sub, FLOAT_MAX)
    assert pose is None
    assert width == FLOAT_MAX


def test_generate_output_rejects_wider_than_known_minimum():
    detector = NarrowPassageDetector()
    grid = corridor_map()
    detector.elevation_map = grid
    sub = grid.submap((0.0, 0.0), (2.0, 2.0))
    pose, width = detector.generate_output(0.0, 0.0, 0.0, sub, 0.5)
    assert pose is None
    assert width == 0.5


def test_generate_output_heading_along_walls_finds_nothing():
    detector = NarrowPassageDetector()
    grid = corridor_map()
    detector.elevation_map = grid
    sub = grid.submap((0.0, 0.0), (2.0, 2.0))
    pose, width = detector.generate_output(0.0, 0.0, math.pi / 2, sub, FLOAT_MAX)
    assert pose is None
    assert width == FLOAT_MAX


def test_mark_narrow_passage_marks_low_cells_only():
    detector = NarrowPassageDetector()
    grid = corridor_map(floor=0.05)
    detector.elevation_map = grid
    top = grid.position_of(grid.index_of((0.025, 0.425)))
    bottom = grid.position_of(grid.index_of((0.025, -0.425)))
    count = detector.mark_narrow_passage(top, bottom)
    assert count > 0
    data = grid["elevation"]
    middle = data[grid.index_of((0.025, 0.0))]
    assert middle == 0.0
    assert math.copysign(1.0, middle) == -1.0
    assert data[grid.index_of(top)] == 0.5
    assert data[grid.index_of((1.0, 0.0))] == 0.05


def test_mark_without_map_marks_nothing():
    assert NarrowPassageDetector().mark_narrow_passage((0.0, 1.0), (0.0, -1.0)) == 0


def test_robot_detection():
    detector = NarrowPassageDetector()
    assert detector.robot_detection() is False
    detector.elevation_map = corridor_map(inner=0.3, outer=0.5)
    assert detector.robot_detection() is True
    detector.elevation_map = empty_map()
    assert detector.robot_detection() is False


def test_on_velocity_tracks_direction():
    detector = NarrowPassageDetector()
    detector.on_velocity(-0.001)
    assert detector.backward is True
    detector.on_velocity(0.0001)
    assert detector.backward is True
    detector.on_velocity(0.001)
    assert detector.backward is False


def test_reset_clears_state():
    detector = NarrowPassageDetector()
    detector.lookahead_detection_count = 7
    detector.lookahead_narrow_passage_detected = True
    detector.extended_point = True
    detector.global_min_width = 0.7
    detector.reset()
    assert detector.lookahead_detection_count == 0
    assert detector.lookahead_narrow_passage_detected is False
    assert detector.extended_point is False
    assert detector.global_min_width == FLOAT_MAX


def test_lookahead_without_path():
    detector = NarrowPassageDetector()
    detector.elevation_map = corridor_map()
    found, _ = detector.lookahead_detection()
    assert found is False


def test_lookahead_detects_and_counts():
    detector = NarrowPassageDetector()
    detector.elevation_map = corridor_map()
    detector.on_path(straight_path())
    found, mid = detector.lookahead_detection()
    assert found is True
    assert detector.lookahead_detection_count > 10
    assert abs(mid.position.y) < 1e-6
    assert 0.5 < detector.global_min_width < 1.0


def test_on_elevation_map_filters_low_terrain():
    detector = NarrowPassageDetector()
    grid = GridMap(1.0, 1.0, 0.05)
    grid.add("elevation", 0.05)
    detector.on_elevation_map(grid)
    assert detector.elevation_map is grid
    assert np.isnan(grid["elevation"]).all()


def test_on_timer_publishes_map_only_with_map():
    recorder = Recorder()
    detector = recorder.detector()
    detector.on_timer()
    assert recorder.maps == []
    grid = empty_map()
    detector.elevation_map = grid
    detector.on_timer()
    assert recorder.maps == [grid]
    assert recorder.approach == []


def test_detecting_full_cycle():
    recorder = Recorder()
    detector = recorder.detector()
    detector.elevation_map = corridor_map()
    detector.on_path(straight_path())

    detector.detecting()
    assert len(recorder.approach) == 1
    assert [m.narrow_passage_detected for m in recorder.detected] == [True]
    assert detector.extended_point is True
    assert detector.lookahead_detection_count == 0
    goal = recorder.approach[0]
    assert abs(goal.midpose.position.y) < 1e-6
    assert goal.endpose.position.x == pytest.approx(goal.midpose.position.x - 0.2)

    detector.detecting()
    assert len(recorder.approach) == 1
    assert len(recorder.detected) == 1

    detector.elevation_map = empty_map()
    detector.detecting()
    assert [m.narrow_passage_detected for m in recorder.detected] == [True, False]
    assert detector.extended_point is False
    assert detector.global_min_width == FLOAT_MAX