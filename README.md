# narrowpass

narrowpass finds narrow passages between obstacles ahead of a ground robot. It also plans a circular arc that brings the robot up to such a passage. It works on elevation grid maps held in memory, and its only dependency is numpy.

## Modules

### `narrowpass.gridmap`

`GridMap(length_x, length_y, resolution, position)` is a rectangular map with named layers of float values. Each layer is a numpy array; new layers are filled with NaN unless a value is given.

- `add(layer, value)` creates or resets a layer.
- `map[layer]` returns the layer's array. It raises `MapError` if the layer is missing.
- `layer in map` tests whether a layer exists.
- `is_inside`, `index_of` and `position_of` convert between positions and cell indices.
- `indices()` yields every cell of the map.
- `circle(center, radius)` yields the cells whose centres lie within the radius.
- `spiral(center, radius)` yields the same kind of cells, in rings growing outwards from the centre.
- `submap(center, length)` returns a copy of the part of the map inside a rectangle.

`add_layer_from_image(image, layer, grid_map, ...)` fills a layer from a grey, BGR or BGRA image array of the map's size.

### `narrowpass.map_processing`

Functions that filter the elevation map:

- `adjust_map` drops cells below 0.1 and keeps only cells on strong height edges, found with a Sobel gradient (`compute_gradient`, `convert_from_gradient`). It then drops values below 0.01.

Helpers:

- `is_point_on_segment(a, b, c)` and `is_direction_aligned(a, b, max_cos)` are geometric tests.
- `path_index_at_distance(path, distance)` returns the index of the first pose farther than `distance` along a path.

Approach points:

- `extend_point(pose, distance, occupancy_map)` places a point `distance` behind a pose along its heading.
- If that point has too little clearance in the occupancy map's `distance_transform` layer, `adjust_point` climbs the distance transform to a nearby clear cell.

### `narrowpass.detection`

`NarrowPassageDetector` takes its inputs through these methods:

- `on_elevation_map`: the elevation map, which is filtered with `adjust_map`;
- `on_occupancy_map`;
- `on_path`;
- `on_odometry`;
- `on_velocity`.

Each `on_timer()` / `detecting()` cycle does the following:

- `lookahead_detection()` probes the path from 2 m ahead back to 0.3 m. At each probe, `generate_output` measures the narrowest gap wider than 0.5 m between obstacles on the left and on the right. It marks the cells across that gap with `mark_narrow_passage`.
- Once a passage has been confirmed, the detector publishes a `NarrowPassage`. This holds the midpoint, and an approach pose 0.2 m before it made with `extend_point`. The detector also publishes `NarrowPassageDetection(True)`.
- When the passage is no longer ahead and `robot_detection()` finds no tall obstacle around the robot, it publishes `NarrowPassageDetection(False)` and resets itself.
- Every cycle, the filtered elevation map is passed to `publish_map`.

### `narrowpass.passage_controller`

`NarrowPassageController` receives approach goals through `on_approach_goal`, maps through `on_map`, and detection state through `on_detection`.

On each `on_odometry(pose)` it does two things:

- It reports `ApproachStatus(approached_endpoint=True)` once the robot is within 0.15 m of the passage midpoint.
- Until then, it calls `path_to_approach`. This fits a circle through the robot, the approach pose and the midpoint, and publishes the arc as a `Path` ending at the midpoint. It returns False, and publishes nothing, when the points are collinear, when no arc is found, or when the radius exceeds 20 m.

`check_path_collision(path)` reports whether any elevation above 0.3 lies within 0.26 m of the path. `path_to_approach` runs this check but does not reject a path because of it.

### `narrowpass.messages`, `narrowpass.geometry`, `narrowpass.control_state`

- `narrowpass.messages` holds the plain data types: `Vector3`, `Quaternion`, `Pose` (with `yaw()`), `PoseStamped`, `Path`, `NarrowPassage`, `NarrowPassageDetection` and `ApproachStatus`.
- `narrowpass.geometry` provides angle wrapping, distances, and quaternion / Euler / roll-pitch-yaw conversions.
- `narrowpass.control_state` defines `RobotControlState`, `MotionParameters`, `LegPoint` and `Leg`.

## Installation

```
pip install .
pip install ".[test]"   # with pytest
```

## Usage

The detector and the controller do not subscribe to or publish on any transport themselves. You call their `on_*` methods with new data, and you give them callables to publish through.

```python
from narrowpass.detection import NarrowPassageDetector
from narrowpass.passage_controller import NarrowPassageController

controller = NarrowPassageController(
    publish_path=lambda path: print("approach path with", len(path), "poses"),
    publish_status=lambda status: print(status),
)
detector = NarrowPassageDetector(
    publish_approach=controller.on_approach_goal,
    publish_detected=controller.on_detection,
    publish_map=controller.on_map,
)

# As data arrives:
# detector.on_elevation_map(grid_map)      # GridMap with an "elevation" layer
# detector.on_occupancy_map(planning_map)  # GridMap with a "distance_transform" layer
# detector.on_path(path)
# detector.on_odometry(pose); controller.on_odometry(pose)
# and call detector.on_timer() about once a second.
```

## What it does not do

narrowpass has no command-line program and no node or message transport. It does not convert maps, paths or odometry from any wire format. Turning incoming data into `GridMap`, `Path` and `Pose` objects, and calling `on_timer` on a schedule, is left to the program that embeds it. It also issues no velocity commands; it only plans and reports the approach path.

## Running the tests

```
pytest
```