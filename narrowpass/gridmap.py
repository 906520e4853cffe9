"""A rectangular multi-layer grid map with cell iterators."""

from __future__ import annotations

import math
from typing import Iterator, Sequence

import numpy as np

Index = tuple[int, int]
Position = tuple[float, float]


class MapError(Exception):
    """Raised for invalid grid map operations."""


class GridMap:
    """Layers of cell values over a rectangle in the x-y plane.

    Index (0, 0) is the cell with the largest x and y; the first index
    grows towards negative x and the second towards negative y.
    """

    def __init__(
        self,
        length_x: float,
        length_y: float,
        resolution: float,
        position: Sequence[float] = (0.0, 0.0),
    ) -> None:
        if resolution <= 0:
            raise MapError("resolution must be positive")
        size = (int(round(length_x / resolution)), int(round(length_y / resolution)))
        if size[0] <= 0 or size[1] <= 0:
            raise MapError("grid map must hold at least one cell")
        self.resolution = float(resolution)
        self.size: tuple[int, int] = size
        self.length: tuple[float, float] = (size[0] * self.resolution, size[1] * self.resolution)
        self.position: Position = (float(position[0]), float(position[1]))
        self._layers: dict[str, np.ndarray] = {}

    @property
    def layers(self) -> tuple[str, ...]:
        """Names of the layers in insertion order."""
        return tuple(self._layers)

    def add(self, layer: str, value: float = math.nan) -> None:
        """Create a layer, or reset an existing one, filled with ``value``."""
        self._layers[layer] = np.full(self.size, value, dtype=float)

    def __getitem__(self, layer: str) -> np.ndarray:
        try:
            return self._layers[layer]
        except KeyError:
            raise MapError(f"no layer named {layer!r}") from None

    def __contains__(self, layer: object) -> bool:
        return layer in self._layers

    def _top(self) -> Position:
        return (
            self.position[0] + 0.5 * self.length[0],
            self.position[1] + 0.5 * self.length[1],
        )

    def is_inside(self, position: Sequence[float]) -> bool:
        """Whether a position lies on the map."""
        top_x, top_y = self._top()
        dx = top_x - position[0]
        dy = top_y - position[1]
        return 0.0 <= dx < self.length[0] and 0.0 <= dy < self.length[1]

    def index_of(self, position: Sequence[float]) -> Index:
        """Index of the cell that holds a position."""
        if not self.is_inside(position):
            raise MapError(f"position {tuple(position)} is outside the map")
        top_x, top_y = self._top()
        i = min(int(math.floor((top_x - position[0]) / self.resolution)), self.size[0] - 1)
        j = min(int(math.floor((top_y - position[1]) / self.resolution)), self.size[1] - 1)
        return (i, j)

    def position_of(self, index: Sequence[int]) -> Position:
        """Centre position of a cell."""
        i, j = int(index[0]), int(index[1])
        if not (0 <= i < self.size[0] and 0 <= j < self.size[1]):
            raise MapError(f"index {(i, j)} is outside the map")
        top_x, top_y = self._top()
        return (
            top_x - (i + 0.5) * self.resolution,
            top_y - (j + 0.5) * self.resolution,
        )

    def indices(self) -> Iterator[Index]:
        """Every cell index of the map."""
        for j in range(self.size[1]):
            for i in range(self.size[0]):
                yield (i, j)

    def _box(
        self, center: Sequence[float], half_x: float, half_y: float
    ) -> tuple[int, int, int, int] | None:
        top_x, top_y = self._top()
        res = self.resolution
        i0 = int(math.floor((top_x - (center[0] + half_x)) / res))
        i1 = int(math.ceil((top_x - (center[0] - half_x)) / res)) - 1
        j0 = int(math.floor((top_y - (center[1] + half_y)) / res))
        j1 = int(math.ceil((top_y - (center[1] - half_y)) / res)) - 1
        if i1 < 0 or j1 < 0 or i0 > self.size[0] - 1 or j0 > self.size[1] - 1:
            return None
        i0, j0 = max(i0, 0), max(j0, 0)
        i1, j1 = min(i1, self.size[0] - 1), min(j1, self.size[1] - 1)
        if i1 < i0 or j1 < j0:
            return None
        return i0, i1, j0, j1

    def _within(self, index: Index, center: Sequence[float], radius: float) -> bool:
        x, y = self.position_of(index)
        return (x - center[0]) ** 2 + (y - center[1]) ** 2 <= radius * radius

    def circle(self, center: Sequence[float], radius: float) -> Iterator[Index]:
        """Indices of the cells whose centres lie within ``radius`` of ``center``."""
        box = self._box(center, radius, radius)
        if box is None:
            return
        i0, i1, j0, j1 = box
        for j in range(j0, j1 + 1):
            for i in range(i0, i1 + 1):
                if self._within((i, j), center, radius):
                    yield (i, j)

    def _nearest_index(self, center: Sequence[float]) -> Index:
        top_x, top_y = self._top()
        i = int(math.floor((top_x - center[0]) / self.resolution))
        j = int(math.floor((top_y - center[1]) / self.resolution))
        return (min(max(i, 0), self.size[0] - 1), min(max(j, 0), self.size[1] - 1))

    def spiral(self, center: Sequence[float], radius: float) -> Iterator[Index]:
        """Cells within ``radius`` of ``center``, in rings growing outwards."""
        ci, cj = self._nearest_index(center)
        rings = int(math.ceil(radius / self.resolution)) + 1
        for n in range(rings + 1):
            for di in range(-n, n + 1):
                for dj in range(-n, n + 1):
                    if max(abs(di), abs(dj)) != n:
                        continue
                    i, j = ci + di, cj + dj
                    if not (0 <= i < self.size[0] and 0 <= j < self.size[1]):
                        continue
                    if self._within((i, j), center, radius):
                        yield (i, j)

    def submap(self, center: Sequence[float], length: Sequence[float]) -> "GridMap":
        """Copy of the part of the map covered by a rectangle around ``center``."""
        box = self._box(center, 0.5 * length[0], 0.5 * length[1])
        if box is None:
            raise MapError("requested submap does not overlap the map")
        i0, i1, j0, j1 = box
        first = self.position_of((i0, j0))
        last = self.position_of((i1, j1))
        sub = GridMap(
            (i1 - i0 + 1) * self.resolution,
            (j1 - j0 + 1) * self.resolution,
            self.resolution,
            (0.5 * (first[0] + last[0]), 0.5 * (first[1] + last[1])),
        )
        for name, data in self._layers.items():
            sub._layers[name] = data[i0 : i1 + 1, j0 : j1 + 1].copy()
        return sub


def _default_max_value(dtype: np.dtype) -> float:
    if np.issubdtype(dtype, np.floating):
        return 1.0
    if dtype == np.uint8 or dtype == np.uint16:
        return float(np.iinfo(dtype).max)
    raise MapError(f"image type {dtype} is not supported")


def add_layer_from_image(
    image,
    layer: str,
    grid_map: GridMap,
    lower_value: float = 0.0,
    upper_value: float = 1.0,
    alpha_threshold: float = 0.5,
    max_value: float | None = None,
) -> None:
    """Fill a layer from an image of the map's size.

    Colour images (BGR or BGRA) are converted to grey first. Cells whose
    alpha is below the threshold stay empty; values below 0.01 become NaN.
    """
    image = np.asarray(image)
    if image.shape[:2] != grid_map.size:
        raise MapError("image size does not correspond to grid map size")
    channels = 1 if image.ndim == 2 else image.shape[2]
    if channels == 2:
        raise MapError("images with two channels are not supported")
    if max_value is None:
        max_value = _default_max_value(image.dtype)
    integral = np.issubdtype(image.dtype, np.integer)

    if channels >= 3:
        blue = image[..., 0].astype(float)
        green = image[..., 1].astype(float)
        red = image[..., 2].astype(float)
        mono = 0.299 * red + 0.587 * green + 0.114 * blue
        if integral:
            mono = np.rint(mono)
    elif image.ndim == 3:
        mono = image[..., 0].astype(float)
    else:
        mono = image.astype(float)

    threshold = alpha_threshold * max_value
    if integral:
        threshold = float(int(threshold))
    if channels >= 4:
        mask = image[..., channels - 1].astype(float) >= threshold
    else:
        mask = np.ones(grid_map.size, dtype=bool)

    values = lower_value + (upper_value - lower_value) * (mono / max_value)
    values[values < 0.01] = math.nan

    grid_map.add(layer)
    data = grid_map[layer]
    data[mask] = values[mask]