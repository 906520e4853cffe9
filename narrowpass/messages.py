"""Message types exchanged between the detector, the controller and the robot."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator


@dataclass
class Vector3:
    """A three-dimensional vector or point."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class Quaternion:
    """A rotation quaternion; defaults to the identity rotation."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    def __mul__(self, other: object) -> "Quaternion":
        if not isinstance(other, Quaternion):
            return NotImplemented
        q1, q2 = self, other
        return Quaternion(
            w=q1.w * q2.w - q1.x * q2.x - q1.y * q2.y - q1.z * q2.z,
            x=q1.w * q2.x + q1.x * q2.w + q1.y * q2.z - q1.z * q2.y,
            y=q1.w * q2.y + q1.y * q2.w - q1.x * q2.z + q1.z * q2.x,
            z=q1.w * q2.z + q1.z * q2.w + q1.x * q2.y - q1.y * q2.x,
        )

    def conjugated(self) -> "Quaternion":
        """Return the conjugate quaternion."""
        return Quaternion(-self.x, -self.y, -self.z, self.w)

    def normalized(self) -> "Quaternion":
        """Return this quaternion scaled to unit length."""
        norm = math.sqrt(self.w * self.w + self.x * self.x + self.y * self.y + self.z * self.z)
        if norm == 0.0:
            raise ValueError("cannot normalize a zero quaternion")
        return Quaternion(self.x / norm, self.y / norm, self.z / norm, self.w / norm)


def _quaternion_rpy(q: Quaternion) -> tuple[float, float, float]:
    """Roll, pitch and yaw of a quaternion through its rotation matrix."""
    d = q.x * q.x + q.y * q.y + q.z * q.z + q.w * q.w
    if d == 0.0:
        raise ValueError("zero quaternion has no orientation")
    s = 2.0 / d
    xs, ys, zs = q.x * s, q.y * s, q.z * s
    wx, wy, wz = q.w * xs, q.w * ys, q.w * zs
    xx, xy, xz = q.x * xs, q.x * ys, q.x * zs
    yy, yz, zz = q.y * ys, q.y * zs, q.z * zs

    m00 = 1.0 - (yy + zz)
    m10 = xy + wz
    m20 = xz - wy
    m21 = yz + wx
    m22 = 1.0 - (xx + yy)

    if abs(m20) >= 1.0:
        roll = math.atan2(m21, m22)
        pitch = math.pi / 2.0 if m20 < 0 else -math.pi / 2.0
        return roll, pitch, 0.0

    pitch = -math.asin(m20)
    cp = math.cos(pitch)
    roll = math.atan2(m21 / cp, m22 / cp)
    yaw = math.atan2(m10 / cp, m00 / cp)
    return roll, pitch, yaw


@dataclass
class Pose:
    """A position and an orientation."""

    position: Vector3 = field(default_factory=Vector3)
    orientation: Quaternion = field(default_factory=Quaternion)

    def yaw(self) -> float:
        """Heading about the z axis in radians."""
        return _quaternion_rpy(self.orientation)[2]


@dataclass
class PoseStamped:
    """A pose with its frame and time stamp."""

    pose: Pose = field(default_factory=Pose)
    frame_id: str = ""
    stamp: float = 0.0


@dataclass
class Path:
    """An ordered sequence of stamped poses."""

    poses: list[PoseStamped] = field(default_factory=list)
    frame_id: str = ""
    stamp: float = 0.0

    def __len__(self) -> int:
        return len(self.poses)

    def __iter__(self) -> Iterator[PoseStamped]:
        return iter(self.poses)


@dataclass
class NarrowPassage:
    """Poses describing how to approach a detected narrow passage."""

    midpose: Pose = field(default_factory=Pose)
    endpose: Pose = field(default_factory=Pose)
    extendpose: Pose = field(default_factory=Pose)


@dataclass
class NarrowPassageDetection:
    """Whether a narrow passage is currently being handled."""

    narrow_passage_detected: bool = False


@dataclass
class ApproachStatus:
    """Progress of the controller towards the passage end points."""

    approached_endpoint: bool = False
    approached_extendpoint: bool = False