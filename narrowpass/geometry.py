"""Angle normalisation, distances and quaternion/Euler conversions."""

from __future__ import annotations

import math
from typing import Sequence

from .messages import Quaternion, Vector3, _quaternion_rpy

EULER_CONVENTION = "zyx"
_TWO_PI = 2.0 * math.pi


def constrain_angle_0_2pi(x: float) -> float:
    """Map an angle into [0, 2*pi)."""
    x = math.fmod(x, _TWO_PI)
    if x < 0:
        x += _TWO_PI
    return x


def constrain_angle_mpi_pi(x: float) -> float:
    """Map an angle into [-pi, pi)."""
    x = math.fmod(x + math.pi, _TWO_PI)
    if x < 0:
        x += _TWO_PI
    return x - math.pi


def angular_norm(diff: float) -> float:
    """Wrap an angle difference to the nearest equivalent around zero."""
    return diff - math.floor(diff / _TWO_PI + 0.5) * _TWO_PI


def euclidean_distance(p0: Vector3, p1: Vector3) -> float:
    """Distance between two points in three dimensions."""
    return math.sqrt((p1.x - p0.x) ** 2 + (p1.y - p0.y) ** 2 + (p1.z - p0.z) ** 2)


def euclidean_distance_2d(p0: Vector3, p1: Vector3) -> float:
    """Distance between two points in the x-y plane."""
    return math.sqrt((p1.x - p0.x) ** 2 + (p1.y - p0.y) ** 2)


def angles_to_quaternion(
    angles: Sequence[float], convention: str = EULER_CONVENTION, flip: bool = False
) -> Quaternion:
    """Build a quaternion from three angles in the given convention."""
    a0, a1, a2 = angles
    if flip:
        a0, a2 = a2, a0
    c0, c1, c2 = math.cos(a0 / 2), math.cos(a1 / 2), math.cos(a2 / 2)
    s0, s1, s2 = math.sin(a0 / 2), math.sin(a1 / 2), math.sin(a2 / 2)

    if convention == "zyx":
        return Quaternion(
            w=c0 * c1 * c2 + s0 * s1 * s2,
            x=c0 * c1 * s2 - s0 * s1 * c2,
            y=c0 * s1 * c2 + s0 * c1 * s2,
            z=s0 * c1 * c2 - c0 * s1 * s2,
        )
    if convention == "xyz":
        return Quaternion(
            w=c0 * c1 * c2 - s0 * s1 * s2,
            x=c0 * s1 * s2 + s0 * c1 * c2,
            y=c0 * s1 * c2 - s0 * c1 * s2,
            z=c0 * c1 * s2 + s0 * s1 * c2,
        )
    raise ValueError(f"convention {convention!r} not supported")


def _asin(value: float) -> float:
    return math.asin(value) if -1.0 <= value <= 1.0 else math.nan


def quaternion_to_angles(
    quaternion: Quaternion, convention: str = EULER_CONVENTION, flip: bool = False
) -> tuple[float, float, float]:
    """Decompose a quaternion into three angles in the given convention."""
    q = quaternion
    if convention == "zyx":
        t0 = 2 * (q.x * q.y + q.w * q.z)
        t1 = q.w * q.w + q.x * q.x - q.y * q.y - q.z * q.z
        t2 = -2 * (q.x * q.z - q.w * q.y)
        t3 = 2 * (q.y * q.z + q.w * q.x)
        t4 = q.w * q.w - q.x * q.x - q.y * q.y + q.z * q.z
    elif convention == "xyz":
        t0 = -2 * (q.y * q.z - q.w * q.x)
        t1 = q.w * q.w - q.x * q.x - q.y * q.y + q.z * q.z
        t2 = 2 * (q.x * q.z + q.w * q.y)
        t3 = -2 * (q.x * q.y - q.w * q.z)
        t4 = q.w * q.w + q.x * q.x - q.y * q.y - q.z * q.z
    else:
        raise ValueError(f"convention {convention!r} not supported")

    angles = (math.atan2(t0, t1), _asin(t2), math.atan2(t3, t4))
    if flip:
        return angles[2], angles[1], angles[0]
    return angles


def euler_to_quaternion(euler: Sequence[float]) -> Quaternion:
    """Quaternion from (roll, pitch, yaw)."""
    return angles_to_quaternion(euler, EULER_CONVENTION, True)


def quaternion_to_euler(quaternion: Quaternion) -> tuple[float, float, float]:
    """(roll, pitch, yaw) of a quaternion."""
    return quaternion_to_angles(quaternion, EULER_CONVENTION, True)


def quaternion_from_rpy(roll: float, pitch: float, yaw: float) -> Quaternion:
    """Unit quaternion for fixed-axis roll, pitch and yaw."""
    cr, sr = math.cos(roll / 2), math.sin(roll / 2)
    cp, sp = math.cos(pitch / 2), math.sin(pitch / 2)
    cy, sy = math.cos(yaw / 2), math.sin(yaw / 2)
    return Quaternion(
        x=sr * cp * cy - cr * sp * sy,
        y=cr * sp * cy + sr * cp * sy,
        z=cr * cp * sy - sr * sp * cy,
        w=cr * cp * cy + sr * sp * sy,
    )


def quaternion_to_rpy(quaternion: Quaternion) -> tuple[float, float, float]:
    """Roll, pitch and yaw of a (not necessarily unit) quaternion."""
    return _quaternion_rpy(quaternion)