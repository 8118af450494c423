"""V2X-CPM data model: ego state, raw detections, outbound and inbound objects.

Author: Dr. Mladen Mešter — Nexellum d.o.o.
License: AGPL-3.0-or-later
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from scipy.spatial.transform import Rotation

IDENTITY_QUATERNION = (0.0, 0.0, 0.0, 1.0)


def quaternion_to_yaw(quat: Tuple[float, float, float, float]) -> float:
    """Yaw (rad, in (-pi, pi]) of an (x, y, z, w) quaternion.

    Uses the extrinsic xyz convention, i.e. roll/pitch/yaw as returned by
    tf2 ``Matrix3x3::getRPY``. An all-zero quaternion is read as identity.
    """
    q = np.asarray(quat, dtype=float)
    if not np.any(q):
        return 0.0
    return float(Rotation.from_quat(q).as_euler("xyz")[2])


def yaw_to_quaternion(yaw_rad: float) -> Tuple[float, float, float, float]:
    """Planar orientation (roll = pitch = 0) as an (x, y, z, w) quaternion."""
    x, y, z, w = Rotation.from_euler("xyz", [0.0, 0.0, yaw_rad]).as_quat()
    return float(x), float(y), float(z), float(w)


@dataclass
class EgoState:
    """Latest-value cache of the broadcasting vehicle's own state.

    Attributes:
        x, y: 1 m grid position
        latitude, longitude: Degrees
        altitude: Meters
        heading: Yaw in radians, CCW from grid east
        speed: m/s along heading
        generation_delta_time: Milliseconds, as supplied by positioning
    """
    x: float = 0.0
    y: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0
    heading: float = 0.0
    speed: float = 0.0
    generation_delta_time: int = 0

    @property
    def grid_xy(self) -> Tuple[float, float]:
        return self.x, self.y

    @property
    def velocity(self) -> np.ndarray:
        return self.speed * np.array([np.cos(self.heading), np.sin(self.heading)])


@dataclass(frozen=True)
class DetectedObject:
    """Raw object as delivered by the perception feed (grid frame, SI units)."""
    position: Tuple[float, float, float]
    orientation: Tuple[float, float, float, float] = IDENTITY_QUATERNION
    dimensions: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    velocity: Tuple[float, float] = (0.0, 0.0)


@dataclass(frozen=True)
class PerceivedObject:
    """Outbound object, fully quantized for the wire.

    Position and orientation are kept in world frame for reference; the
    wire fields are the ego-relative distance / speed in centimeters,
    shape in centimeters and yaw in tenths of a degree.
    """
    object_id: int
    timestamp: float
    position: Tuple[float, float, float]
    orientation: Tuple[float, float, float, float]
    shape_x: int
    shape_y: int
    shape_z: int
    x_distance: int
    y_distance: int
    x_speed: int = 0
    y_speed: int = 0
    yaw_angle: int = 0
    time_of_measurement: int = 100


@dataclass(frozen=True)
class ReceivedObject:
    """Object reconstructed from an inbound CPM, in the receiver's grid frame.

    Shape is in meters, velocity in m/s, orientation an (x, y, z, w)
    quaternion built from the wire yaw.
    """
    object_id: int
    position_x: float
    position_y: float
    shape_x: float
    shape_y: float
    shape_z: float
    yaw: float
    orientation: Tuple[float, float, float, float] = IDENTITY_QUATERNION
    velocity: Tuple[float, float] = field(default=(0.0, 0.0))
    station_id: int = 0
