"""
V2X-CPM Coordinate Transform Library
====================================
[REQ-CPM-CT] Grid projection and ego/world frame rotations for Collective
Perception Messages.

Supported frames:
  - WGS-84 Geodetic (lat, lon)
  - UTM (zone, hemisphere, easting, northing)
  - 1 m grid (MGRS 100 km square digits: easting/northing mod 100 km)
  - Ego-relative planar frame (x forward along heading, centimeters)

References:
  - Karney (2011) — Transverse Mercator with an accuracy of a few nanometers
  - NGA.SIG.0012 — Universal Grids and Grid Reference Systems

Author: Dr. Mladen Mešter, Nexellum d.o.o.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .cpm_units import Centimeter, cm_to_meters, round_half_away
from .errors import ProjectionError

# ===== WGS-84 CONSTANTS =====
WGS84_A = 6378137.0              # Semi-major axis [m]
WGS84_F = 1.0 / 298.257223563   # Flattening
WGS84_E2 = 2 * WGS84_F - WGS84_F**2  # First eccentricity squared
WGS84_E = np.sqrt(WGS84_E2)

# ===== UTM CONSTANTS =====
UTM_K0 = 0.9996
UTM_FALSE_EASTING = 500000.0
UTM_FALSE_NORTHING_SOUTH = 10000000.0
UTM_MIN_LAT = -80.0
UTM_MAX_LAT = 84.0               # exclusive; UPS above
GRID_SQUARE_M = 100000           # MGRS 100 km square

# Krüger series, 6th order in third flattening n
_N = WGS84_F / (2 - WGS84_F)
_RECTIFYING_RADIUS = WGS84_A / (1 + _N) * (1 + _N**2 / 4 + _N**4 / 64 + _N**6 / 256)
_ALPHA = np.array([
    _N / 2 - 2 * _N**2 / 3 + 5 * _N**3 / 16 + 41 * _N**4 / 180
    - 127 * _N**5 / 288 + 7891 * _N**6 / 37800,
    13 * _N**2 / 48 - 3 * _N**3 / 5 + 557 * _N**4 / 1440
    + 281 * _N**5 / 630 - 1983433 * _N**6 / 1935360,
    61 * _N**3 / 240 - 103 * _N**4 / 140 + 15061 * _N**5 / 26880
    + 167603 * _N**6 / 181440,
    49561 * _N**4 / 161280 - 179 * _N**5 / 168 + 6601661 * _N**6 / 7257600,
    34729 * _N**5 / 80640 - 3418889 * _N**6 / 1995840,
    212378941 * _N**6 / 319334400,
])
_J2 = 2 * np.arange(1, 7)


@dataclass(frozen=True)
class UtmCoordinate:
    """Full UTM position, before grid truncation."""
    zone: int
    northp: bool
    easting: float
    northing: float


# ===== ZONES =====

def utm_zone(lat_deg: float, lon_deg: float) -> int:
    """[REQ-CPM-CT-01] Standard UTM zone including Norway/Svalbard exceptions."""
    lon = lon_deg
    if lon >= 180.0:
        lon -= 360.0
    zone = int(math.floor((lon + 180.0) / 6.0)) + 1
    zone = min(max(zone, 1), 60)

    if 56.0 <= lat_deg < 64.0 and 3.0 <= lon < 12.0:
        return 32
    if 72.0 <= lat_deg < 84.0 and lon >= 0.0:
        if lon < 9.0:
            return 31
        if lon < 21.0:
            return 33
        if lon < 33.0:
            return 35
        if lon < 42.0:
            return 37
    return zone


def central_meridian(zone: int) -> float:
    return 6.0 * zone - 183.0


def _check_domain(lat_deg: float, lon_deg: float) -> None:
    if not (math.isfinite(lat_deg) and math.isfinite(lon_deg)):
        raise ProjectionError(f"non-finite position ({lat_deg}, {lon_deg})")
    if not UTM_MIN_LAT <= lat_deg < UTM_MAX_LAT:
        raise ProjectionError(
            f"latitude {lat_deg:.7f} outside UTM domain [{UTM_MIN_LAT}, {UTM_MAX_LAT})")
    if not -180.0 <= lon_deg <= 180.0:
        raise ProjectionError(f"longitude {lon_deg:.7f} outside [-180, 180]")


# ===== GEODETIC → UTM =====

def geodetic_to_utm(lat_deg: float, lon_deg: float) -> UtmCoordinate:
    """[REQ-CPM-CT-02] WGS-84 geodetic to UTM (Krüger series).

    Args:
        lat_deg: Latitude in degrees [-80, 84)
        lon_deg: Longitude in degrees [-180, 180]

    Returns:
        UtmCoordinate with easting/northing in meters

    Raises:
        ProjectionError: position outside the UTM domain
    """
    _check_domain(lat_deg, lon_deg)
    zone = utm_zone(lat_deg, lon_deg)

    phi = np.radians(lat_deg)
    dlam = np.radians(lon_deg - central_meridian(zone))
    # Wrap longitude difference into [-pi, pi]
    dlam = (dlam + np.pi) % (2 * np.pi) - np.pi

    sin_phi = np.sin(phi)
    t = np.sinh(np.arctanh(sin_phi) - WGS84_E * np.arctanh(WGS84_E * sin_phi))
    xi_p = np.arctan2(t, np.cos(dlam))
    eta_p = np.arctanh(np.sin(dlam) / np.sqrt(1 + t**2))

    xi = xi_p + np.sum(_ALPHA * np.sin(_J2 * xi_p) * np.cosh(_J2 * eta_p))
    eta = eta_p + np.sum(_ALPHA * np.cos(_J2 * xi_p) * np.sinh(_J2 * eta_p))

    easting = UTM_FALSE_EASTING + UTM_K0 * _RECTIFYING_RADIUS * eta
    northing = UTM_K0 * _RECTIFYING_RADIUS * xi
    northp = lat_deg >= 0.0
    if not northp:
        northing += UTM_FALSE_NORTHING_SOUTH

    return UtmCoordinate(zone, northp, float(easting), float(northing))


def project(lat_deg: float, lon_deg: float) -> Tuple[int, int]:
    """[REQ-CPM-CT-03] Geodetic position to 1 m grid coordinates.

    The grid coordinate is the numeric part of a 1 m precision MGRS
    reference: UTM easting and northing truncated to whole meters and
    reduced to the 100 km square. Zone and band letters are dropped.

    Returns:
        Tuple: (grid_x, grid_y) in [0, 100000)
    """
    utm = geodetic_to_utm(lat_deg, lon_deg)
    grid_x = int(math.floor(utm.easting)) % GRID_SQUARE_M
    grid_y = int(math.floor(utm.northing)) % GRID_SQUARE_M
    return grid_x, grid_y


# ===== PLANAR ROTATIONS =====

def rotation_2d(angle_rad: float) -> np.ndarray:
    """Counter-clockwise 2×2 rotation matrix."""
    c = np.cos(angle_rad)
    s = np.sin(angle_rad)
    return np.array([
        [c, -s],
        [s,  c],
    ])


def world_to_ego_relative(object_xy, ego_xy, ego_heading_rad: float) -> Tuple[Centimeter, Centimeter]:
    """[REQ-CPM-CT-04] World-frame position to ego-relative distance.

    Rotates (object - ego) by -heading and scales to centimeters.

    Args:
        object_xy: Object [x, y] in grid meters
        ego_xy: Ego [x, y] in grid meters
        ego_heading_rad: Ego yaw, CCW from grid east

    Returns:
        Tuple: (dx_cm, dy_cm) rounded half away from zero
    """
    delta = np.asarray(object_xy, dtype=float)[:2] - np.asarray(ego_xy, dtype=float)[:2]
    rel = rotation_2d(-ego_heading_rad) @ delta
    return Centimeter(round_half_away(rel[0] * 100.0)), Centimeter(round_half_away(rel[1] * 100.0))


def ego_relative_to_world(dx_cm: int, dy_cm: int, sender_xy,
                          sender_heading_rad: float) -> Tuple[float, float]:
    """[REQ-CPM-CT-05] Ego-relative distance (cm) back to world grid meters."""
    rel = np.array([cm_to_meters(dx_cm), cm_to_meters(dy_cm)])
    world = rotation_2d(sender_heading_rad) @ rel + np.asarray(sender_xy, dtype=float)[:2]
    return float(world[0]), float(world[1])


def rotate_vector(vec_xy, angle_rad: float) -> np.ndarray:
    """Rotate a planar vector (velocity, offset) without translation."""
    return rotation_2d(angle_rad) @ np.asarray(vec_xy, dtype=float)[:2]
