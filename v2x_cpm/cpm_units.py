"""
CPM Fixed-Point Units
=====================
Named conversions between SI values and the integer fixed-point encodings
carried on the wire.

Wire units:
  - DeciDegree      0.1 degree, angles in [0, 3600)
  - Centimeter      0.01 m, distances and object dimensions
  - CentimeterPerS  0.01 m/s, speeds
  - MicroDegree     1e-7 degree, reference-position latitude / longitude

Heading convention:
    The wire heading is measured from a fixed reference axis while the
    vehicle heading (yaw) is measured counter-clockwise from grid east.
    The two are related through HEADING_BASE_ANGLE_RAD:

        wire  = round(normalize_deg(90 - yaw_deg) * 10) mod 3600
        yaw   = pi/2 - wire * pi/1800

    The pi/2 offset is asserted by the deployed stack, not derived from a
    published table. It must stay identical on the encode and decode side.
"""

import math
from typing import NewType

DeciDegree = NewType("DeciDegree", int)
Centimeter = NewType("Centimeter", int)
CentimeterPerS = NewType("CentimeterPerS", int)
MicroDegree = NewType("MicroDegree", int)

# ===== CONSTANTS =====
HEADING_BASE_ANGLE_RAD = math.pi / 2
HEADING_BASE_ANGLE_DEG = math.degrees(HEADING_BASE_ANGLE_RAD)

DECIDEGREES_PER_TURN = 3600
CM_PER_METER = 100.0
GEO_FIXED_POINT_SCALE = 1.0e7     # 1e-7 degree per LSB
CONFIDENCE_SCALE = 100.0          # ellipse axes in 0.01 m


def round_half_away(value: float) -> int:
    """Round to nearest integer, ties away from zero (C ``lround``)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def normalize_deg(angle_deg: float) -> float:
    """Wrap an angle in degrees into [0, 360)."""
    wrapped = math.fmod(angle_deg, 360.0)
    if wrapped < 0.0:
        wrapped += 360.0
    return wrapped


# ===== DISTANCE / SPEED =====

def meters_to_cm(meters: float) -> Centimeter:
    return Centimeter(round_half_away(meters * CM_PER_METER))


def cm_to_meters(cm: int) -> float:
    return cm / CM_PER_METER


def mps_to_cmps(mps: float) -> CentimeterPerS:
    return CentimeterPerS(round_half_away(mps * CM_PER_METER))


def cmps_to_mps(cmps: int) -> float:
    return cmps / CM_PER_METER


# ===== GEODETIC FIXED POINT =====

def degrees_to_fixed(deg: float) -> MicroDegree:
    return MicroDegree(round_half_away(deg * GEO_FIXED_POINT_SCALE))


def fixed_to_degrees(fixed: int) -> float:
    return fixed / GEO_FIXED_POINT_SCALE


def meters_to_confidence(meters: float) -> int:
    return round_half_away(meters * CONFIDENCE_SCALE)


# ===== ANGLES =====

def heading_to_wire(heading_rad: float) -> DeciDegree:
    """Vehicle yaw (rad, CCW from grid east) to wire heading (0.1 deg)."""
    deg = normalize_deg(HEADING_BASE_ANGLE_DEG - math.degrees(heading_rad))
    return DeciDegree(round_half_away(deg * 10.0) % DECIDEGREES_PER_TURN)


def wire_to_heading(wire: int) -> float:
    """Inverse of :func:`heading_to_wire` up to quantization."""
    return HEADING_BASE_ANGLE_RAD - wire * math.pi / 1800.0


def yaw_to_wire(yaw_rad: float) -> DeciDegree:
    """Object yaw (rad) to wire yaw angle (0.1 deg), always non-negative.

    Inputs are expected in (-pi, pi] as produced by a quaternion-to-euler
    conversion; anything else is wrapped first.
    """
    if yaw_rad < 0.0:
        yaw_rad += 2 * math.pi
    if not 0.0 <= yaw_rad < 2 * math.pi:
        yaw_rad = math.fmod(yaw_rad, 2 * math.pi)
        if yaw_rad < 0.0:
            yaw_rad += 2 * math.pi
    return DeciDegree(round_half_away(math.degrees(yaw_rad) * 10.0) % DECIDEGREES_PER_TURN)


def wire_to_yaw(wire: int) -> float:
    return wire * math.pi / 1800.0
