#!/usr/bin/env python3
"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
V2X-CPM - BINARY FRAMING FOR COLLECTIVE PERCEPTION MESSAGES
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Fixed-layout big-endian framing of CpmMessage for the transport boundary.

CPM FRAME:
┌────────────────────────────────────────────────────────────────────────────────────────────────────┐
│ Byte 0:      Protocol version (uint8)                                                             │
│ Byte 1:      Message ID (uint8, 14 = CPM)                                                         │
│ Byte 2-5:    Station ID (uint32)                                                                  │
│ Byte 6-7:    Generation delta time (uint16, ms mod 65536)                                         │
│ Byte 8:      Station type (uint8)                                                                 │
│ Byte 9-12:   Reference latitude (int32, 1e-7 deg LSB)                                             │
│ Byte 13-16:  Reference longitude (int32, 1e-7 deg LSB)                                            │
│ Byte 17-18:  Semi-major confidence (uint16, 0.01 m LSB)                                           │
│ Byte 19-20:  Semi-minor confidence (uint16, 0.01 m LSB)                                           │
│ Byte 21-22:  Heading (uint16, 0.1 deg LSB, 0-3599)                                                │
│ Byte 23:     Heading confidence (uint8)                                                           │
│ Byte 24-25:  Speed (uint16, 0.01 m/s LSB)                                                         │
│ Byte 26:     Speed confidence (uint8)                                                             │
│ Byte 27:     Number of perceived objects (uint8)                                                  │
│ Byte 28:     Perceived object container present (uint8, 0/1)                                      │
│ Byte 29-:    Perceived object records, 31 bytes each                                              │
└────────────────────────────────────────────────────────────────────────────────────────────────────┘

PERCEIVED OBJECT RECORD (31 bytes):
┌────────────────────────────────────────────────────────────────────────────────────────────────────┐
│ Byte 0:      Object ID (uint8)                                                                    │
│ Byte 1-2:    Time of measurement (int16, ms)                                                      │
│ Byte 3-7:    X distance (int32, cm) + confidence (uint8)                                          │
│ Byte 8-12:   Y distance (int32, cm) + confidence (uint8)                                          │
│ Byte 13-15:  X speed (int16, cm/s) + confidence (uint8)                                           │
│ Byte 16-18:  Y speed (int16, cm/s) + confidence (uint8)                                           │
│ Byte 19-21:  Planar dimension 1 (uint16, cm) + confidence (uint8)                                 │
│ Byte 22-24:  Planar dimension 2 (uint16, cm) + confidence (uint8)                                 │
│ Byte 25-27:  Vertical dimension (uint16, cm) + confidence (uint8)                                 │
│ Byte 28-30:  Yaw angle (uint16, 0.1 deg LSB, 0-3599) + confidence (uint8)                         │
└────────────────────────────────────────────────────────────────────────────────────────────────────┘

Values outside a field's range saturate on encode. Any structural mismatch
on decode raises NotDecodable.

Author: Dr. Mladen Mešter / Nexellum d.o.o.
License: AGPL v3 / Commercial
═══════════════════════════════════════════════════════════════════════════════════════════════════════
"""

import struct
from typing import List

from .cpm_messages import (
    CpmMessage, ItsPduHeader, ManagementContainer, OriginatingVehicleContainer,
    PerceivedObjectEntry, ReferencePosition, StationType,
    MESSAGE_ID_CPM, GENERATION_DELTA_TIME_WRAP,
)
from .cpm_units import DECIDEGREES_PER_TURN
from .errors import NotDecodable


# =============================================================================
# LAYOUT
# =============================================================================

_HEADER = struct.Struct('>BBIHBiiHHHBHBBB')
_OBJECT = struct.Struct('>BhiBiBhBhBHBHBHBHB')

HEADER_SIZE = _HEADER.size     # 29
OBJECT_SIZE = _OBJECT.size     # 31

_INT32 = (-2**31, 2**31 - 1)
_INT16 = (-32768, 32767)
_UINT16 = (0, 65535)
_UINT8 = (0, 255)
_LATITUDE = (-900000000, 900000001)       # +-90 deg, 900000001 = unavailable
_LONGITUDE = (-1800000000, 1800000001)    # +-180 deg, 1800000001 = unavailable


def _clamp(value: int, bounds) -> int:
    return max(bounds[0], min(bounds[1], int(value)))


# =============================================================================
# ENCODER
# =============================================================================

def encode_object(entry: PerceivedObjectEntry) -> bytes:
    """Pack one perceived object record (31 bytes)."""
    return _OBJECT.pack(
        _clamp(entry.object_id, _UINT8),
        _clamp(entry.time_of_measurement, _INT16),
        _clamp(entry.x_distance, _INT32), _clamp(entry.x_distance_confidence, _UINT8),
        _clamp(entry.y_distance, _INT32), _clamp(entry.y_distance_confidence, _UINT8),
        _clamp(entry.x_speed, _INT16), _clamp(entry.x_speed_confidence, _UINT8),
        _clamp(entry.y_speed, _INT16), _clamp(entry.y_speed_confidence, _UINT8),
        _clamp(entry.planar_dimension_1, _UINT16), _clamp(entry.planar_dimension_1_confidence, _UINT8),
        _clamp(entry.planar_dimension_2, _UINT16), _clamp(entry.planar_dimension_2_confidence, _UINT8),
        _clamp(entry.vertical_dimension, _UINT16), _clamp(entry.vertical_dimension_confidence, _UINT8),
        entry.yaw_angle % DECIDEGREES_PER_TURN, _clamp(entry.yaw_angle_confidence, _UINT8),
    )


def encode(message: CpmMessage) -> bytes:
    """Serialize a complete CPM to bytes."""
    ref = message.management.reference_position
    ovc = message.originating_vehicle
    objects = message.perceived_objects or ()

    head = _HEADER.pack(
        message.header.protocol_version,
        message.header.message_id,
        message.header.station_id,
        message.generation_delta_time % GENERATION_DELTA_TIME_WRAP,
        int(message.management.station_type),
        _clamp(ref.latitude, _LATITUDE),
        _clamp(ref.longitude, _LONGITUDE),
        _clamp(ref.semi_major_confidence, _UINT16),
        _clamp(ref.semi_minor_confidence, _UINT16),
        ovc.heading_value % DECIDEGREES_PER_TURN,
        _clamp(ovc.heading_confidence, _UINT8),
        _clamp(ovc.speed_value, _UINT16),
        _clamp(ovc.speed_confidence, _UINT8),
        message.number_of_perceived_objects,
        1 if message.perceived_objects is not None else 0,
    )
    return head + b''.join(encode_object(o) for o in objects)


# =============================================================================
# DECODER
# =============================================================================

def _decode_object(data: bytes, offset: int) -> PerceivedObjectEntry:
    (object_id, tom,
     xd, xd_c, yd, yd_c,
     xs, xs_c, ys, ys_c,
     d1, d1_c, d2, d2_c, dv, dv_c,
     yaw, yaw_c) = _OBJECT.unpack_from(data, offset)

    if yaw >= DECIDEGREES_PER_TURN:
        raise NotDecodable(f"object {object_id}: yaw angle {yaw} out of range")

    return PerceivedObjectEntry(
        object_id=object_id,
        time_of_measurement=tom,
        x_distance=xd, y_distance=yd,
        x_speed=xs, y_speed=ys,
        planar_dimension_1=d1,
        planar_dimension_2=d2,
        vertical_dimension=dv,
        yaw_angle=yaw,
        x_distance_confidence=xd_c, y_distance_confidence=yd_c,
        x_speed_confidence=xs_c, y_speed_confidence=ys_c,
        planar_dimension_1_confidence=d1_c,
        planar_dimension_2_confidence=d2_c,
        vertical_dimension_confidence=dv_c,
        yaw_angle_confidence=yaw_c,
    )


def decode(data: bytes) -> CpmMessage:
    """Parse bytes into a CpmMessage.

    Raises:
        NotDecodable: the bytes are not a well-formed CPM frame
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise NotDecodable(f"expected bytes, got {type(data).__name__}")
    data = bytes(data)
    if len(data) < HEADER_SIZE:
        raise NotDecodable(f"frame too short: {len(data)} < {HEADER_SIZE} bytes")

    try:
        (version, message_id, station_id, gdt,
         station_type, lat, lon, semi_major, semi_minor,
         heading, heading_conf, speed, speed_conf,
         count, present) = _HEADER.unpack_from(data, 0)
    except struct.error as exc:
        raise NotDecodable(str(exc)) from exc

    if message_id != MESSAGE_ID_CPM:
        raise NotDecodable(f"message id {message_id} is not a CPM")
    try:
        station_type = StationType(station_type)
    except ValueError as exc:
        raise NotDecodable(f"unknown station type {station_type}") from exc
    if not _LATITUDE[0] <= lat <= _LATITUDE[1]:
        raise NotDecodable(f"reference latitude {lat} out of range")
    if not _LONGITUDE[0] <= lon <= _LONGITUDE[1]:
        raise NotDecodable(f"reference longitude {lon} out of range")
    if heading >= DECIDEGREES_PER_TURN:
        raise NotDecodable(f"heading {heading} out of range")
    if present not in (0, 1):
        raise NotDecodable(f"invalid container flag {present}")
    if present == 0 and count != 0:
        raise NotDecodable(f"{count} objects announced without a container")
    if present == 1 and count == 0:
        raise NotDecodable("empty perceived object container")

    expected = HEADER_SIZE + count * OBJECT_SIZE
    if len(data) != expected:
        raise NotDecodable(f"frame length {len(data)} != expected {expected}")

    objects: List[PerceivedObjectEntry] = []
    try:
        for i in range(count):
            objects.append(_decode_object(data, HEADER_SIZE + i * OBJECT_SIZE))
    except struct.error as exc:
        raise NotDecodable(str(exc)) from exc

    return CpmMessage(
        header=ItsPduHeader(version, message_id, station_id),
        generation_delta_time=gdt,
        management=ManagementContainer(
            station_type=station_type,
            reference_position=ReferencePosition(lat, lon, semi_major, semi_minor),
        ),
        originating_vehicle=OriginatingVehicleContainer(heading, heading_conf, speed, speed_conf),
        perceived_objects=tuple(objects) if present else None,
    )
