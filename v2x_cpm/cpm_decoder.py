"""V2X-CPM Decoder: inbound bytes → world-frame ReceivedObject list.

Author: Dr. Mladen Mešter — Nexellum d.o.o.
License: AGPL-3.0-or-later
"""

from __future__ import annotations

import math
from typing import Callable, List, Tuple

from . import cpm_codec
from .cpm_coords import ego_relative_to_world, project, rotate_vector
from .cpm_logging import get_logger
from .cpm_messages import CpmMessage, PerceivedObjectEntry
from .cpm_types import ReceivedObject, yaw_to_quaternion
from .cpm_units import cm_to_meters, cmps_to_mps, fixed_to_degrees, wire_to_heading, wire_to_yaw

logger = get_logger("v2x_cpm.decoder")

Projector = Callable[[float, float], Tuple[int, int]]


class CpmDecoder:
    """Reconstructs perceived objects of a remote station in the local grid.

    Args:
        projector: Geodetic → grid projection, ``project`` by default

    Example::

        decoder = CpmDecoder()
        objects = decoder.decode(packet)   # raises NotDecodable on garbage
    """

    def __init__(self, projector: Projector = project):
        self.projector = projector

    def decode(self, raw_packet: bytes) -> List[ReceivedObject]:
        """Parse bytes and reconstruct objects.

        Raises:
            NotDecodable: packet is not a CPM
            ProjectionError: sender reference position cannot be projected
        """
        message = cpm_codec.decode(raw_packet)
        logger.info("[INDICATE] Received decodable CPM content")
        return self.decode_message(message)

    def decode_message(self, message: CpmMessage) -> List[ReceivedObject]:
        ref = message.management.reference_position
        lat = fixed_to_degrees(ref.latitude)
        lon = fixed_to_degrees(ref.longitude)
        sender_xy = self.projector(lat, lon)
        heading = wire_to_heading(message.originating_vehicle.heading_value)
        sender_speed = cmps_to_mps(message.originating_vehicle.speed_value)
        sender_velocity = (sender_speed * math.cos(heading), sender_speed * math.sin(heading))

        if message.perceived_objects is None:
            logger.info("[INDICATE] Empty POC")
            return []

        station_id = message.header.station_id
        objects = []
        for entry in message.perceived_objects:
            logger.info("[INDICATE] Object: #%d", entry.object_id)
            objects.append(self._reconstruct(entry, sender_xy, heading, sender_velocity, station_id))
        return objects

    @staticmethod
    def _reconstruct(entry: PerceivedObjectEntry, sender_xy, heading: float,
                     sender_velocity, station_id: int) -> ReceivedObject:
        x, y = ego_relative_to_world(entry.x_distance, entry.y_distance, sender_xy, heading)
        rel_velocity = rotate_vector((cmps_to_mps(entry.x_speed), cmps_to_mps(entry.y_speed)), heading)
        vx = rel_velocity[0] + sender_velocity[0]
        vy = rel_velocity[1] + sender_velocity[1]
        yaw = wire_to_yaw(entry.yaw_angle)
        return ReceivedObject(
            object_id=entry.object_id,
            position_x=x,
            position_y=y,
            shape_x=cm_to_meters(entry.planar_dimension_2),
            shape_y=cm_to_meters(entry.planar_dimension_1),
            shape_z=cm_to_meters(entry.vertical_dimension),
            yaw=yaw,
            orientation=yaw_to_quaternion(yaw),
            velocity=(float(vx), float(vy)),
            station_id=station_id,
        )
