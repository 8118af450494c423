"""V2X-CPM Encoder: ego state + object snapshot → CpmMessage → transport.

Author: Dr. Mladen Mešter — Nexellum d.o.o.
License: AGPL-3.0-or-later
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from . import cpm_codec
from .cpm_logging import get_logger
from .cpm_messages import (
    CpmMessage, DataConfirm, DataRequest, ItsPduHeader, ManagementContainer,
    OriginatingVehicleContainer, PerceivedObjectEntry, ReferencePosition, StationType,
    DEFAULT_CONFIDENCE, DEFAULT_STATION_ID, GENERATION_DELTA_TIME_WRAP,
    MESSAGE_ID_CPM, PROTOCOL_VERSION,
)
from .cpm_objects import OutboundSnapshot
from .cpm_types import EgoState, PerceivedObject
from .cpm_units import degrees_to_fixed, heading_to_wire, meters_to_confidence, mps_to_cmps
from .errors import ProjectionError, SendRejected

logger = get_logger("v2x_cpm.encoder")

DEFAULT_CONFIDENCE_ELLIPSE_M = 1.0


def to_wire_entry(obj: PerceivedObject) -> PerceivedObjectEntry:
    """Wire entry for one perceived object.

    planar dimension 1 is the Y extent, planar dimension 2 the X extent.
    """
    return PerceivedObjectEntry(
        object_id=obj.object_id,
        time_of_measurement=obj.time_of_measurement,
        x_distance=obj.x_distance,
        y_distance=obj.y_distance,
        x_speed=obj.x_speed,
        y_speed=obj.y_speed,
        planar_dimension_1=obj.shape_y,
        planar_dimension_2=obj.shape_x,
        vertical_dimension=obj.shape_z,
        yaw_angle=obj.yaw_angle,
    )


class CpmEncoder:
    """Builds outbound Collective Perception Messages.

    Args:
        station_id: ITS station id, constant for the vehicle's lifetime
        station_type: Management container station type
        protocol_version: ITS PDU header protocol version
        confidence_ellipse_m: Semi-major/minor axis used when no
            covariance is available
    """

    def __init__(self, station_id: int = DEFAULT_STATION_ID,
                 station_type: StationType = StationType.PASSENGER_CAR,
                 protocol_version: int = PROTOCOL_VERSION,
                 confidence_ellipse_m: float = DEFAULT_CONFIDENCE_ELLIPSE_M):
        if not 0 <= station_id <= 0xFFFFFFFF:
            raise ValueError(f"station_id must fit in 32 bits, got {station_id}")
        if not 0 <= protocol_version <= 0xFF:
            raise ValueError(f"protocol_version must fit in 8 bits, got {protocol_version}")
        self.station_id = station_id
        self.station_type = StationType(station_type)
        self.protocol_version = protocol_version
        self.confidence_ellipse_m = confidence_ellipse_m

    def encode(self, ego: EgoState, snapshot: OutboundSnapshot | Sequence[PerceivedObject]) -> CpmMessage:
        objects = snapshot.objects if isinstance(snapshot, OutboundSnapshot) else tuple(snapshot)

        if not (math.isfinite(ego.latitude) and -90.0 <= ego.latitude <= 90.0):
            raise ProjectionError(f"reference latitude {ego.latitude} out of range")
        if not (math.isfinite(ego.longitude) and -180.0 <= ego.longitude <= 180.0):
            raise ProjectionError(f"reference longitude {ego.longitude} out of range")

        conf = meters_to_confidence(self.confidence_ellipse_m)
        management = ManagementContainer(
            station_type=self.station_type,
            reference_position=ReferencePosition(
                latitude=degrees_to_fixed(ego.latitude),
                longitude=degrees_to_fixed(ego.longitude),
                semi_major_confidence=conf,
                semi_minor_confidence=conf,
            ),
        )
        ovc = OriginatingVehicleContainer(
            heading_value=heading_to_wire(ego.heading),
            heading_confidence=DEFAULT_CONFIDENCE,
            speed_value=max(0, mps_to_cmps(ego.speed)),
            speed_confidence=DEFAULT_CONFIDENCE,
        )

        if objects:
            entries = tuple(to_wire_entry(o) for o in objects)
            for o in objects:
                logger.debug(
                    "[SEND] Added: #%d (%d, %d) (%d, %d) (%d, %d, %d) %d",
                    o.object_id, o.x_distance, o.y_distance, o.x_speed, o.y_speed,
                    o.shape_y, o.shape_x, o.shape_z, o.yaw_angle)
        else:
            entries = None
            logger.info("[SEND] Empty POC")

        return CpmMessage(
            header=ItsPduHeader(self.protocol_version, MESSAGE_ID_CPM, self.station_id),
            generation_delta_time=ego.generation_delta_time % GENERATION_DELTA_TIME_WRAP,
            management=management,
            originating_vehicle=ovc,
            perceived_objects=entries,
        )


def transmit(gateway, message: CpmMessage, request: Optional[DataRequest] = None) -> DataConfirm:
    """Serialize ``message`` and hand it to the gateway as a single-hop broadcast.

    Raises:
        SendRejected: the gateway did not accept the request
    """
    request = request or DataRequest()
    payload = cpm_codec.encode(message)
    confirm = gateway.send(request, payload)
    if not confirm.accepted:
        raise SendRejected(
            f"[SEND] CPM application data request failed: {confirm.reason or 'rejected'}",
            confirm)
    return confirm
