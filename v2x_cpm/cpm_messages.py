#!/usr/bin/env python3
"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
V2X-CPM - COLLECTIVE PERCEPTION MESSAGE STRUCTURE
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Immutable in-memory form of a Collective Perception Message (ETSI TR 103 562).
Every value object is fully populated at construction and handed to the
codec as a whole; there is no partially built message state.

Message Layout (conceptual):
──────────────────────────────────────────────────────────────────────────────────────────────────────

┌────────────────────────────────────────────────────────────────────────────────────────────────────┐
│ header:            protocolVersion | messageID (14 = CPM) | stationID                              │
│ generationDeltaTime (ms mod 65536)                                                                 │
│ management:        stationType | referencePosition (1e-7 deg) | confidence ellipse (0.01 m)        │
│ originVehicle:     heading (0.1 deg, 0-3599) + conf | speed (0.01 m/s) + conf                      │
│ numberOfPerceivedObjects                                                                           │
│ perceivedObjects:  OPTIONAL list; absent means zero objects observed                               │
└────────────────────────────────────────────────────────────────────────────────────────────────────┘

Author: Dr. Mladen Mešter / Nexellum d.o.o.
License: AGPL v3 / Commercial
═══════════════════════════════════════════════════════════════════════════════════════════════════════
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple


# =============================================================================
# CONSTANTS
# =============================================================================

PROTOCOL_VERSION = 1
MESSAGE_ID_CPM = 14
DEFAULT_STATION_ID = 1

ITS_AID_CP = 639                 # Collective perception application id
BTP_PORT_CPM = 2009

DEFAULT_CONFIDENCE = 1
DEFAULT_TIME_OF_MEASUREMENT_MS = 100
GENERATION_DELTA_TIME_WRAP = 65536

MAX_PERCEIVED_OBJECTS = 255


# =============================================================================
# ENUMERATIONS
# =============================================================================

class StationType(IntEnum):
    """ITS station type (ETSI TS 102 894-2 DE_StationType)."""
    UNKNOWN = 0
    PEDESTRIAN = 1
    CYCLIST = 2
    MOPED = 3
    MOTORCYCLE = 4
    PASSENGER_CAR = 5
    BUS = 6
    LIGHT_TRUCK = 7
    HEAVY_TRUCK = 8
    TRAILER = 9
    SPECIAL_VEHICLES = 10
    TRAM = 11
    ROAD_SIDE_UNIT = 15


class TransportType(IntEnum):
    """GeoNetworking packet transport type."""
    GUC = 0   # Geo unicast
    GBC = 1   # Geo broadcast
    GAC = 2   # Geo anycast
    SHB = 3   # Single hop broadcast
    TSB = 4   # Topologically scoped broadcast


class CommunicationProfile(IntEnum):
    UNSPECIFIED = 0
    ITS_G5 = 1
    LTE_V2X = 2


# =============================================================================
# MESSAGE CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class ItsPduHeader:
    protocol_version: int
    message_id: int
    station_id: int


@dataclass(frozen=True)
class ReferencePosition:
    """Reference position in 1e-7 degree fixed point, ellipse in 0.01 m."""
    latitude: int
    longitude: int
    semi_major_confidence: int
    semi_minor_confidence: int


@dataclass(frozen=True)
class ManagementContainer:
    station_type: StationType
    reference_position: ReferencePosition


@dataclass(frozen=True)
class OriginatingVehicleContainer:
    heading_value: int
    heading_confidence: int
    speed_value: int
    speed_confidence: int


@dataclass(frozen=True)
class PerceivedObjectEntry:
    """One wire entry of the perceived object container.

    planar_dimension_1 carries the object's Y extent and
    planar_dimension_2 its X extent.
    """
    object_id: int
    time_of_measurement: int
    x_distance: int
    y_distance: int
    x_speed: int
    y_speed: int
    planar_dimension_1: int
    planar_dimension_2: int
    vertical_dimension: int
    yaw_angle: int
    x_distance_confidence: int = DEFAULT_CONFIDENCE
    y_distance_confidence: int = DEFAULT_CONFIDENCE
    x_speed_confidence: int = DEFAULT_CONFIDENCE
    y_speed_confidence: int = DEFAULT_CONFIDENCE
    planar_dimension_1_confidence: int = DEFAULT_CONFIDENCE
    planar_dimension_2_confidence: int = DEFAULT_CONFIDENCE
    vertical_dimension_confidence: int = DEFAULT_CONFIDENCE
    yaw_angle_confidence: int = DEFAULT_CONFIDENCE


@dataclass(frozen=True)
class CpmMessage:
    """Complete CPM. ``perceived_objects is None`` means zero objects observed."""
    header: ItsPduHeader
    generation_delta_time: int
    management: ManagementContainer
    originating_vehicle: OriginatingVehicleContainer
    perceived_objects: Optional[Tuple[PerceivedObjectEntry, ...]] = None

    @property
    def number_of_perceived_objects(self) -> int:
        return len(self.perceived_objects) if self.perceived_objects else 0

    def __post_init__(self):
        if self.perceived_objects is not None:
            if len(self.perceived_objects) == 0:
                raise ValueError("perceived object container must be omitted, not empty")
            if len(self.perceived_objects) > MAX_PERCEIVED_OBJECTS:
                raise ValueError(f"at most {MAX_PERCEIVED_OBJECTS} perceived objects per CPM")


# =============================================================================
# TRANSPORT REQUEST / CONFIRM
# =============================================================================

@dataclass(frozen=True)
class DataRequest:
    """Down-stack request parameters for one CPM transmission."""
    its_aid: int = ITS_AID_CP
    destination_port: int = BTP_PORT_CPM
    transport_type: TransportType = TransportType.SHB
    communication_profile: CommunicationProfile = CommunicationProfile.ITS_G5


@dataclass(frozen=True)
class DataConfirm:
    accepted: bool
    reason: str = ""


@dataclass(frozen=True)
class DataIndication:
    """Metadata accompanying an inbound packet."""
    destination_port: int = BTP_PORT_CPM
    source_station: Optional[int] = None
    transport_type: TransportType = TransportType.SHB
