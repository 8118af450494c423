"""V2X-CPM 1.0.0: Collective Perception Messages for connected vehicles.

Builds periodic CPMs from the ego state and the locally perceived objects,
and reconstructs the objects of received CPMs in the local 1 m grid.

Quick Start::

    from v2x_cpm import CpmApplication, LoopbackGateway, DetectedObject, project
    app = CpmApplication(LoopbackGateway(), publish=print)
    app.update_reference_position(48.1371, 11.5754, 520.0)
    app.update_position(*project(48.1371, 11.5754))
    app.update_objects_stack([DetectedObject(position=(...))])
    app.start()

Nexellum d.o.o. — Dr. Mladen Mešter — mladen@nexellum.com
"""

__version__ = "1.0.0"
__author__ = "Dr. Mladen Mešter"
__email__ = "mladen@nexellum.com"
__license__ = "AGPL-3.0-or-later"

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from .errors import (
    CpmError,
    ProjectionError,
    NotDecodable,
    SendRejected,
    ConfigError,
)

# ---------------------------------------------------------------------------
# Units & coordinates
# ---------------------------------------------------------------------------
from .cpm_units import (
    HEADING_BASE_ANGLE_RAD,
    heading_to_wire,
    wire_to_heading,
    yaw_to_wire,
    wire_to_yaw,
    round_half_away,
)
from .cpm_coords import (
    UtmCoordinate,
    geodetic_to_utm,
    utm_zone,
    project,
    world_to_ego_relative,
    ego_relative_to_world,
)

# ---------------------------------------------------------------------------
# Data model & wire messages
# ---------------------------------------------------------------------------
from .cpm_types import (
    EgoState,
    DetectedObject,
    PerceivedObject,
    ReceivedObject,
    quaternion_to_yaw,
    yaw_to_quaternion,
)
from .cpm_messages import (
    CpmMessage,
    ItsPduHeader,
    ManagementContainer,
    ReferencePosition,
    OriginatingVehicleContainer,
    PerceivedObjectEntry,
    StationType,
    TransportType,
    CommunicationProfile,
    DataRequest,
    DataConfirm,
    DataIndication,
)
from . import cpm_codec

# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------
from .cpm_objects import ObjectStackManager, OutboundSnapshot, UpdateStatus
from .cpm_encoder import CpmEncoder, transmit
from .cpm_decoder import CpmDecoder
from .cpm_scheduler import PeriodicTask
from .cpm_transport import TransportGateway, LoopbackGateway
from .cpm_config import CpmConfig, load_config
from .cpm_logging import setup_logger, get_logger
from .cpm_application import CpmApplication

# ---------------------------------------------------------------------------
# __all__
# ---------------------------------------------------------------------------
__all__ = [
    "__version__",
    # Errors
    "CpmError", "ProjectionError", "NotDecodable", "SendRejected", "ConfigError",
    # Units
    "HEADING_BASE_ANGLE_RAD", "heading_to_wire", "wire_to_heading",
    "yaw_to_wire", "wire_to_yaw", "round_half_away",
    # Coords
    "UtmCoordinate", "geodetic_to_utm", "utm_zone", "project",
    "world_to_ego_relative", "ego_relative_to_world",
    # Data model
    "EgoState", "DetectedObject", "PerceivedObject", "ReceivedObject",
    "quaternion_to_yaw", "yaw_to_quaternion",
    # Messages
    "CpmMessage", "ItsPduHeader", "ManagementContainer", "ReferencePosition",
    "OriginatingVehicleContainer", "PerceivedObjectEntry", "StationType",
    "TransportType", "CommunicationProfile", "DataRequest", "DataConfirm",
    "DataIndication", "cpm_codec",
    # Components
    "ObjectStackManager", "OutboundSnapshot", "UpdateStatus",
    "CpmEncoder", "transmit", "CpmDecoder", "PeriodicTask",
    "TransportGateway", "LoopbackGateway",
    "CpmConfig", "load_config", "setup_logger", "get_logger",
    "CpmApplication",
]
