"""V2X-CPM Application.

Ties the collaborators together:

    positioning ──update_*()──► EgoState cache
    perception ──update_objects_stack()──► ObjectStackManager
    PeriodicTask ──send()──► CpmEncoder ──► TransportGateway
    TransportGateway ──indicate()──► CpmDecoder ──► ObjectStackManager ──► publish

Author: Dr. Mladen Mešter — Nexellum d.o.o.
License: AGPL-3.0-or-later
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable, Iterable, List, Optional

from .cpm_config import CpmConfig
from .cpm_decoder import CpmDecoder, Projector
from .cpm_coords import project
from .cpm_encoder import CpmEncoder, transmit
from .cpm_logging import get_logger
from .cpm_messages import BTP_PORT_CPM, CpmMessage, DataConfirm, DataIndication, DataRequest
from .cpm_objects import ObjectStackManager, UpdateStatus
from .cpm_scheduler import PeriodicTask, TimerFactory, daemon_timer
from .cpm_transport import TransportGateway
from .cpm_types import DetectedObject, EgoState, ReceivedObject
from .errors import NotDecodable, ProjectionError

logger = get_logger("v2x_cpm.application")


class CpmApplication:
    """Collective Perception service for one ITS station.

    Args:
        gateway: Transport gateway used for send and receive
        config: Station and timing configuration
        publish: Downstream consumer for received objects
        timer_factory: Timer factory for the periodic send trigger
        on_send_error: Receives exceptions from scheduled sends
            (``SendRejected``, ``ProjectionError``); logged by default
        projector: Geodetic → grid projection for inbound CPMs
    """

    def __init__(self, gateway: TransportGateway, config: Optional[CpmConfig] = None,
                 publish: Optional[Callable[[List[ReceivedObject]], None]] = None,
                 timer_factory: TimerFactory = daemon_timer,
                 on_send_error: Optional[Callable[[BaseException], None]] = None,
                 projector: Projector = project):
        self.config = config or CpmConfig()
        self.gateway = gateway
        self.request = DataRequest()

        self._ego = EgoState()
        self._ego_lock = threading.Lock()

        self.stack = ObjectStackManager(publish=publish,
                                        time_of_measurement=self.config.time_of_measurement_ms)
        self.encoder = CpmEncoder(
            station_id=self.config.station_id,
            station_type=self.config.station_type,
            protocol_version=self.config.protocol_version,
            confidence_ellipse_m=self.config.confidence_ellipse_m,
        )
        self.decoder = CpmDecoder(projector=projector)
        self.timer = PeriodicTask(self.config.interval_s, self.send,
                                  timer_factory=timer_factory, on_error=on_send_error)
        self.last_message: Optional[CpmMessage] = None

        gateway.on_receive(self.indicate)
        logger.info("CpmApplication started...")

    @property
    def port(self) -> int:
        return BTP_PORT_CPM

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def start(self) -> None:
        self.timer.start()

    def stop(self) -> None:
        self.timer.cancel()

    def set_interval(self, interval_s: float) -> None:
        self.timer.set_interval(interval_s)

    # ------------------------------------------------------------------
    # Positioning collaborator (latest value wins)
    # ------------------------------------------------------------------
    def update_position(self, grid_x: float, grid_y: float) -> None:
        with self._ego_lock:
            self._ego.x = grid_x
            self._ego.y = grid_y

    def update_reference_position(self, lat: float, lon: float, altitude: float) -> None:
        with self._ego_lock:
            self._ego.latitude = lat
            self._ego.longitude = lon
            self._ego.altitude = altitude

    def update_heading(self, yaw_rad: float) -> None:
        with self._ego_lock:
            self._ego.heading = yaw_rad

    def update_generation_delta_time(self, gdt_ms: int) -> None:
        with self._ego_lock:
            self._ego.generation_delta_time = int(gdt_ms)

    def update_speed(self, speed_mps: float) -> None:
        with self._ego_lock:
            self._ego.speed = speed_mps

    @property
    def ego_state(self) -> EgoState:
        """Copy of the current ego state."""
        with self._ego_lock:
            return replace(self._ego)

    # ------------------------------------------------------------------
    # Perception feed
    # ------------------------------------------------------------------
    def update_objects_stack(self, raw_objects: Iterable[DetectedObject],
                             timestamp: Optional[float] = None) -> UpdateStatus:
        return self.stack.update_outbound_stack(raw_objects, self.ego_state, timestamp)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    def send(self) -> DataConfirm:
        """Encode the current snapshot and transmit it.

        Raises:
            SendRejected: gateway declined the message
            ProjectionError: ego reference position is invalid
        """
        with self.stack.encoding() as snapshot:
            logger.info("[SEND] Sending CPM...")
            message = self.encoder.encode(self.ego_state, snapshot)
            self.last_message = message
            try:
                return transmit(self.gateway, message, self.request)
            except Exception:
                logger.error("[SEND] CPM with %d objects not sent",
                             message.number_of_perceived_objects)
                raise

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def indicate(self, indication: DataIndication, packet: bytes) -> None:
        if indication.destination_port != self.port:
            logger.debug("[INDICATE] Ignoring packet for port %d", indication.destination_port)
            return
        try:
            objects = self.decoder.decode(packet)
        except NotDecodable as exc:
            logger.info("[INDICATE] Received broken content: %s", exc)
            return
        except ProjectionError as exc:
            logger.warning("[INDICATE] Dropping CPM with invalid reference position: %s", exc)
            return
        self.stack.replace_inbound_snapshot(objects)

    @property
    def received_objects(self) -> List[ReceivedObject]:
        return list(self.stack.current_inbound_snapshot())
