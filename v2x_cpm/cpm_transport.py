"""V2X-CPM transport boundary.

``TransportGateway`` is the seam to the GeoNetworking/BTP stack: one
``send`` per outbound CPM and one receive callback registered for inbound
packets. ``LoopbackGateway`` implements it in-process. A single instance
delivers accepted packets to its own receivers; ``LoopbackGateway.pair()``
links two endpoints so that each one's sends reach only the other.

Author: Dr. Mladen Mešter — Nexellum d.o.o.
License: AGPL-3.0-or-later
"""

from __future__ import annotations

import abc
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .cpm_logging import get_logger
from .cpm_messages import DataConfirm, DataIndication, DataRequest

logger = get_logger("v2x_cpm.transport")

ReceiveCallback = Callable[[DataIndication, bytes], None]


class TransportGateway(abc.ABC):
    """Send/receive boundary to the external protocol stack."""

    @abc.abstractmethod
    def send(self, request: DataRequest, payload: bytes) -> DataConfirm:
        """Transmit ``payload``; return whether the stack accepted it."""

    @abc.abstractmethod
    def on_receive(self, callback: ReceiveCallback) -> None:
        """Register the callback invoked once per inbound packet."""


@dataclass(frozen=True)
class SentPacket:
    request: DataRequest
    payload: bytes


class LoopbackGateway(TransportGateway):
    """In-process gateway.

    Args:
        accept: When False every send is rejected
        station_id: Reported as ``source_station`` on packets this
            endpoint sends
    """

    def __init__(self, accept: bool = True, station_id: Optional[int] = None):
        self.accept = accept
        self.station_id = station_id
        self.peer: Optional[LoopbackGateway] = None
        self.sent: List[SentPacket] = []
        self._receivers: List[ReceiveCallback] = []
        self._lock = threading.Lock()

    @classmethod
    def pair(cls, first_station: Optional[int] = None,
             second_station: Optional[int] = None) -> Tuple["LoopbackGateway", "LoopbackGateway"]:
        a = cls(station_id=first_station)
        b = cls(station_id=second_station)
        a.peer = b
        b.peer = a
        return a, b

    def send(self, request: DataRequest, payload: bytes) -> DataConfirm:
        if not self.accept:
            return DataConfirm(accepted=False, reason="loopback rejecting")
        with self._lock:
            self.sent.append(SentPacket(request, bytes(payload)))
        target = self.peer or self
        indication = DataIndication(
            destination_port=request.destination_port,
            source_station=self.station_id,
            transport_type=request.transport_type,
        )
        target.inject(payload, indication)
        return DataConfirm(accepted=True)

    def on_receive(self, callback: ReceiveCallback) -> None:
        with self._lock:
            self._receivers.append(callback)

    def inject(self, payload: bytes, indication: Optional[DataIndication] = None) -> None:
        """Deliver a packet to this endpoint's receivers as if it arrived over the air."""
        indication = indication or DataIndication()
        with self._lock:
            receivers = list(self._receivers)
        logger.debug("loopback: %d bytes to %d receiver(s)", len(payload), len(receivers))
        for receiver in receivers:
            receiver(indication, bytes(payload))
