"""V2X-CPM Object Stack Manager.

Holds the outbound snapshot (perceived objects plus the ego state they were
built against) and the inbound snapshot (objects reconstructed from the
last received CPM).

Both snapshots are immutable tuples swapped under a lock. The outbound
side also carries an ``encoding`` flag: while an encode cycle holds the
snapshot, perception updates are skipped as a whole instead of being
applied part way.

Author: Dr. Mladen Mešter — Nexellum d.o.o.
License: AGPL-3.0-or-later
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .cpm_coords import rotate_vector, world_to_ego_relative
from .cpm_logging import get_logger
from .cpm_messages import DEFAULT_TIME_OF_MEASUREMENT_MS, MAX_PERCEIVED_OBJECTS
from .cpm_types import (
    DetectedObject, EgoState, PerceivedObject, ReceivedObject, quaternion_to_yaw,
)
from .cpm_units import meters_to_cm, mps_to_cmps, yaw_to_wire

logger = get_logger("v2x_cpm.objects")


class UpdateStatus(Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class OutboundSnapshot:
    """Immutable view handed to the encoder."""
    objects: Tuple[PerceivedObject, ...] = ()
    ego: EgoState = field(default_factory=EgoState)
    generation: int = 0

    def __len__(self) -> int:
        return len(self.objects)


def build_perceived_object(object_id: int, raw: DetectedObject, ego: EgoState,
                           timestamp: float,
                           time_of_measurement: int = DEFAULT_TIME_OF_MEASUREMENT_MS) -> PerceivedObject:
    """Quantize one raw detection against the ego state."""
    x_dist, y_dist = world_to_ego_relative(raw.position[:2], ego.grid_xy, ego.heading)

    rel_velocity = np.asarray(raw.velocity, dtype=float) - ego.velocity
    x_speed, y_speed = rotate_vector(rel_velocity, -ego.heading)

    yaw = quaternion_to_yaw(raw.orientation)

    return PerceivedObject(
        object_id=object_id,
        timestamp=timestamp,
        position=tuple(float(v) for v in raw.position),
        orientation=tuple(float(v) for v in raw.orientation),
        shape_x=meters_to_cm(raw.dimensions[0]),
        shape_y=meters_to_cm(raw.dimensions[1]),
        shape_z=meters_to_cm(raw.dimensions[2]),
        x_distance=x_dist,
        y_distance=y_dist,
        x_speed=mps_to_cmps(x_speed),
        y_speed=mps_to_cmps(y_speed),
        yaw_angle=yaw_to_wire(yaw),
        time_of_measurement=time_of_measurement,
    )


class ObjectStackManager:
    """Outbound/inbound object snapshots with a non-blocking encode guard.

    Example::

        stack = ObjectStackManager(publish=consumer.publish)
        stack.update_outbound_stack(detections, ego)
        with stack.encoding() as snapshot:
            message = encoder.encode(snapshot.ego, snapshot)
    """

    def __init__(self, publish: Optional[Callable[[List[ReceivedObject]], None]] = None,
                 time_of_measurement: int = DEFAULT_TIME_OF_MEASUREMENT_MS):
        self._lock = threading.Lock()
        self._encoding = False
        self._outbound = OutboundSnapshot()
        self._inbound: Tuple[ReceivedObject, ...] = ()
        self._publish = publish
        self.time_of_measurement = time_of_measurement

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    @property
    def is_encoding(self) -> bool:
        with self._lock:
            return self._encoding

    def update_outbound_stack(self, raw_objects: Iterable[DetectedObject], ego_state: EgoState,
                              timestamp: Optional[float] = None) -> UpdateStatus:
        """Rebuild the outbound snapshot from a perception batch.

        Ids are assigned 0..N-1 in enumeration order. Relative distance
        uses the heading of ``ego_state`` at call time. A batch larger than
        one CPM can carry keeps its first MAX_PERCEIVED_OBJECTS entries.

        Returns:
            UpdateStatus.SKIPPED if an encode is in progress (nothing is
            touched), UpdateStatus.APPLIED otherwise.
        """
        if self.is_encoding:
            logger.info("updateObjectsStack Skipped...")
            return UpdateStatus.SKIPPED

        batch = list(raw_objects)
        if len(batch) > MAX_PERCEIVED_OBJECTS:
            logger.warning("ObjectsStack: %d objects exceed the CPM limit, keeping first %d",
                           len(batch), MAX_PERCEIVED_OBJECTS)
            batch = batch[:MAX_PERCEIVED_OBJECTS]

        stamp = time.time() if timestamp is None else timestamp
        ego = replace(ego_state)
        objects = []
        for i, raw in enumerate(batch):
            obj = build_perceived_object(i, raw, ego, stamp, self.time_of_measurement)
            objects.append(obj)
            logger.debug(
                "Added to stack: #%d (%d, %d) (%d, %d) (%d, %d, %d) %d",
                obj.object_id, obj.x_distance, obj.y_distance, obj.x_speed, obj.y_speed,
                obj.shape_x, obj.shape_y, obj.shape_z, obj.yaw_angle)

        with self._lock:
            # Encode may have started while the batch was being quantized
            if self._encoding:
                logger.info("updateObjectsStack Skipped...")
                return UpdateStatus.SKIPPED
            self._outbound = OutboundSnapshot(tuple(objects), ego, self._outbound.generation + 1)

        logger.info("ObjectsStack: %d objects", len(objects))
        return UpdateStatus.APPLIED

    def current_outbound_snapshot(self) -> OutboundSnapshot:
        with self._lock:
            return self._outbound

    @contextmanager
    def encoding(self) -> Iterator[OutboundSnapshot]:
        """Hold the busy flag for the duration of an encode/send cycle."""
        with self._lock:
            if self._encoding:
                raise RuntimeError("encode cycle already in progress")
            self._encoding = True
            snapshot = self._outbound
        try:
            yield snapshot
        finally:
            with self._lock:
                self._encoding = False

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def replace_inbound_snapshot(self, objects: Sequence[ReceivedObject]) -> None:
        """Atomically replace the received objects and publish them."""
        snapshot = tuple(objects)
        with self._lock:
            self._inbound = snapshot
        if self._publish is not None:
            self._publish(list(snapshot))

    def current_inbound_snapshot(self) -> Tuple[ReceivedObject, ...]:
        with self._lock:
            return self._inbound
