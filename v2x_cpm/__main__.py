#!/usr/bin/env python3
"""
V2X-CPM loopback demonstration.

Two stations share an in-process link: station 1 perceives a ring of
objects and broadcasts CPMs, station 2 reconstructs them in its own grid.

Usage:
  python -m v2x_cpm --config config/cpm.yaml --ticks 3 --objects 4
"""

import argparse
import math
import sys

from .cpm_application import CpmApplication
from .cpm_config import load_config
from .cpm_coords import project
from .cpm_logging import setup_logger
from .cpm_transport import LoopbackGateway
from .cpm_types import DetectedObject, yaw_to_quaternion

DEMO_LAT = 48.1371
DEMO_LON = 11.5754
DEMO_ALT = 520.0


def ring_of_objects(center_xy, count: int, radius: float = 15.0):
    objects = []
    for i in range(count):
        bearing = 2 * math.pi * i / max(count, 1)
        objects.append(DetectedObject(
            position=(center_xy[0] + radius * math.cos(bearing),
                      center_xy[1] + radius * math.sin(bearing), 0.0),
            orientation=yaw_to_quaternion(bearing),
            dimensions=(4.5, 1.8, 1.5),
        ))
    return objects


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="V2X-CPM loopback demo")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--ticks", type=int, default=3, help="Number of CPMs to send")
    parser.add_argument("--objects", type=int, default=4, help="Perceived objects per CPM")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logger(level=config.log_level, log_file=config.log_file)

    link_a, link_b = LoopbackGateway.pair(first_station=config.station_id,
                                          second_station=config.station_id + 1)
    received = []
    sender = CpmApplication(link_a, config)
    CpmApplication(link_b, config, publish=received.append)

    grid = project(DEMO_LAT, DEMO_LON)
    sender.update_reference_position(DEMO_LAT, DEMO_LON, DEMO_ALT)
    sender.update_position(*grid)
    sender.update_heading(math.radians(30.0))

    print("=" * 80)
    print("V2X-CPM LOOPBACK DEMO")
    print("=" * 80)
    print(f"  Sender grid: {grid}")

    for tick in range(args.ticks):
        sender.update_generation_delta_time(tick * config.interval_ms)
        sender.update_objects_stack(ring_of_objects(grid, args.objects))
        sender.send()
        objects = received[-1] if received else []
        print(f"\n  CPM #{tick}: {len(objects)} object(s) reconstructed")
        for obj in objects:
            print(f"    #{obj.object_id}: ({obj.position_x:.2f}, {obj.position_y:.2f}) "
                  f"yaw={math.degrees(obj.yaw):.1f} deg "
                  f"shape=({obj.shape_x:.2f}, {obj.shape_y:.2f}, {obj.shape_z:.2f})")

    print("\n" + "=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main())
