"""
Tests for V2X-CPM binary framing
=================================
pytest tests/test_cpm_codec.py -v
"""

import struct

import numpy as np
import pytest
import sys, os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from v2x_cpm import cpm_codec
from v2x_cpm.cpm_codec import HEADER_SIZE, OBJECT_SIZE
from v2x_cpm.cpm_messages import (
    CpmMessage, ItsPduHeader, ManagementContainer, OriginatingVehicleContainer,
    PerceivedObjectEntry, ReferencePosition, StationType, MESSAGE_ID_CPM,
)
from v2x_cpm.errors import NotDecodable


# ===== FIXTURES =====

def make_entry(object_id=0, **overrides):
    fields = dict(
        object_id=object_id, time_of_measurement=100,
        x_distance=1000, y_distance=-250, x_speed=500, y_speed=-20,
        planar_dimension_1=180, planar_dimension_2=450, vertical_dimension=150,
        yaw_angle=2700,
    )
    fields.update(overrides)
    return PerceivedObjectEntry(**fields)


def make_message(objects=None, station_id=7, gdt=4464):
    return CpmMessage(
        header=ItsPduHeader(1, MESSAGE_ID_CPM, station_id),
        generation_delta_time=gdt,
        management=ManagementContainer(
            StationType.PASSENGER_CAR,
            ReferencePosition(481234567, 111234567, 100, 100),
        ),
        originating_vehicle=OriginatingVehicleContainer(900, 1, 1389, 1),
        perceived_objects=objects,
    )


@pytest.fixture
def two_objects():
    return cpm_codec.encode(make_message((make_entry(0), make_entry(1, yaw_angle=15))))


def patched(data, offset, fmt, value):
    buf = bytearray(data)
    struct.pack_into(fmt, buf, offset, value)
    return bytes(buf)


# ===== LAYOUT =====

class TestLayout:
    def test_sizes(self):
        assert HEADER_SIZE == 29
        assert OBJECT_SIZE == 31

    def test_empty_message(self):
        data = cpm_codec.encode(make_message())
        assert len(data) == HEADER_SIZE
        assert data[1] == MESSAGE_ID_CPM
        assert data[27] == 0      # number of objects
        assert data[28] == 0      # container absent

    def test_frame_length(self, two_objects):
        assert len(two_objects) == HEADER_SIZE + 2 * OBJECT_SIZE
        assert two_objects[27] == 2
        assert two_objects[28] == 1

    def test_big_endian_station_id(self):
        data = cpm_codec.encode(make_message(station_id=0x01020304))
        assert data[2:6] == b'\x01\x02\x03\x04'


# ===== DECODE =====

class TestDecode:
    def test_empty_container_absent(self):
        message = cpm_codec.decode(cpm_codec.encode(make_message()))
        assert message.perceived_objects is None
        assert message.number_of_perceived_objects == 0

    def test_full_message(self):
        original = make_message((make_entry(0), make_entry(1, x_distance=-77)))
        decoded = cpm_codec.decode(cpm_codec.encode(original))
        assert decoded == original
        assert decoded.management.station_type is StationType.PASSENGER_CAR

    def test_accepts_bytearray(self, two_objects):
        assert cpm_codec.decode(bytearray(two_objects)).number_of_perceived_objects == 2

    def test_saturation(self):
        entry = make_entry(x_distance=2**40, x_speed=-10**6, vertical_dimension=-5)
        decoded = cpm_codec.decode(cpm_codec.encode(make_message((entry,))))
        obj = decoded.perceived_objects[0]
        assert obj.x_distance == 2**31 - 1
        assert obj.x_speed == -32768
        assert obj.vertical_dimension == 0

    def test_generation_delta_time_wraps(self):
        decoded = cpm_codec.decode(cpm_codec.encode(make_message(gdt=70000)))
        assert decoded.generation_delta_time == 70000 % 65536


class TestMalformed:
    def test_not_bytes(self):
        with pytest.raises(NotDecodable):
            cpm_codec.decode("not a packet")

    @pytest.mark.parametrize("data", [b"", b"\x01", b"\x00" * (HEADER_SIZE - 1)])
    def test_too_short(self, data):
        with pytest.raises(NotDecodable):
            cpm_codec.decode(data)

    def test_wrong_message_id(self, two_objects):
        with pytest.raises(NotDecodable, match="not a CPM"):
            cpm_codec.decode(patched(two_objects, 1, '>B', 2))

    def test_unknown_station_type(self, two_objects):
        with pytest.raises(NotDecodable):
            cpm_codec.decode(patched(two_objects, 8, '>B', 12))

    @pytest.mark.parametrize("offset,value", [
        (9, 950000000),
        (9, -900000001),
        (13, 1800000002),
        (13, -2**31),
    ])
    def test_reference_position_out_of_range(self, two_objects, offset, value):
        with pytest.raises(NotDecodable, match="reference"):
            cpm_codec.decode(patched(two_objects, offset, '>i', value))

    def test_unavailable_reference_position_parses(self):
        data = patched(cpm_codec.encode(make_message()), 9, '>i', 900000001)
        assert cpm_codec.decode(data).management.reference_position.latitude == 900000001

    def test_reference_position_saturates_on_encode(self):
        message = CpmMessage(
            header=ItsPduHeader(1, MESSAGE_ID_CPM, 1),
            generation_delta_time=0,
            management=ManagementContainer(
                StationType.PASSENGER_CAR, ReferencePosition(2**31 - 1, -2**31, 100, 100)),
            originating_vehicle=OriginatingVehicleContainer(0, 1, 0, 1),
        )
        ref = cpm_codec.decode(cpm_codec.encode(message)).management.reference_position
        assert (ref.latitude, ref.longitude) == (900000001, -1800000000)

    def test_heading_out_of_range(self, two_objects):
        with pytest.raises(NotDecodable):
            cpm_codec.decode(patched(two_objects, 21, '>H', 3600))

    def test_invalid_container_flag(self, two_objects):
        with pytest.raises(NotDecodable):
            cpm_codec.decode(patched(two_objects, 28, '>B', 2))

    def test_count_without_container(self):
        data = cpm_codec.encode(make_message())
        with pytest.raises(NotDecodable):
            cpm_codec.decode(patched(data, 27, '>B', 1))

    def test_container_without_objects(self):
        data = cpm_codec.encode(make_message())
        with pytest.raises(NotDecodable):
            cpm_codec.decode(patched(data, 28, '>B', 1))

    def test_truncated(self, two_objects):
        with pytest.raises(NotDecodable):
            cpm_codec.decode(two_objects[:-1])

    def test_trailing_bytes(self, two_objects):
        with pytest.raises(NotDecodable):
            cpm_codec.decode(two_objects + b"\x00")

    def test_object_yaw_out_of_range(self, two_objects):
        with pytest.raises(NotDecodable):
            cpm_codec.decode(patched(two_objects, HEADER_SIZE + 28, '>H', 4000))

    def test_random_garbage(self):
        rng = np.random.default_rng(42)
        for _ in range(200):
            size = int(rng.integers(0, 200))
            data = rng.integers(0, 256, size=size, dtype=np.uint8).tobytes()
            if len(data) > 1 and data[1] == MESSAGE_ID_CPM:
                continue
            with pytest.raises(NotDecodable):
                cpm_codec.decode(data)


# ===== MESSAGE INVARIANTS =====

class TestMessage:
    def test_empty_container_rejected(self):
        with pytest.raises(ValueError):
            make_message(objects=())

    def test_object_limit(self):
        with pytest.raises(ValueError):
            make_message(tuple(make_entry(i % 256) for i in range(256)))

    def test_count_property(self):
        assert make_message((make_entry(),)).number_of_perceived_objects == 1
