"""
Tests for V2X-CPM Encoder / Decoder
====================================
Outbound message construction, inbound reconstruction, and the
encode → bytes → decode path between two stations.

pytest tests/test_cpm_encoder_decoder.py -v
"""

import math
import struct

import pytest
import sys, os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from v2x_cpm import cpm_codec
from v2x_cpm.cpm_coords import project
from v2x_cpm.cpm_decoder import CpmDecoder
from v2x_cpm.cpm_encoder import CpmEncoder, to_wire_entry, transmit
from v2x_cpm.cpm_messages import BTP_PORT_CPM, ITS_AID_CP, MESSAGE_ID_CPM, StationType, TransportType
from v2x_cpm.cpm_objects import ObjectStackManager
from v2x_cpm.cpm_transport import LoopbackGateway
from v2x_cpm.cpm_types import DetectedObject, EgoState, yaw_to_quaternion
from v2x_cpm.errors import NotDecodable, ProjectionError, SendRejected


# ===== FIXTURES =====

@pytest.fixture
def ego():
    return EgoState(x=1000.0, y=2000.0, latitude=48.1234567, longitude=11.1234567,
                    altitude=520.0, heading=0.0, speed=0.0, generation_delta_time=70000)


def snapshot_of(raw_objects, ego):
    stack = ObjectStackManager()
    stack.update_outbound_stack(raw_objects, ego, timestamp=0.0)
    return stack.current_outbound_snapshot()


def send_and_receive(raw_objects, ego, projector, encoder=None):
    encoder = encoder or CpmEncoder()
    message = encoder.encode(ego, snapshot_of(raw_objects, ego))
    return CpmDecoder(projector).decode(cpm_codec.encode(message))


# ===== ENCODER =====

class TestEncoder:
    def test_empty_snapshot(self, ego):
        message = CpmEncoder().encode(ego, snapshot_of([], ego))
        assert message.number_of_perceived_objects == 0
        assert message.perceived_objects is None

    def test_header_and_management(self, ego):
        message = CpmEncoder(station_id=42, station_type=StationType.BUS).encode(ego, [])
        assert message.header.message_id == MESSAGE_ID_CPM
        assert message.header.station_id == 42
        assert message.header.protocol_version == 1
        assert message.management.station_type is StationType.BUS
        ref = message.management.reference_position
        assert (ref.latitude, ref.longitude) == (481234567, 111234567)
        assert (ref.semi_major_confidence, ref.semi_minor_confidence) == (100, 100)

    def test_generation_delta_time_wraps(self, ego):
        assert CpmEncoder().encode(ego, []).generation_delta_time == 70000 % 65536

    def test_heading_and_speed(self, ego):
        ego.heading = math.pi / 2
        ego.speed = 13.89
        ovc = CpmEncoder().encode(ego, []).originating_vehicle
        assert ovc.heading_value == 0
        assert ovc.speed_value == 1389
        assert ovc.heading_confidence == 1

    def test_negative_speed_clamped(self, ego):
        ego.speed = -3.0
        assert CpmEncoder().encode(ego, []).originating_vehicle.speed_value == 0

    def test_axis_swap(self, ego):
        raw = DetectedObject(position=(1010.0, 2000.0, 0.0), dimensions=(4.5, 1.8, 1.5))
        entry = to_wire_entry(snapshot_of([raw], ego).objects[0])
        assert entry.planar_dimension_1 == 180
        assert entry.planar_dimension_2 == 450
        assert entry.vertical_dimension == 150

    def test_count_matches_entries(self, ego):
        raws = [DetectedObject(position=(1000.0 + i, 2000.0, 0.0)) for i in range(7)]
        message = CpmEncoder().encode(ego, snapshot_of(raws, ego))
        assert message.number_of_perceived_objects == 7
        assert [e.object_id for e in message.perceived_objects] == list(range(7))

    @pytest.mark.parametrize("kwargs", [
        {"station_id": 2**32}, {"station_id": -1},
        {"protocol_version": 256}, {"protocol_version": -1},
    ])
    def test_header_fields_must_fit(self, kwargs):
        with pytest.raises(ValueError):
            CpmEncoder(**kwargs)

    def test_header_field_limits_encode(self, ego):
        message = CpmEncoder(station_id=2**32 - 1, protocol_version=255).encode(ego, [])
        assert cpm_codec.decode(cpm_codec.encode(message)).header.station_id == 2**32 - 1

    @pytest.mark.parametrize("lat,lon", [
        (float('nan'), 11.0), (95.0, 11.0), (48.0, 200.0), (48.0, float('inf')),
    ])
    def test_invalid_reference_position(self, ego, lat, lon):
        ego.latitude, ego.longitude = lat, lon
        with pytest.raises(ProjectionError):
            CpmEncoder().encode(ego, [])


# ===== TRANSMIT =====

class TestTransmit:
    def test_single_hop_broadcast(self, ego):
        gateway = LoopbackGateway()
        confirm = transmit(gateway, CpmEncoder().encode(ego, []))
        assert confirm.accepted
        request = gateway.sent[0].request
        assert request.destination_port == BTP_PORT_CPM
        assert request.its_aid == ITS_AID_CP
        assert request.transport_type is TransportType.SHB

    def test_rejected(self, ego):
        with pytest.raises(SendRejected) as info:
            transmit(LoopbackGateway(accept=False), CpmEncoder().encode(ego, []))
        assert info.value.confirm is not None
        assert not info.value.confirm.accepted


# ===== DECODER =====

class TestDecoder:
    def test_empty_message(self, ego, stub_projector):
        assert send_and_receive([], ego, stub_projector) == []

    def test_garbage(self, stub_projector):
        with pytest.raises(NotDecodable):
            CpmDecoder(stub_projector).decode(b"\x13\x37")

    def test_latitude_beyond_pole_not_decodable(self, ego):
        data = bytearray(cpm_codec.encode(CpmEncoder().encode(ego, [])))
        struct.pack_into('>i', data, 9, 950000000)
        with pytest.raises(NotDecodable):
            CpmDecoder().decode(bytes(data))

    def test_object_ahead(self, ego, stub_projector):
        raw = DetectedObject(position=(1010.0, 2000.0, 0.0), dimensions=(4.5, 1.8, 1.5))
        (obj,) = send_and_receive([raw], ego, stub_projector)
        assert obj.object_id == 0
        assert obj.position_x == pytest.approx(1010.0, abs=0.01)
        assert obj.position_y == pytest.approx(2000.0, abs=0.01)
        assert (obj.shape_x, obj.shape_y, obj.shape_z) == pytest.approx((4.5, 1.8, 1.5))
        assert obj.yaw == pytest.approx(0.0, abs=math.radians(0.05))

    def test_heading_north(self, ego, stub_projector):
        ego.heading = math.pi / 2
        raw = DetectedObject(position=(1000.0, 2010.0, 0.0))
        (obj,) = send_and_receive([raw], ego, stub_projector)
        assert obj.position_x == pytest.approx(1000.0, abs=0.01)
        assert obj.position_y == pytest.approx(2010.0, abs=0.01)

    def test_heading_thirty_degrees(self, ego, stub_projector):
        ego.heading = math.radians(30.0)
        raws = [
            DetectedObject(position=(1000.0 + 10 * math.cos(ego.heading),
                                     2000.0 + 10 * math.sin(ego.heading), 0.0)),
            DetectedObject(position=(987.65, 2012.34, 0.0)),
        ]
        received = send_and_receive(raws, ego, stub_projector)
        for raw, obj in zip(raws, received):
            assert math.hypot(obj.position_x - raw.position[0],
                              obj.position_y - raw.position[1]) <= 0.01

    def test_yaw_within_quantization(self, ego, stub_projector):
        raw = DetectedObject(position=(1005.0, 2001.0, 0.0), orientation=yaw_to_quaternion(0.5))
        (obj,) = send_and_receive([raw], ego, stub_projector)
        assert abs(math.degrees(obj.yaw - 0.5)) <= 0.05
        assert obj.orientation == pytest.approx(yaw_to_quaternion(obj.yaw))

    def test_velocity_restored_in_world_frame(self, ego, stub_projector):
        ego.speed = 10.0
        raw = DetectedObject(position=(1020.0, 2000.0, 0.0), velocity=(15.0, 0.0))
        (obj,) = send_and_receive([raw], ego, stub_projector)
        assert obj.velocity == pytest.approx((15.0, 0.0), abs=1e-6)

    def test_sender_station_id(self, ego, stub_projector):
        raw = DetectedObject(position=(1001.0, 2000.0, 0.0))
        (obj,) = send_and_receive([raw], ego, stub_projector, CpmEncoder(station_id=7))
        assert obj.station_id == 7

    def test_real_projection(self, ego):
        ego.x, ego.y = project(ego.latitude, ego.longitude)
        raw = DetectedObject(position=(ego.x + 12.0, ego.y - 3.5, 0.0))
        (obj,) = send_and_receive([raw], ego, project)
        assert obj.position_x == pytest.approx(ego.x + 12.0, abs=0.01)
        assert obj.position_y == pytest.approx(ego.y - 3.5, abs=0.01)

    def test_reference_outside_grid(self, ego):
        ego.latitude = 85.0
        message = CpmEncoder().encode(ego, [])
        with pytest.raises(ProjectionError):
            CpmDecoder().decode(cpm_codec.encode(message))
