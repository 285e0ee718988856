import pytest
from lartpc_geometry.channel_map import AuxDetChannelMapAlg, OneToOneAuxDetChannelMapAlg
from lartpc_geometry.geometry_types import Transform, Shape, AuxDetGeo, AuxDetSensitiveGeo
from lartpc_geometry.hierarchy import Hierarchy
from lartpc_geometry.exceptions import (
    NoSuchElement, ChannelOutOfRange, NoSensitiveTable, GeometryError, HierarchyNotSorted
)


@pytest.fixture
def channel_map():
    alg = AuxDetChannelMapAlg()
    alg.ad_geo_to_name = {0: "volAuxDet0", 1: "volAuxDet1", 2: "volAuxDet2"}
    alg.ad_geo_to_channel_and_sv = {
        0: [(0, 0), (1, 0), (2, 1), (3, 1)],
        2: [(0, 1)],
    }
    return alg

def test_name_to_element(channel_map):
    assert channel_map.name_to_element("volAuxDet1") == 1
    with pytest.raises(NoSuchElement) as excinfo:
        channel_map.name_to_element("volAuxDet9")
    assert excinfo.value.name == "volAuxDet9"

def test_name_lookup_returns_lowest_index_on_duplicates(channel_map):
    channel_map.ad_geo_to_name[5] = "volAuxDet2"
    assert channel_map.name_to_element("volAuxDet2") == 2

def test_channel_round_trip(channel_map):
    n_channels = len(channel_map.ad_geo_to_channel_and_sv[0])

    assert channel_map.channel_to_sensitive_element("volAuxDet0", n_channels - 1) == (0, 1)
    with pytest.raises(ChannelOutOfRange) as excinfo:
        channel_map.channel_to_sensitive_element("volAuxDet0", n_channels)
    assert excinfo.value.size == n_channels
    assert excinfo.value.index == 0

def test_negative_channel_is_out_of_range(channel_map):
    with pytest.raises(ChannelOutOfRange):
        channel_map.channel_to_sensitive_element("volAuxDet2", -1)

def test_missing_sensitive_table(channel_map):
    with pytest.raises(NoSensitiveTable) as excinfo:
        channel_map.channel_to_sensitive_element("volAuxDet1", 0)
    assert excinfo.value.index == 1

def test_unknown_name_checked_before_channel(channel_map):
    with pytest.raises(NoSuchElement):
        channel_map.channel_to_sensitive_element("nope", 10**6)

def test_base_class_needs_derived_initialize():
    with pytest.raises(NotImplementedError):
        AuxDetChannelMapAlg().initialize([])


def make_aux_det(index, n_strips, y):
    parent = Transform.translation(0, y, 0)
    strips = [AuxDetSensitiveGeo(f"volAuxDetSensitive{s}",
                                 parent.compose(Transform.translation(-40 + 20 * s, 0, 0)),
                                 Shape.box(10, 1, 100))
              for s in reversed(range(n_strips))]
    return AuxDetGeo(f"volAuxDet{index}", parent, Shape.box(50, 1, 100), strips)

def test_one_to_one_map_through_hierarchy():
    hierarchy = Hierarchy(aux_dets=[make_aux_det(1, 4, 50), make_aux_det(0, 2, -50)])

    with pytest.raises(HierarchyNotSorted):
        hierarchy.set_channel_map(OneToOneAuxDetChannelMapAlg())

    hierarchy.sort_hierarchy()
    with pytest.raises(GeometryError):
        hierarchy.name_to_aux_det("volAuxDet0")

    hierarchy.set_channel_map(OneToOneAuxDetChannelMapAlg())

    assert hierarchy.name_to_aux_det("volAuxDet1") == 1
    assert hierarchy.channel_to_sensitive_aux_det("volAuxDet1", 3) == (1, 3)
    with pytest.raises(ChannelOutOfRange):
        hierarchy.channel_to_sensitive_aux_det("volAuxDet1", 4)

    # the channel map and the geometry agree on the strip a point falls in
    ad, sv = hierarchy.nearest_sensitive_aux_det((-40 + 20 * 3, 50, 0))
    assert (ad, sv) == hierarchy.channel_to_sensitive_aux_det("volAuxDet1", 3)
    assert hierarchy.aux_det_sensitive((ad, sv)).name == "volAuxDetSensitive3"

def test_channel_map_geometry_queries():
    aux_dets = [make_aux_det(0, 2, 0)]
    alg = OneToOneAuxDetChannelMapAlg()
    alg.initialize(aux_dets)

    assert alg.nearest_element((0, 0, 0), aux_dets) == 0
    # strips are still in input order here: volAuxDetSensitive1 first
    assert alg.nearest_sensitive_element((-20, 0, 0), aux_dets) == (0, 0)

def test_channel_to_element_ignores_channel(channel_map):
    assert channel_map.channel_to_element("volAuxDet2", 99) == 2
