# lartpc_geometry/hierarchy.py
import logging

from .config import GeometryConfig
from .exceptions import GeometryError, HierarchyNotSorted, ElementOutOfRange
from .geometry_types import CryostatID, AuxDetID, DriftDirection
from .object_sorter import StandardGeoObjectSorter
from .spatial_locator import SpatialLocator

logger = logging.getLogger(__name__)


class Hierarchy:
    """
    Holds the whole detector: the cryostats (with their TPCs, planes, wires
    and optical detectors) and, independently, the auxiliary detectors.

    The hierarchy is sorted exactly once; after that it is only read.
    """
    def __init__(self, cryostats=None, aux_dets=None, config=None, name=None):
        self.name = name
        self.cryostats = list(cryostats) if cryostats else []
        self.aux_dets = list(aux_dets) if aux_dets else []
        self.config = config if config is not None else GeometryConfig()
        self.locator = SpatialLocator(self.config)
        self.channel_map = None
        self._sorted = False

    @property
    def is_sorted(self):
        return self._sorted

    # --- Sorting ---
    def sort_hierarchy(self, sorter=None, drift_direction=None):
        """
        Sorts every sibling list and stamps the identifiers, top down.

        `drift_direction` applies to the TPCs that don't carry their own.
        Raises UnknownDriftDirection if the planes of a TPC can't be ordered.
        """
        if self._sorted:
            raise GeometryError("Hierarchy is already sorted; sibling order is frozen")
        if sorter is None:
            sorter = StandardGeoObjectSorter.from_config(self.config)
        drift_direction = DriftDirection.from_value(drift_direction)

        sorter.sort_cryostats(self.cryostats)
        for cryostat in self.cryostats:
            cryostat.sort_sub_volumes(sorter, drift_direction)

        sorter.sort_aux_dets(self.aux_dets)
        for aux_det in self.aux_dets:
            aux_det.sort_sub_volumes(sorter)

        self.update_after_sorting()
        self._sorted = True
        logger.info("Sorted geometry '%s': %d cryostats, %d TPCs, %d auxiliary detectors",
                    self.name or "", len(self.cryostats), self.ntpc(), len(self.aux_dets))
        return self

    def update_after_sorting(self):
        for c, cryostat in enumerate(self.cryostats):
            cryostat.update_after_sorting(CryostatID(c))
        for a, aux_det in enumerate(self.aux_dets):
            aux_det.update_after_sorting(AuxDetID(a))

    def _require_sorted(self):
        if not self._sorted:
            raise HierarchyNotSorted("The hierarchy must be sorted before identifiers are used")

    # --- Access by identifier ---
    def ncryostats(self):
        return len(self.cryostats)

    def ntpc(self, cryostat=None):
        if cryostat is None:
            return sum(c.ntpc() for c in self.cryostats)
        return self.cryostat(cryostat).ntpc()

    def cryostat(self, cryostat_id):
        index = cryostat_id[0] if isinstance(cryostat_id, tuple) else cryostat_id
        if not 0 <= index < len(self.cryostats):
            raise ElementOutOfRange("cryostat", index)
        return self.cryostats[index]

    def tpc(self, tpc_id):
        return self.cryostat(tpc_id[0]).tpc(tpc_id[1])

    def plane(self, plane_id):
        return self.tpc(plane_id[:2]).plane(plane_id[2])

    def wire(self, wire_id):
        return self.plane(wire_id[:3]).wire(wire_id[3])

    def op_det(self, opdet_id):
        return self.cryostat(opdet_id[0]).op_det(opdet_id[1])

    def aux_det(self, aux_det_id):
        index = aux_det_id[0] if isinstance(aux_det_id, tuple) else aux_det_id
        if not 0 <= index < len(self.aux_dets):
            raise ElementOutOfRange("AuxDet", index)
        return self.aux_dets[index]

    def aux_det_sensitive(self, sensitive_id):
        return self.aux_det(sensitive_id[0]).sensitive_volume(sensitive_id[1])

    def iterate_tpcs(self):
        for cryostat in self.cryostats:
            yield from cryostat.tpcs

    def iterate_planes(self):
        for tpc in self.iterate_tpcs():
            yield from tpc.planes

    def iterate_wires(self):
        for plane in self.iterate_planes():
            yield from plane.wires

    def max_planes(self):
        return max((c.max_planes() for c in self.cryostats), default=0)

    def max_wires(self):
        return max((c.max_wires() for c in self.cryostats), default=0)

    # --- Position queries ---
    def find_cryostat_at_position(self, point, wiggle=None):
        return self.locator.find_element(self.cryostats, point, wiggle)

    def position_to_cryostat_id(self, point, wiggle=None):
        self._require_sorted()
        icryo = self.find_cryostat_at_position(point, wiggle)
        return self.cryostats[icryo].id if icryo is not None else None

    def position_to_cryostat(self, point, wiggle=None):
        icryo = self.locator.position_to_element(self.cryostats, point, wiggle, kind="cryostat")
        return self.cryostats[icryo]

    def position_to_tpc_id(self, point, wiggle=None):
        """TPCID of the TPC containing the point, or None."""
        self._require_sorted()
        icryo = self.find_cryostat_at_position(point, wiggle)
        if icryo is None:
            return None
        return self.cryostats[icryo].position_to_tpc_id(
            point, self.locator.wiggle_or_default(wiggle), self.config.query_tolerance)

    def position_to_tpc(self, point, wiggle=None):
        wiggle = self.locator.wiggle_or_default(wiggle)
        cryostat = self.position_to_cryostat(point, wiggle)
        return cryostat.position_to_tpc(point, wiggle, self.config.query_tolerance)

    def closest_op_det_id(self, point):
        """OpDetID of the optical detector closest to the point in its cryostat, or None."""
        self._require_sorted()
        icryo = self.find_cryostat_at_position(point)
        if icryo is None:
            return None
        opdet = self.cryostats[icryo].closest_op_det_geo(point)
        return opdet.id if opdet is not None else None

    def nearest_aux_det(self, point, wiggle=None, tolerance=None):
        return self.locator.nearest_element(self.aux_dets, point, wiggle, tolerance, kind="AuxDet")

    def nearest_sensitive_aux_det(self, point, wiggle=None, tolerance=None):
        return self.locator.nearest_sensitive_element(self.aux_dets, point, wiggle, tolerance)

    # --- Channel mapping ---
    def set_channel_map(self, channel_map):
        self._require_sorted()
        channel_map.initialize(self.aux_dets)
        self.channel_map = channel_map
        return channel_map

    def _require_channel_map(self):
        if self.channel_map is None:
            raise GeometryError("No auxiliary detector channel map has been set")
        return self.channel_map

    def name_to_aux_det(self, name):
        return self._require_channel_map().name_to_element(name)

    def channel_to_sensitive_aux_det(self, name, channel):
        return self._require_channel_map().channel_to_sensitive_element(name, channel)

    # --- Reporting ---
    def info(self, verbosity=1):
        lines = [f"Detector '{self.name or ''}' has {len(self.cryostats)} cryostats "
                 f"and {len(self.aux_dets)} auxiliary detectors"]
        for cryostat in self.cryostats:
            lines.append(cryostat.cryostat_info("  ", verbosity))
        if verbosity >= 2:
            for aux_det in self.aux_dets:
                lines.append(f"  AuxDet '{aux_det.name}' {aux_det.id}: "
                             f"{aux_det.nsensitive_volume()} sensitive volumes")
        return "\n".join(lines)

    def to_dict(self):
        return {
            "name": self.name,
            "sorted": self._sorted,
            "config": self.config.to_dict(),
            "cryostats": [c.to_dict() for c in self.cryostats],
            "aux_dets": [a.to_dict() for a in self.aux_dets]
        }
