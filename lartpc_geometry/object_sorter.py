# lartpc_geometry/object_sorter.py
"""
Ordering policies fixing the sibling order, and therefore the numeric IDs,
of every level of the hierarchy.

All sorts happen in place on the sibling lists. Python's sort is stable, so
siblings a comparator can't tell apart keep their input order.
"""
import functools
import logging
import re

from .config import DEFAULT_SORT_TOLERANCE, DEFAULT_AUX_DET_PREFIX, DEFAULT_AUX_DET_SENSITIVE_PREFIX
from .exceptions import MalformedElementName, UnknownDriftDirection
from .geometry_types import DriftDirection

logger = logging.getLogger(__name__)


def _compare(a, b):
    # coordinates come in as numpy scalars
    a, b = float(a), float(b)
    return -1 if a < b else (1 if a > b else 0)


def _compare_with_tolerance(a, b, tolerance):
    """Like _compare, but values closer than `tolerance` are equal."""
    if abs(a - b) > tolerance:
        return -1 if a < b else 1
    return 0


def _sort_in_place(elements, comparator):
    elements.sort(key=functools.cmp_to_key(comparator))


class GeoObjectSorter:
    """
    Interface of an ordering policy: one method per element kind.

    Subclasses implement every `sort_*` method. Optical detectors have a
    default order (center z, then y, then x, all descending) that
    subclasses may keep.
    """

    def __init__(self, tolerance=DEFAULT_SORT_TOLERANCE):
        self.tolerance = tolerance

    def sort_aux_dets(self, aux_dets):
        raise NotImplementedError

    def sort_aux_det_sensitive(self, sensitive_volumes):
        raise NotImplementedError

    def sort_cryostats(self, cryostats):
        raise NotImplementedError

    def sort_tpcs(self, tpcs):
        raise NotImplementedError

    def sort_planes(self, planes, drift_direction, tpc_name=None):
        raise NotImplementedError

    def sort_wires(self, wires):
        raise NotImplementedError

    def sort_op_dets(self, opdets):
        tol = self.tolerance

        def compare_op_dets(o1, o2):
            c1, c2 = o1.center(), o2.center()
            order = _compare_with_tolerance(c2[2], c1[2], tol)
            if order == 0:
                order = _compare_with_tolerance(c2[1], c1[1], tol)
            if order == 0:
                order = _compare(c2[0], c1[0])
            return order

        _sort_in_place(opdets, compare_op_dets)


class StandardGeoObjectSorter(GeoObjectSorter):
    """The standard ordering: name suffixes for auxiliary detectors, positions for the rest."""

    def __init__(self, tolerance=DEFAULT_SORT_TOLERANCE,
                 aux_det_prefix=DEFAULT_AUX_DET_PREFIX,
                 aux_det_sensitive_prefix=DEFAULT_AUX_DET_SENSITIVE_PREFIX):
        super().__init__(tolerance)
        self.aux_det_prefix = aux_det_prefix
        self.aux_det_sensitive_prefix = aux_det_sensitive_prefix

    @classmethod
    def from_config(cls, config):
        return cls(config.sort_tolerance, config.aux_det_prefix, config.aux_det_sensitive_prefix)

    @staticmethod
    def name_number(name, prefix):
        """
        Integer encoded after `prefix` in a volume name, e.g. 12 for
        "volAuxDet12". Raises MalformedElementName if there is none.
        """
        match = re.match(re.escape(prefix) + r'(\d+)', name or "")
        if match is None:
            raise MalformedElementName(name, prefix)
        return int(match.group(1))

    def sort_aux_dets(self, aux_dets):
        # sort based off of GDML name, assuming ordering is encoded
        prefix = self.aux_det_prefix
        aux_dets.sort(key=lambda ad: self.name_number(ad.name, prefix))

    def sort_aux_det_sensitive(self, sensitive_volumes):
        prefix = self.aux_det_sensitive_prefix
        sensitive_volumes.sort(key=lambda sv: self.name_number(sv.name, prefix))

    def sort_cryostats(self, cryostats):
        cryostats.sort(key=lambda c: c.local_to_world((0.0, 0.0, 0.0))[0])

    def sort_tpcs(self, tpcs):
        tpcs.sort(key=lambda t: t.local_to_world((0.0, 0.0, 0.0))[0])

    def sort_planes(self, planes, drift_direction, tpc_name=None):
        """
        Orders the planes so that the plane number increases along the drift
        direction; planes at the same x are ordered by z, then by y.
        """
        drift_direction = DriftDirection.from_value(drift_direction)
        if drift_direction is DriftDirection.UNKNOWN:
            raise UnknownDriftDirection(tpc_name)

        # drift toward -x: the plane with the largest x comes first
        x_sign = -1.0 if drift_direction is DriftDirection.NEG_X else 1.0
        tol = self.tolerance

        def compare_planes(p1, p2):
            xyz1 = p1.local_to_world((0.0, 0.0, 0.0))
            xyz2 = p2.local_to_world((0.0, 0.0, 0.0))
            order = _compare_with_tolerance(x_sign * xyz1[0], x_sign * xyz2[0], tol)
            # Only x follows the drift. The z and y tie-breaks stay ascending
            # for +x TPCs too, so plane numbers there differ from a full
            # reverse sort (which would give z, then y, descending).
            if order == 0:
                order = _compare_with_tolerance(xyz1[2], xyz2[2], tol)
            if order == 0:
                order = _compare(xyz1[1], xyz2[1])
            return order

        _sort_in_place(planes, compare_planes)
        logger.debug("Sorted %d planes of TPC '%s' along drift %s", len(planes), tpc_name, drift_direction.value)

    def sort_wires(self, wires):
        tol = self.tolerance

        def compare_wires(w1, w2):
            xyz1, xyz2 = w1.center(), w2.center()
            # z first, then y, then x
            order = _compare_with_tolerance(xyz1[2], xyz2[2], tol)
            if order == 0:
                order = _compare_with_tolerance(xyz1[1], xyz2[1], tol)
            if order == 0:
                order = _compare(xyz1[0], xyz2[0])
            return order

        _sort_in_place(wires, compare_wires)
