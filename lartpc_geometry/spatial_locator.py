# lartpc_geometry/spatial_locator.py
"""
Spatial queries against a sorted hierarchy.

Two query families live here and they differ:

- containment (`position_to_element`, `find_element`, and the two-stage
  `nearest_element` / `nearest_sensitive_element`): the candidates are
  scanned in sibling order and the FIRST one whose tolerance-inflated shape
  contains the point wins, even if a later sibling is geometrically closer;
- true nearest (`closest_element`): the candidate with the smallest
  `distance_to_point` wins.

Candidates are duck-typed: anything with `world_to_local()`, a `shape`
(`half_width1`, `half_width2`, `half_height`, `length`) and, for the true
nearest query, `distance_to_point()`.
"""
import logging

from .config import GeometryConfig
from .exceptions import ElementNotFound

logger = logging.getLogger(__name__)


def contains_position(element, point, wiggle=1.0, tolerance=0.0):
    """
    Band test of a world point against the element's box or trapezoid.

    Every half extent is multiplied by `wiggle` and then widened by
    `tolerance`. The x band narrows linearly from `half_width1` at
    z = -length/2 to `half_width2` at z = +length/2.
    """
    shape = element.shape
    x, y, z = element.world_to_local(point)

    if abs(z) > shape.half_length * wiggle + tolerance:
        return False
    if abs(y) > shape.half_height * wiggle + tolerance:
        return False
    # if the element is a box, half_width1 == half_width2 and the band is flat
    half_width = shape.half_width_at(z) * wiggle
    return -half_width - tolerance <= x <= half_width + tolerance


def find_element(elements, point, wiggle=1.0, tolerance=0.0):
    """Index of the first element containing the point, or None."""
    for index, element in enumerate(elements):
        if contains_position(element, point, wiggle, tolerance):
            return index
    return None


def position_to_element(elements, point, wiggle=1.0, tolerance=0.0, kind="element", within=None):
    """Index of the first element containing the point; raises ElementNotFound on a miss."""
    index = find_element(elements, point, wiggle, tolerance)
    if index is None:
        logger.debug("No %s contains position %s (wiggle=%g, tolerance=%g)",
                     kind, tuple(float(c) for c in point), wiggle, tolerance)
        raise ElementNotFound(point, kind, within)
    return index


def nearest_element(elements, point, wiggle=1.0, tolerance=0.0, kind="element"):
    """
    Index of the top-level element "nearest" to the point.

    This is the containment test with first-match semantics, not a distance
    search; see `closest_element` for that.
    """
    return position_to_element(elements, point, wiggle, tolerance, kind=kind)


def nearest_sensitive_element(elements, point, wiggle=1.0, tolerance=0.0,
                              kind="AuxDet", sensitive_kind="AuxDetSensitive"):
    """
    Returns (element index, sensitive volume index) for the point.

    The element is picked with `nearest_element`, then the same band test
    runs over that element's sensitive volumes.
    """
    ad = nearest_element(elements, point, wiggle, tolerance, kind=kind)
    sensitive = elements[ad].sensitive_volumes
    sv = find_element(sensitive, point, wiggle, tolerance)
    if sv is None:
        raise ElementNotFound(point, sensitive_kind, within=elements[ad].name)
    return ad, sv


def closest_element(elements, point):
    """Index of the element with the smallest distance to the point, None if there are none."""
    closest = None
    closest_dist = float('inf')
    for index, element in enumerate(elements):
        this_dist = element.distance_to_point(point)
        if this_dist < closest_dist:
            closest_dist = this_dist
            closest = index
    return closest


class SpatialLocator:
    """Query functions bound to the tolerance and wiggle of a GeometryConfig."""

    def __init__(self, config=None):
        self.config = config if config is not None else GeometryConfig()

    def wiggle_or_default(self, wiggle):
        return self.config.wiggle if wiggle is None else wiggle

    def tolerance_or_default(self, tolerance):
        return self.config.query_tolerance if tolerance is None else tolerance

    def contains(self, element, point, wiggle=None, tolerance=None):
        return contains_position(element, point, self.wiggle_or_default(wiggle), self.tolerance_or_default(tolerance))

    def find_element(self, elements, point, wiggle=None, tolerance=None):
        return find_element(elements, point, self.wiggle_or_default(wiggle), self.tolerance_or_default(tolerance))

    def position_to_element(self, elements, point, wiggle=None, tolerance=None, kind="element", within=None):
        return position_to_element(elements, point, self.wiggle_or_default(wiggle), self.tolerance_or_default(tolerance),
                                   kind=kind, within=within)

    def nearest_element(self, elements, point, wiggle=None, tolerance=None, kind="element"):
        return nearest_element(elements, point, self.wiggle_or_default(wiggle), self.tolerance_or_default(tolerance),
                               kind=kind)

    def nearest_sensitive_element(self, elements, point, wiggle=None, tolerance=None, kind="AuxDet"):
        return nearest_sensitive_element(elements, point, self.wiggle_or_default(wiggle),
                                         self.tolerance_or_default(tolerance), kind=kind)

    def closest_element(self, elements, point):
        return closest_element(elements, point)
