# lartpc_geometry/geometry_builder.py
import json
import logging
import uuid

from .config import GeometryConfig
from .exceptions import GeometryDescriptionError
from .expression_evaluator import ExpressionEvaluator
from .geometry_types import (
    Transform, Shape, CryostatGeo, TPCGeo, PlaneGeo, WireGeo, OpDetGeo,
    AuxDetGeo, AuxDetSensitiveGeo, DriftDirection, DEFAULT_LUNIT, DEFAULT_AUNIT
)
from .hierarchy import Hierarchy

logger = logging.getLogger(__name__)


class GeometryBuilder:
    """
    Builds an unsorted Hierarchy from a nested geometry description.

    Every numeric field may be a number or an expression string; expressions
    can use the names listed under "defines", math functions and the unit
    symbols mm, cm, m, deg and rad. Positions and rotations are given in the
    frame of the parent element.
    """
    def __init__(self, config=None):
        self.config = config if config is not None else GeometryConfig()
        self.evaluator = ExpressionEvaluator()

    def build_from_json_file(self, path):
        with open(path, 'r') as f:
            return self.build_from_dict(json.load(f))

    def build_from_json_string(self, json_string):
        try:
            description = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise GeometryDescriptionError(f"Invalid geometry description: {e}") from e
        return self.build_from_dict(description)

    def build_from_dict(self, description):
        # Fresh symbol table for every description
        self.evaluator = ExpressionEvaluator()
        self._resolve_defines(description.get('defines', {}))

        world = Transform()
        cryostats = [self._build_cryostat(c, world) for c in description.get('cryostats', [])]
        aux_dets = [self._build_aux_det(a, world) for a in description.get('aux_dets', [])]

        hierarchy = Hierarchy(cryostats, aux_dets, config=self.config, name=description.get('name'))
        logger.info("Built geometry '%s' with %d cryostats and %d auxiliary detectors",
                    hierarchy.name or "", len(cryostats), len(aux_dets))
        return hierarchy

    # --- Expressions ---
    def _resolve_defines(self, defines):
        """Evaluates the defines in as many passes as their dependencies need."""
        unresolved = dict(defines)
        while unresolved:
            still_unresolved = {}
            for name, expression in unresolved.items():
                success, value = self.evaluator.evaluate(expression)
                if success:
                    self.evaluator.add_symbol(name, value)
                else:
                    still_unresolved[name] = expression # Depends on another define, try again next pass

            if len(still_unresolved) == len(unresolved):
                raise GeometryDescriptionError(
                    f"Could not resolve defines (circular dependency or missing variable): {sorted(still_unresolved)}")
            unresolved = still_unresolved

    def _eval(self, expression, what, unit=None, category="length"):
        if expression is None:
            raise GeometryDescriptionError(f"Missing value for {what}")

        expr_to_eval = expression
        if unit:
            if not self.evaluator.has_symbol(unit):
                raise GeometryDescriptionError(f"Unknown {category} unit '{unit}' for {what}")
            expr_to_eval = f"({expression}) * {unit}"

        success, value = self.evaluator.evaluate(expr_to_eval)
        if not success:
            raise GeometryDescriptionError(f"Could not evaluate {what} '{expression}': {value}")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise GeometryDescriptionError(f"{what} '{expression}' is not a number")

    def _eval_vector(self, data, what, default_unit, category, default=0.0):
        if not data:
            return None
        unit = data.get('unit', default_unit)
        return {axis: self._eval(data.get(axis, default), f"{what}.{axis}", unit, category)
                for axis in ('x', 'y', 'z')}

    # --- Placement and shape ---
    def _placement(self, data, parent_transform, what):
        position = self._eval_vector(data.get('position'), f"{what} position", DEFAULT_LUNIT, "length")
        rotation = self._eval_vector(data.get('rotation'), f"{what} rotation", DEFAULT_AUNIT, "angle")
        return parent_transform.compose(Transform.from_placement(position, rotation))

    def _shape(self, data, what):
        """Converts a GDML-like shape (full lengths) to half extents."""
        if not data:
            return Shape.box(0.0, 0.0, 0.0)

        shape_type = data.get('type', 'box')
        unit = data.get('lunit', DEFAULT_LUNIT)

        def dim(key, default=None):
            return self._eval(data.get(key, default), f"{what} shape '{key}'", unit)

        if shape_type == 'box':
            return Shape.box(dim('x') / 2, dim('y') / 2, dim('z') / 2)
        elif shape_type == 'trd':
            y1 = dim('y1', data.get('y'))
            y2 = dim('y2', data.get('y1', data.get('y')))
            if abs(y1 - y2) > self.config.sort_tolerance:
                logger.warning("Shape of %s has y1=%g and y2=%g; using the larger half height.", what, y1, y2)
            return Shape.trapezoid(dim('x1') / 2, dim('x2') / 2, max(y1, y2) / 2, dim('z') / 2)
        elif shape_type == 'tube':
            rmax = dim('rmax')
            shape = Shape.box(rmax, rmax, dim('z') / 2)
            shape.type = 'tube'
            return shape

        raise GeometryDescriptionError(f"Unsupported shape type '{shape_type}' for {what}")

    def _name(self, data, kind):
        return data.get('name') or f"{kind}_{uuid.uuid4().hex[:6]}"

    # --- Elements ---
    def _build_cryostat(self, data, parent_transform):
        name = self._name(data, "cryostat")
        transform = self._placement(data, parent_transform, name)
        tpcs = [self._build_tpc(t, transform) for t in data.get('tpcs', [])]
        opdets = [self._build_simple(OpDetGeo, o, transform, "opdet") for o in data.get('opdets', [])]
        return CryostatGeo(name, transform, self._shape(data.get('shape'), name), tpcs, opdets)

    def _build_tpc(self, data, parent_transform):
        name = self._name(data, "tpc")
        transform = self._placement(data, parent_transform, name)
        try:
            drift = DriftDirection.from_value(data.get('drift_direction'))
        except ValueError as e:
            raise GeometryDescriptionError(f"TPC '{name}': {e}") from e
        planes = [self._build_plane(p, transform) for p in data.get('planes', [])]
        return TPCGeo(name, transform, self._shape(data.get('shape'), name), planes, drift)

    def _build_plane(self, data, parent_transform):
        name = self._name(data, "plane")
        transform = self._placement(data, parent_transform, name)
        wires = [self._build_simple(WireGeo, w, transform, "wire") for w in data.get('wires', [])]
        if data.get('wire_replica'):
            wires.extend(self._replicate_wires(data['wire_replica'], transform, name))
        return PlaneGeo(name, transform, self._shape(data.get('shape'), name), wires)

    def _replicate_wires(self, replica, parent_transform, plane_name):
        """
        Unrolls a replica rule into wires: `number` copies spaced by `width`
        along `direction`, centered on the plane origin and shifted by `offset`.
        """
        what = f"wire replica of {plane_name}"
        number = int(self._eval(replica.get('number'), f"{what} number", category="count"))
        unit = replica.get('unit', DEFAULT_LUNIT)
        width = self._eval(replica.get('width'), f"{what} width", unit)
        offset = self._eval(replica.get('offset', 0), f"{what} offset", unit)
        direction = self._eval_vector(replica.get('direction', {'x': 0, 'y': 0, 'z': 1}),
                                      f"{what} direction", None, "dimensionless")
        rotation = self._eval_vector(replica.get('rotation'), f"{what} rotation", DEFAULT_AUNIT, "angle")
        shape = self._shape(replica.get('shape'), what)
        base_name = replica.get('name', f"{plane_name}_wire")

        norm = sum(v * v for v in direction.values()) ** 0.5
        if norm == 0:
            raise GeometryDescriptionError(f"{what} has a null direction")

        wires = []
        for i in range(number):
            step = -width * (number - 1) / 2.0 + i * width + offset
            position = {axis: direction[axis] / norm * step for axis in ('x', 'y', 'z')}
            transform = parent_transform.compose(Transform.from_placement(position, rotation))
            wires.append(WireGeo(f"{base_name}_{i}", transform, Shape.from_dict(shape.to_dict())))
        return wires

    def _build_simple(self, cls, data, parent_transform, kind):
        name = self._name(data, kind)
        transform = self._placement(data, parent_transform, name)
        return cls(name, transform, self._shape(data.get('shape'), name))

    def _build_aux_det(self, data, parent_transform):
        name = self._name(data, "auxdet")
        transform = self._placement(data, parent_transform, name)
        sensitive = [self._build_simple(AuxDetSensitiveGeo, s, transform, "auxdetsensitive")
                     for s in data.get('sensitive', [])]
        return AuxDetGeo(name, transform, self._shape(data.get('shape'), name), sensitive)
