# lartpc_geometry/geometry_types.py

import enum
from collections import namedtuple

import numpy as np
from scipy.spatial.transform import Rotation as R

from .exceptions import ElementOutOfRange
from .spatial_locator import contains_position, find_element, position_to_element, closest_element

# Internal units are cm for length, rad for angle
DEFAULT_LUNIT = "cm"
DEFAULT_AUNIT = "rad"


class DriftDirection(enum.Enum):
    """Sign of the drift along the x axis; plane numbers increase along it."""
    POS_X = "+x"
    NEG_X = "-x"
    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value):
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, cls):
            return value
        aliases = {
            "+x": cls.POS_X, "posx": cls.POS_X, "pos_x": cls.POS_X, "kposx": cls.POS_X,
            "-x": cls.NEG_X, "negx": cls.NEG_X, "neg_x": cls.NEG_X, "knegx": cls.NEG_X,
            "unknown": cls.UNKNOWN, "kunknowndrift": cls.UNKNOWN,
        }
        key = str(value).strip().lower()
        if key not in aliases:
            raise ValueError(f"Unknown drift direction '{value}'")
        return aliases[key]


# --- Identifiers ---
# Each identifier embeds the ranks of all its ancestors.

class CryostatID(namedtuple("CryostatID", "cryostat")):
    __slots__ = ()

    def __str__(self):
        return f"C:{self.cryostat}"


class TPCID(namedtuple("TPCID", "cryostat tpc")):
    __slots__ = ()

    @property
    def cryostat_id(self):
        return CryostatID(self.cryostat)

    def __str__(self):
        return f"C:{self.cryostat} T:{self.tpc}"


class PlaneID(namedtuple("PlaneID", "cryostat tpc plane")):
    __slots__ = ()

    @property
    def tpc_id(self):
        return TPCID(self.cryostat, self.tpc)

    def __str__(self):
        return f"C:{self.cryostat} T:{self.tpc} P:{self.plane}"


class WireID(namedtuple("WireID", "cryostat tpc plane wire")):
    __slots__ = ()

    @property
    def plane_id(self):
        return PlaneID(self.cryostat, self.tpc, self.plane)

    def __str__(self):
        return f"C:{self.cryostat} T:{self.tpc} P:{self.plane} W:{self.wire}"


class OpDetID(namedtuple("OpDetID", "cryostat opdet")):
    __slots__ = ()

    def __str__(self):
        return f"C:{self.cryostat} O:{self.opdet}"


class AuxDetID(namedtuple("AuxDetID", "aux_det")):
    __slots__ = ()

    def __str__(self):
        return f"AD:{self.aux_det}"


class AuxDetSensitiveID(namedtuple("AuxDetSensitiveID", "aux_det sensitive")):
    __slots__ = ()

    def __str__(self):
        return f"AD:{self.aux_det} S:{self.sensitive}"


# --- Geometric primitives ---

class Transform:
    """Local-to-world affine transformation held as a 4x4 numpy matrix."""
    def __init__(self, matrix=None):
        self.matrix = np.eye(4) if matrix is None else np.array(matrix, dtype=float)
        if self.matrix.shape != (4, 4):
            raise ValueError(f"Transform matrix must be 4x4, got {self.matrix.shape}")
        self._inverse = np.linalg.inv(self.matrix)

    @classmethod
    def from_placement(cls, position=None, rotation=None):
        """
        Builds the transform of a placement: rotation (rad, applied about
        x, then y, then z) followed by the translation.
        """
        pos = position or {'x': 0, 'y': 0, 'z': 0}
        rot = rotation or {'x': 0, 'y': 0, 'z': 0}

        matrix = np.eye(4)
        matrix[:3, :3] = R.from_euler('xyz', [rot.get('x', 0), rot.get('y', 0), rot.get('z', 0)]).as_matrix()
        matrix[:3, 3] = [pos.get('x', 0), pos.get('y', 0), pos.get('z', 0)]
        return cls(matrix)

    @classmethod
    def translation(cls, x=0.0, y=0.0, z=0.0):
        return cls.from_placement({'x': x, 'y': y, 'z': z})

    def compose(self, local):
        """Returns the transform of `local` expressed in this transform's parent frame."""
        return Transform(self.matrix @ local.matrix)

    def local_to_world(self, point):
        p = np.append(np.asarray(point, dtype=float), 1.0)
        return (self.matrix @ p)[:3]

    def world_to_local(self, point):
        p = np.append(np.asarray(point, dtype=float), 1.0)
        return (self._inverse @ p)[:3]

    def local_to_world_vect(self, vect):
        return self.matrix[:3, :3] @ np.asarray(vect, dtype=float)

    def origin(self):
        return self.matrix[:3, 3].copy()

    def to_dict(self):
        return {"matrix": self.matrix.tolist()}

    @classmethod
    def from_dict(cls, data):
        return cls(data.get("matrix"))


class Shape:
    """
    Half extents of a box-like volume.

    A trapezoid has half width `half_width1` on its -z face and `half_width2`
    on its +z face; a box has both equal. `length` is the full extent along z.
    """
    def __init__(self, half_width1, half_width2, half_height, length, shape_type="box"):
        self.type = shape_type
        self.half_width1 = float(half_width1)
        self.half_width2 = float(half_width2)
        self.half_height = float(half_height)
        self.length = float(length)

    @classmethod
    def box(cls, half_x, half_y, half_z):
        return cls(half_x, half_x, half_y, 2.0 * half_z, "box")

    @classmethod
    def trapezoid(cls, half_width1, half_width2, half_height, half_length):
        return cls(half_width1, half_width2, half_height, 2.0 * half_length, "trd")

    @property
    def half_length(self):
        return 0.5 * self.length

    @property
    def half_center_width(self):
        return 0.5 * (self.half_width1 + self.half_width2)

    def half_width_at(self, z):
        """Half width of the x band at local z, interpolated between the two faces."""
        if self.half_length == 0.0:
            return self.half_center_width
        hcw = self.half_center_width
        return hcw - z * (hcw - self.half_width2) / self.half_length

    def corners(self):
        hw = max(self.half_width1, self.half_width2)
        return [(sx * hw, sy * self.half_height, sz * self.half_length)
                for sx in (-1, 1) for sy in (-1, 1) for sz in (-1, 1)]

    def to_dict(self):
        return {
            "type": self.type, "half_width1": self.half_width1,
            "half_width2": self.half_width2, "half_height": self.half_height,
            "length": self.length
        }

    @classmethod
    def from_dict(cls, data):
        return cls(data['half_width1'], data.get('half_width2', data['half_width1']),
                   data['half_height'], data['length'], data.get('type', 'box'))


# --- Detector elements ---

class GeoElement:
    """Common part of every element of the hierarchy: name, placement, shape and ID."""
    kind = "element"

    def __init__(self, name, transform=None, shape=None):
        self.name = name
        self.transform = transform if transform is not None else Transform()
        self.shape = shape if shape is not None else Shape.box(0.0, 0.0, 0.0)
        self.id = None # Set by update_after_sorting()

    @property
    def half_width1(self): return self.shape.half_width1
    @property
    def half_width2(self): return self.shape.half_width2
    @property
    def half_height(self): return self.shape.half_height
    @property
    def length(self): return self.shape.length

    def local_to_world(self, local_point):
        return self.transform.local_to_world(local_point)

    def world_to_local(self, world_point):
        return self.transform.world_to_local(world_point)

    def center(self):
        return self.transform.local_to_world((0.0, 0.0, 0.0))

    def contains_position(self, point, wiggle=1.0, tolerance=0.0):
        return contains_position(self, point, wiggle, tolerance)

    def distance_to_point(self, point):
        """Distance from the element center to the world point."""
        return float(np.linalg.norm(np.asarray(point, dtype=float) - self.center()))

    def to_dict(self):
        return {
            "name": self.name,
            "id": list(self.id) if self.id is not None else None,
            "center": self.center().tolist(),
            "shape": self.shape.to_dict()
        }

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, id={self.id})"


class WireGeo(GeoElement):
    kind = "wire"

    def update_after_sorting(self, wire_id):
        self.id = wire_id

    def direction(self):
        """Unit vector along the wire axis in world coordinates."""
        axis = self.transform.local_to_world_vect((0.0, 0.0, 1.0))
        return axis / np.linalg.norm(axis)

    def end_points(self):
        half = 0.5 * self.length
        return (self.local_to_world((0.0, 0.0, -half)), self.local_to_world((0.0, 0.0, half)))


class PlaneGeo(GeoElement):
    kind = "plane"

    def __init__(self, name, transform=None, shape=None, wires=None):
        super().__init__(name, transform, shape)
        self.wires = list(wires) if wires else []

    def nwires(self):
        return len(self.wires)

    def wire(self, iwire):
        if not 0 <= iwire < len(self.wires):
            raise ElementOutOfRange("wire", iwire)
        return self.wires[iwire]

    def sort_sub_volumes(self, sorter):
        sorter.sort_wires(self.wires)

    def update_after_sorting(self, plane_id):
        self.id = plane_id
        for w, wire in enumerate(self.wires):
            wire.update_after_sorting(WireID(*plane_id, w))

    def to_dict(self):
        data = super().to_dict()
        data["wires"] = [w.to_dict() for w in self.wires]
        return data


class TPCGeo(GeoElement):
    kind = "TPC"

    def __init__(self, name, transform=None, shape=None, planes=None, drift_direction=None):
        super().__init__(name, transform, shape)
        self.planes = list(planes) if planes else []
        self.drift_direction = DriftDirection.from_value(drift_direction)

    def nplanes(self):
        return len(self.planes)

    def plane(self, iplane):
        if not 0 <= iplane < len(self.planes):
            raise ElementOutOfRange("plane", iplane)
        return self.planes[iplane]

    def max_wires(self):
        return max((p.nwires() for p in self.planes), default=0)

    def sort_sub_volumes(self, sorter, drift_direction=None):
        # The TPC's own drift direction wins over the one supplied by the caller
        drift = self.drift_direction
        if drift is DriftDirection.UNKNOWN:
            drift = DriftDirection.from_value(drift_direction)
        if self.planes:
            sorter.sort_planes(self.planes, drift, tpc_name=self.name)
        for plane in self.planes:
            plane.sort_sub_volumes(sorter)

    def update_after_sorting(self, tpc_id):
        self.id = tpc_id
        for p, plane in enumerate(self.planes):
            plane.update_after_sorting(PlaneID(*tpc_id, p))

    def to_dict(self):
        data = super().to_dict()
        data["drift_direction"] = self.drift_direction.value
        data["planes"] = [p.to_dict() for p in self.planes]
        return data


class OpDetGeo(GeoElement):
    kind = "OpDet"

    def update_after_sorting(self, opdet_id):
        self.id = opdet_id


class CryostatGeo(GeoElement):
    kind = "cryostat"

    def __init__(self, name, transform=None, shape=None, tpcs=None, opdets=None):
        super().__init__(name, transform, shape)
        self.tpcs = list(tpcs) if tpcs else []
        self.opdets = list(opdets) if opdets else []

    # --- Sorting ---
    def sort_sub_volumes(self, sorter, drift_direction=None):
        sorter.sort_tpcs(self.tpcs)
        for tpc in self.tpcs:
            tpc.sort_sub_volumes(sorter, drift_direction)
        sorter.sort_op_dets(self.opdets)

    def update_after_sorting(self, cryostat_id):
        self.id = cryostat_id
        for t, tpc in enumerate(self.tpcs):
            tpc.update_after_sorting(TPCID(cryostat_id.cryostat, t))
        for o, opdet in enumerate(self.opdets):
            opdet.update_after_sorting(OpDetID(cryostat_id.cryostat, o))

    # --- Access ---
    def ntpc(self):
        return len(self.tpcs)

    def nopdet(self):
        return len(self.opdets)

    def tpc(self, itpc):
        if not 0 <= itpc < len(self.tpcs):
            raise ElementOutOfRange("TPC", itpc)
        return self.tpcs[itpc]

    def op_det(self, iopdet):
        if not 0 <= iopdet < len(self.opdets):
            raise ElementOutOfRange("OpDet", iopdet)
        return self.opdets[iopdet]

    def max_planes(self):
        return max((tpc.nplanes() for tpc in self.tpcs), default=0)

    def max_wires(self):
        return max((tpc.max_wires() for tpc in self.tpcs), default=0)

    def half_width(self): return self.shape.half_width1
    def half_height(self): return self.shape.half_height
    def half_length(self): return self.shape.half_length

    def boundaries(self):
        """World-frame (min_x, max_x, min_y, max_y, min_z, max_z) of the cryostat shape."""
        corners = np.array([self.local_to_world(c) for c in self.shape.corners()])
        lo, hi = corners.min(axis=0), corners.max(axis=0)
        return (lo[0], hi[0], lo[1], hi[1], lo[2], hi[2])

    # --- Position queries ---
    # wiggle scales every half extent; slightly above 1 it absorbs rounding
    # of points sitting on a boundary.
    def find_tpc_at_position(self, point, wiggle=1.0, tolerance=0.0):
        """Index of the first TPC containing the point, or None."""
        return find_element(self.tpcs, point, wiggle, tolerance)

    def position_to_tpc_id(self, point, wiggle=1.0, tolerance=0.0):
        itpc = self.find_tpc_at_position(point, wiggle, tolerance)
        return self.tpcs[itpc].id if itpc is not None else None

    def position_to_tpc(self, point, wiggle=1.0, tolerance=0.0):
        itpc = position_to_element(self.tpcs, point, wiggle, tolerance,
                                   kind="TPC", within=self.id or self.name)
        return self.tpcs[itpc]

    def closest_op_det(self, point):
        """Index of the optical detector closest to the point, or None if there are none."""
        return closest_element(self.opdets, point)

    def closest_op_det_geo(self, point):
        iopdet = self.closest_op_det(point)
        return self.opdets[iopdet] if iopdet is not None else None

    def cryostat_info(self, indent="", verbosity=1):
        lines = [f"{indent}cryostat '{self.name}' {self.id}: {self.ntpc()} TPCs, {self.nopdet()} optical detectors"]
        if verbosity >= 1:
            b = self.boundaries()
            lines.append(f"{indent}  bounding box: ({b[0]:g},{b[2]:g},{b[4]:g}) -- ({b[1]:g},{b[3]:g},{b[5]:g})")
        if verbosity >= 2:
            for tpc in self.tpcs:
                c = tpc.center()
                lines.append(f"{indent}  TPC '{tpc.name}' {tpc.id} at ({c[0]:g},{c[1]:g},{c[2]:g}), "
                             f"{tpc.nplanes()} planes, drift {tpc.drift_direction.value}")
                if verbosity >= 3:
                    for plane in tpc.planes:
                        lines.append(f"{indent}    plane '{plane.name}' {plane.id}: {plane.nwires()} wires")
        return "\n".join(lines)

    def to_dict(self):
        data = super().to_dict()
        data["tpcs"] = [t.to_dict() for t in self.tpcs]
        data["opdets"] = [o.to_dict() for o in self.opdets]
        return data


class AuxDetSensitiveGeo(GeoElement):
    kind = "AuxDetSensitive"

    def update_after_sorting(self, sensitive_id):
        self.id = sensitive_id


class AuxDetGeo(GeoElement):
    kind = "AuxDet"

    def __init__(self, name, transform=None, shape=None, sensitive_volumes=None):
        super().__init__(name, transform, shape)
        self.sensitive_volumes = list(sensitive_volumes) if sensitive_volumes else []

    def nsensitive_volume(self):
        return len(self.sensitive_volumes)

    def sensitive_volume(self, isv):
        if not 0 <= isv < len(self.sensitive_volumes):
            raise ElementOutOfRange("AuxDetSensitive", isv)
        return self.sensitive_volumes[isv]

    def sort_sub_volumes(self, sorter):
        sorter.sort_aux_det_sensitive(self.sensitive_volumes)

    def update_after_sorting(self, aux_det_id):
        self.id = aux_det_id
        for s, sv in enumerate(self.sensitive_volumes):
            sv.update_after_sorting(AuxDetSensitiveID(aux_det_id.aux_det, s))

    def to_dict(self):
        data = super().to_dict()
        data["sensitive"] = [s.to_dict() for s in self.sensitive_volumes]
        return data
