# lartpc_geometry/exceptions.py


def _format_point(point):
    return "(" + ",".join(f"{float(c):g}" for c in point) + ")"


class GeometryError(Exception):
    """Base class for every failure raised by the geometry core."""


class GeometryDescriptionError(GeometryError):
    """A geometry description could not be turned into elements."""


class HierarchyNotSorted(GeometryError):
    """Identifiers were requested before the hierarchy was sorted."""


class UnknownDriftDirection(GeometryError):
    """Planes can't be ordered because the drift direction is unknown."""

    def __init__(self, tpc_name=None):
        self.tpc_name = tpc_name
        where = f" in TPC '{tpc_name}'" if tpc_name else ""
        super().__init__(f"Drift direction is unknown{where}, can't sort the planes")


class MalformedElementName(GeometryError):
    """An element name does not carry the expected numeric suffix."""

    def __init__(self, name, prefix):
        self.name = name
        self.prefix = prefix
        super().__init__(f"Element name '{name}' does not match '{prefix}<number>'")


class ElementNotFound(GeometryError):
    """No candidate element contains the query point."""

    def __init__(self, point, kind="element", within=None):
        self.point = tuple(float(c) for c in point)
        self.kind = kind
        self.within = within
        message = f"Can't find {kind} for position {_format_point(self.point)}"
        if within is not None:
            message += f" within {within}"
        super().__init__(message)


class ElementOutOfRange(GeometryError):
    """Request for an element index that does not exist."""

    def __init__(self, kind, index):
        self.kind = kind
        self.index = index
        super().__init__(f"Request for non-existent {kind} {index}")


class NoSuchElement(GeometryError):
    """Name lookup miss in the channel map."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"No AuxDetGeo matching name: {name}")


class NoSensitiveTable(GeometryError):
    """The element has no channel -> sensitive volume table."""

    def __init__(self, index):
        self.index = index
        super().__init__(
            f"Given AuxDetGeo with index {index} does not correspond to any vector of sensitive volumes"
        )


class ChannelOutOfRange(GeometryError):
    """Channel beyond the end of the element's channel table."""

    def __init__(self, channel, index, size):
        self.channel = channel
        self.index = index
        self.size = size
        super().__init__(
            f"Given AuxDetSensitive channel, {channel}, cannot be found in vector "
            f"associated to AuxDetGeo index: {index}. Vector has size {size}"
        )
