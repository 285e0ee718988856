# lartpc_geometry/config.py
import os

from dotenv import load_dotenv

ENV_PREFIX = "LARTPC_GEO_"

# Tolerance when comparing distances in geometry (cm)
DEFAULT_SORT_TOLERANCE = 0.001
DEFAULT_QUERY_TOLERANCE = 0.0
DEFAULT_WIGGLE = 1.0
DEFAULT_AUX_DET_PREFIX = "volAuxDet"
DEFAULT_AUX_DET_SENSITIVE_PREFIX = "volAuxDetSensitive"


class GeometryConfig:
    """Tolerances and naming conventions shared by sorter, locator and hierarchy."""

    def __init__(self, sort_tolerance=DEFAULT_SORT_TOLERANCE,
                 query_tolerance=DEFAULT_QUERY_TOLERANCE,
                 wiggle=DEFAULT_WIGGLE,
                 aux_det_prefix=DEFAULT_AUX_DET_PREFIX,
                 aux_det_sensitive_prefix=DEFAULT_AUX_DET_SENSITIVE_PREFIX):
        if sort_tolerance < 0 or query_tolerance < 0:
            raise ValueError("Tolerances must be non-negative")
        if wiggle < 1.0:
            raise ValueError(f"Wiggle factor must be >= 1, got {wiggle}")
        self.sort_tolerance = float(sort_tolerance)
        self.query_tolerance = float(query_tolerance)
        self.wiggle = float(wiggle)
        self.aux_det_prefix = aux_det_prefix
        self.aux_det_sensitive_prefix = aux_det_sensitive_prefix

    def to_dict(self):
        return {
            "sort_tolerance": self.sort_tolerance,
            "query_tolerance": self.query_tolerance,
            "wiggle": self.wiggle,
            "aux_det_prefix": self.aux_det_prefix,
            "aux_det_sensitive_prefix": self.aux_det_sensitive_prefix,
        }

    @classmethod
    def from_dict(cls, data):
        defaults = cls().to_dict()
        defaults.update({k: v for k, v in data.items() if k in defaults})
        return cls(**defaults)

    def __repr__(self):
        return f"GeometryConfig({self.to_dict()})"


def load_config(env_file=None, **overrides):
    """
    Builds a GeometryConfig from the environment.

    Reads an optional .env file first, then the LARTPC_GEO_* variables.
    Keyword overrides take precedence over anything found in the environment.
    """
    load_dotenv(env_file or None)

    values = {}
    for key, caster in (("sort_tolerance", float), ("query_tolerance", float),
                        ("wiggle", float), ("aux_det_prefix", str),
                        ("aux_det_sensitive_prefix", str)):
        raw = os.getenv(ENV_PREFIX + key.upper())
        if raw is None or raw == "":
            continue
        try:
            values[key] = caster(raw)
        except ValueError:
            raise ValueError(f"Invalid value '{raw}' for {ENV_PREFIX + key.upper()}")

    values.update({k: v for k, v in overrides.items() if v is not None})
    return GeometryConfig.from_dict(values)
