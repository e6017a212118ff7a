"""Spherical geometry: unit-vector points, nested HEALPix cells and polygons."""

from .core import SphericalPoint, normalize_ra, radec_to_unit_xyz, unit_xyz_to_radec
from .geom import BOUNDARY_ATOL_DEG, SphericalPolygon, parse_region

__all__ = [
    "SphericalPoint",
    "SphericalPolygon",
    "BOUNDARY_ATOL_DEG",
    "normalize_ra",
    "parse_region",
    "radec_to_unit_xyz",
    "unit_xyz_to_radec",
]
