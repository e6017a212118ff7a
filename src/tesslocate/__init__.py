"""
tesslocate: locate targets on TESS full-frame-image footprints

Builds a spatial index over the TESS FFI camera/CCD footprints and reports,
for each target position, every observation whose footprint contains it.
"""

from .config import LocateConfig
from .errors import (
    DatasetUnavailableError,
    DegeneratePolygonError,
    InvalidCoordinateError,
    MalformedRegionError,
    RegionError,
    TessLocateError,
    UnrecognizedRegionError,
)
from .footprints import FootprintDataset, load_footprints
from .index import Footprint, FootprintIndex
from .io import read_targets, write_targets
from .locate import BatchLocator, Target, TargetRecord, locate
from .sphere import SphericalPoint, SphericalPolygon, parse_region

__version__ = "0.1.0"
__all__ = [
    # Geometry
    "SphericalPoint", "SphericalPolygon", "parse_region",
    # Index and lookup
    "Footprint", "FootprintIndex", "BatchLocator", "Target", "TargetRecord", "locate",
    # Dataset and I/O
    "FootprintDataset", "load_footprints", "read_targets", "write_targets",
    # Configuration
    "LocateConfig",
    # Errors
    "TessLocateError", "RegionError", "UnrecognizedRegionError", "MalformedRegionError",
    "InvalidCoordinateError", "DegeneratePolygonError", "DatasetUnavailableError",
]
