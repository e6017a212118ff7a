"""Exceptions raised by tesslocate."""

from typing import Optional


class TessLocateError(Exception):
    """Base class for all tesslocate errors."""


class RegionError(TessLocateError, ValueError):
    """A footprint region string could not be turned into a polygon."""

    def __init__(self, message: str, region: Optional[str] = None):
        super().__init__(message)
        self.region = region

    def __str__(self) -> str:
        msg = super().__str__()
        if self.region is not None:
            return f"{msg}: {self.region!r}"
        return msg


class UnrecognizedRegionError(RegionError):
    """The region type token is not ``POLYGON``."""


class MalformedRegionError(RegionError):
    """The coordinate list does not hold complete ra/dec pairs."""


class InvalidCoordinateError(RegionError):
    """A coordinate token is not a finite floating-point number."""


class DegeneratePolygonError(RegionError):
    """Fewer than three distinct vertices, or an edge without a unique great circle."""


class DatasetUnavailableError(TessLocateError, RuntimeError):
    """The footprint dataset could not be read from cache or downloaded."""
