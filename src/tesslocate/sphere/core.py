"""Unit-vector points on the celestial sphere and RA/Dec conversion."""

from __future__ import annotations

import math
from dataclasses import dataclass

import torch
from torch import Tensor


def normalize_ra(ra_deg: Tensor | float) -> Tensor | float:
    """
    Map right ascension onto the footprint catalog longitude domain.

    Any value above 180 degrees is shifted by -360; nothing else is wrapped.
    The same rule must be used for polygon vertices and query points.
    """
    if isinstance(ra_deg, Tensor):
        return torch.where(ra_deg > 180.0, ra_deg - 360.0, ra_deg)
    ra = float(ra_deg)
    return ra - 360.0 if ra > 180.0 else ra


def radec_to_unit_xyz(ra_deg: Tensor | float, dec_deg: Tensor | float) -> Tensor:
    """Convert RA/Dec in degrees to unit Cartesian vectors [..., 3] (float64)."""
    ra_t = torch.as_tensor(ra_deg, dtype=torch.float64)
    dec_t = torch.as_tensor(dec_deg, dtype=torch.float64)
    ra_t, dec_t = torch.broadcast_tensors(ra_t, dec_t)

    lon = torch.deg2rad(normalize_ra(ra_t))
    lat = torch.deg2rad(dec_t)
    c = torch.cos(lat)
    return torch.stack((c * torch.cos(lon), c * torch.sin(lon), torch.sin(lat)), dim=-1)


def unit_xyz_to_radec(vectors: Tensor) -> tuple[Tensor, Tensor]:
    """Convert unit vectors [..., 3] to RA in [-180, 180) and Dec, in degrees."""
    if vectors.shape[-1] != 3:
        raise ValueError("vectors must have last dimension size 3")
    v = vectors.to(dtype=torch.float64)
    n = torch.linalg.norm(v, dim=-1).clamp_min(1e-15)
    ra = torch.rad2deg(torch.atan2(v[..., 1], v[..., 0]))
    ra = torch.where(ra >= 180.0, ra - 360.0, ra)
    dec = torch.rad2deg(torch.asin(torch.clamp(v[..., 2] / n, -1.0, 1.0)))
    return ra, dec


def angle_between(v1: Tensor, v2: Tensor) -> Tensor:
    """Angle in radians between unit vectors, using the atan2 formulation."""
    v1, v2 = torch.broadcast_tensors(v1, v2)
    cross = torch.linalg.norm(torch.cross(v1, v2, dim=-1), dim=-1)
    dot = (v1 * v2).sum(dim=-1)
    return torch.atan2(cross, dot)


@dataclass(frozen=True)
class SphericalPoint:
    """Direction on the unit sphere."""

    x: float
    y: float
    z: float

    @classmethod
    def from_degrees(cls, ra: float, dec: float) -> "SphericalPoint":
        ra = normalize_ra(ra)
        lon = math.radians(ra)
        lat = math.radians(dec)
        c = math.cos(lat)
        return cls(c * math.cos(lon), c * math.sin(lon), math.sin(lat))

    @classmethod
    def from_tensor(cls, vector: Tensor) -> "SphericalPoint":
        x, y, z = (float(c) for c in vector.reshape(3).tolist())
        return cls(x, y, z)

    def to_tensor(self) -> Tensor:
        return torch.tensor([self.x, self.y, self.z], dtype=torch.float64)

    def to_degrees(self) -> tuple[float, float]:
        """Return (ra, dec) with ra in [-180, 180)."""
        ra, dec = unit_xyz_to_radec(self.to_tensor())
        return float(ra), float(dec)
