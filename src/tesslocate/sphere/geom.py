"""Spherical polygons: region parsing, canonical orientation and containment."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

import torch
from torch import Tensor

from ..errors import (
    DegeneratePolygonError,
    InvalidCoordinateError,
    MalformedRegionError,
    UnrecognizedRegionError,
)
from .core import SphericalPoint, angle_between, radec_to_unit_xyz

REGION_TYPE = "POLYGON"

# Points closer than this to an edge or vertex are inside.
BOUNDARY_ATOL_DEG = 1e-10

# Offset of the reference point from the first edge, radians.
_REFERENCE_OFFSET = 1e-7


def _left_area(vertices: Tensor, normals: Tensor) -> float:
    """
    Area (sr, in [0, 4*pi)) of the region on the left of the loop.

    Gauss-Bonnet: 2*pi minus the total turning angle at the vertices.
    """
    n_prev = torch.roll(normals, shifts=1, dims=0)
    sin_turn = (torch.cross(n_prev, normals, dim=-1) * vertices).sum(dim=-1)
    cos_turn = (n_prev * normals).sum(dim=-1)
    area = 2.0 * math.pi - torch.atan2(sin_turn, cos_turn).sum()
    return float(torch.remainder(area, 4.0 * math.pi))


def _tangent_basis(center: Tensor) -> tuple[Tensor, Tensor]:
    """Orthonormal pair spanning the plane tangent to the sphere at `center`."""
    ref = torch.zeros(3, dtype=center.dtype)
    ref[2 if abs(float(center[2])) < 0.9 else 0] = 1.0
    east = torch.cross(ref, center, dim=-1)
    east = east / torch.linalg.norm(east)
    return east, torch.cross(center, east, dim=-1)


def _even_odd(points_xy: Tensor, ring_xy: Tensor) -> Tensor:
    """
    Even-odd test of points [M, 2] against a closed planar ring [N, 2].

    Edges are half-open in y, so a horizontal ray through a vertex counts once.
    """
    ax, ay = ring_xy.unbind(-1)
    bx, by = torch.roll(ax, -1), torch.roll(ay, -1)
    px, py = (c.unsqueeze(1) for c in points_xy.unbind(-1))

    straddles = (ay > py) != (by > py)
    # Only straddling edges use x_cross, and those have dy != 0.
    dy = by - ay
    dy = torch.where(dy == 0.0, torch.ones_like(dy), dy)
    x_cross = ax + (bx - ax) * (py - ay) / dy
    hits = straddles & (px < x_cross)
    return hits.sum(dim=1) % 2 == 1


def _arcs_cross(a: Tensor, b: Tensor, c: Tensor, d: Tensor) -> Tensor:
    """
    Strict crossing test between arcs a->b [M,3] and edges c->d [E,3].

    An arc and an edge cross when each separates the endpoints of the other and
    both lie in the same hemisphere. Touching configurations (any zero
    orientation) never count as a crossing.

    returns: [M, E] bool
    """
    ab = torch.cross(a, b, dim=-1)  # [M,3]
    cd = torch.cross(c, d, dim=-1)  # [E,3]
    acb = -torch.sign(ab @ c.transpose(0, 1))
    bda = torch.sign(ab @ d.transpose(0, 1))
    cbd = -torch.sign(b @ cd.transpose(0, 1))
    dac = torch.sign(a @ cd.transpose(0, 1))
    return (acb != 0) & (acb == bda) & (acb == cbd) & (acb == dac)


def _dedupe_vertices(vertices: Tensor) -> Tensor:
    keep = torch.ones(vertices.shape[0], dtype=torch.bool)
    keep[1:] = ~torch.all(vertices[1:] == vertices[:-1], dim=-1)
    out = vertices[keep]
    # Explicitly closed loop: last vertex repeats the first.
    if out.shape[0] >= 2 and torch.equal(out[0], out[-1]):
        out = out[:-1]
    return out


@dataclass(frozen=True, eq=False)
class SphericalPolygon:
    """
    Simple spherical polygon stored as unit vectors [N, 3] (float64).

    The loop is normalized counter-clockwise so that the enclosed region, on
    the left of every edge, is the smaller of the two regions bounded by it.
    Points within ``BOUNDARY_ATOL_DEG`` of the boundary are inside.
    """

    vertices: Tensor
    area_sr: float = field(init=False)
    _normals: Tensor = field(init=False, repr=False)
    _center: Tensor = field(init=False, repr=False)
    _radius: float = field(init=False, repr=False)
    _projection: tuple[Tensor, Tensor, Tensor] | None = field(init=False, repr=False)
    _reference: Tensor = field(init=False, repr=False)

    def __post_init__(self) -> None:
        v = torch.as_tensor(self.vertices, dtype=torch.float64)
        if v.ndim != 2 or v.shape[-1] != 3:
            raise ValueError("polygon vertices must have shape [N, 3]")
        v = v / torch.linalg.norm(v, dim=-1, keepdim=True).clamp_min(1e-15)
        v = _dedupe_vertices(v)
        if v.shape[0] < 3:
            raise DegeneratePolygonError(f"polygon needs at least 3 distinct vertices, got {v.shape[0]}")

        v_next = torch.roll(v, shifts=-1, dims=0)
        normals = torch.cross(v, v_next, dim=-1)
        norm = torch.linalg.norm(normals, dim=-1)
        if bool(torch.any(norm <= 1e-15)):
            raise DegeneratePolygonError("polygon has an edge between antipodal vertices")

        area = _left_area(v, normals)
        if area > 2.0 * math.pi:
            v = torch.flip(v, dims=[0])
            v_next = torch.roll(v, shifts=-1, dims=0)
            normals = torch.cross(v, v_next, dim=-1)
            norm = torch.linalg.norm(normals, dim=-1)
            area = 4.0 * math.pi - area
        normals = normals / norm.unsqueeze(-1)

        object.__setattr__(self, "vertices", v)
        object.__setattr__(self, "area_sr", area)
        object.__setattr__(self, "_normals", normals)

        # Gnomonic projection maps great-circle edges to straight segments
        # exactly, provided every vertex is in the open hemisphere of the center.
        center = v.sum(dim=0)
        center_norm = float(torch.linalg.norm(center))
        projection = None
        radius = math.pi
        if center_norm > 1e-12:
            center = center / center_norm
            vden = v @ center
            if bool(torch.all(vden > 1e-10)):
                e1, e2 = _tangent_basis(center)
                poly_xy = torch.stack(((v @ e1) / vden, (v @ e2) / vden), dim=-1)
                projection = (center, torch.stack((e1, e2)), poly_xy)
                radius = float(angle_between(v, center.expand_as(v)).max())
        else:
            center = v[0].clone()
        object.__setattr__(self, "_center", center)
        object.__setattr__(self, "_radius", radius)
        object.__setattr__(self, "_projection", projection)

        # Just left of the middle of the first edge, hence inside.
        mid = v[0] + v[1]
        mid = mid / torch.linalg.norm(mid)
        ref = mid + _REFERENCE_OFFSET * normals[0]
        object.__setattr__(self, "_reference", ref / torch.linalg.norm(ref))

    @classmethod
    def from_radec(
        cls, ra_deg: Sequence[float] | Tensor, dec_deg: Sequence[float] | Tensor
    ) -> "SphericalPolygon":
        ra_t = torch.as_tensor(ra_deg, dtype=torch.float64)
        dec_t = torch.as_tensor(dec_deg, dtype=torch.float64)
        if ra_t.ndim != 1 or dec_t.ndim != 1 or ra_t.shape != dec_t.shape:
            raise ValueError("ra_deg and dec_deg must be 1D sequences of equal length")
        return cls(radec_to_unit_xyz(ra_t, dec_t))

    @classmethod
    def from_points(cls, points: Sequence[SphericalPoint]) -> "SphericalPolygon":
        if len(points) == 0:
            raise DegeneratePolygonError("polygon needs at least 3 distinct vertices, got 0")
        return cls(torch.stack([p.to_tensor() for p in points]))

    def __len__(self) -> int:
        return int(self.vertices.shape[0])

    def area(self, *, degrees: bool = False) -> float:
        if degrees:
            return self.area_sr * (180.0 / math.pi) ** 2
        return self.area_sr

    def bounding_cap(self) -> tuple[Tensor, float]:
        """Return (center, radius in radians) of a cap enclosing the polygon."""
        return self._center, self._radius

    def contains(self, point: SphericalPoint | Tensor) -> bool:
        if isinstance(point, SphericalPoint):
            point = point.to_tensor()
        return bool(self.contains_xyz(point.reshape(1, 3))[0])

    def contains_radec(self, ra_deg: Tensor | float, dec_deg: Tensor | float) -> Tensor:
        points = radec_to_unit_xyz(ra_deg, dec_deg)
        shape = points.shape[:-1]
        return self.contains_xyz(points.reshape(-1, 3)).reshape(shape)

    def contains_xyz(self, points: Tensor) -> Tensor:
        """Vectorized containment for unit vectors [M, 3]; returns bool [M]."""
        p = torch.as_tensor(points, dtype=torch.float64).reshape(-1, 3)
        if p.shape[0] == 0:
            return torch.zeros(0, dtype=torch.bool)
        if self._projection is not None:
            inside = self._contains_gnomonic(p)
        else:
            inside = self._contains_crossing(p)
        return inside | self._on_boundary(p)

    def _contains_gnomonic(self, p: Tensor) -> Tensor:
        center, basis, poly_xy = self._projection
        pden = p @ center
        valid = pden > 1e-12
        inside = torch.zeros(p.shape[0], dtype=torch.bool)
        if bool(valid.any()):
            pv = p[valid]
            xy = (pv @ basis.transpose(0, 1)) / pden[valid].unsqueeze(-1)
            inside[valid] = _even_odd(xy, poly_xy)
        return inside

    def _contains_crossing(self, p: Tensor) -> Tensor:
        # Walk from the reference point to each query point through an
        # intermediate point, so that both legs are minor arcs.
        ref = self._reference.expand_as(p)
        mid = ref + p
        far = (p @ self._reference) < -0.5
        if bool(far.any()):
            mid[far] = torch.cross(ref[far], p[far], dim=-1)
            ortho = torch.linalg.norm(mid, dim=-1) < 1e-12
            if bool(ortho.any()):
                e1, _ = _tangent_basis(self._reference)
                mid[ortho] = e1
        mid = mid / torch.linalg.norm(mid, dim=-1, keepdim=True)

        c = self.vertices
        d = torch.roll(c, shifts=-1, dims=0)
        crossings = _arcs_cross(ref, mid, c, d).sum(dim=-1) + _arcs_cross(mid, p, c, d).sum(dim=-1)
        return (crossings % 2) == 0

    def _on_boundary(self, p: Tensor) -> Tensor:
        atol = math.radians(BOUNDARY_ATOL_DEG)
        a = self.vertices
        b = torch.roll(a, shifts=-1, dims=0)
        n = self._normals

        chord = torch.cdist(p, a, compute_mode="donot_use_mm_for_euclid_dist")
        near_vertex = (chord <= atol).any(dim=-1)

        off_plane = torch.abs(p @ n.transpose(0, 1)) <= math.sin(atol)
        after_a = (p @ torch.cross(n, a, dim=-1).transpose(0, 1)) >= 0.0
        before_b = (p @ torch.cross(b, n, dim=-1).transpose(0, 1)) >= 0.0
        on_edge = (off_plane & after_a & before_b).any(dim=-1)
        return near_vertex | on_edge


def parse_region(region: str) -> SphericalPolygon:
    """
    Parse ``POLYGON ra1 dec1 ra2 dec2 ...`` (degrees) into a polygon.

    Raises a ``RegionError`` subclass describing the first problem found.
    """
    tokens = [t for t in region.split(" ") if t]
    if not tokens or tokens[0] != REGION_TYPE:
        raise UnrecognizedRegionError("unrecognized region type", region)

    coords = tokens[1:]
    if len(coords) % 2 != 0:
        raise MalformedRegionError("malformed coordinate list", region)

    ra: list[float] = []
    dec: list[float] = []
    for i in range(0, len(coords), 2):
        try:
            r = float(coords[i])
            d = float(coords[i + 1])
        except ValueError:
            raise InvalidCoordinateError(
                f"invalid coordinate ({coords[i]}, {coords[i + 1]})", region
            ) from None
        if not (math.isfinite(r) and math.isfinite(d)):
            raise InvalidCoordinateError(f"invalid coordinate ({coords[i]}, {coords[i + 1]})", region)
        ra.append(r)
        dec.append(d)

    try:
        return SphericalPolygon.from_radec(ra, dec)
    except DegeneratePolygonError as e:
        e.region = region
        raise
