"""
Nested HEALPix cells used as the hierarchical sky decomposition of the index.

Only the NESTED scheme is needed: the children of cell ``p`` at depth ``d``
are ``4 * p + (0, 1, 2, 3)`` at depth ``d + 1``, which is what the footprint
index descends through. Cell numbers are ``face * nside**2`` plus the Morton
code of the (x, y) position inside the base face.
"""

import math
from functools import lru_cache
from typing import Tuple

import torch
from torch import Tensor

MAX_DEPTH = 29

# Ring index (in units of nside) of the southern corner of each base face,
# and the longitude offset (in units of pi/4) of its center.
_FACE_RING = torch.tensor([2, 2, 2, 2, 3, 3, 3, 3, 4, 4, 4, 4], dtype=torch.int64)
_FACE_PHI = torch.tensor([1, 3, 5, 7, 0, 2, 4, 6, 1, 3, 5, 7], dtype=torch.int64)

_SPREAD = (
    (16, 0x0000FFFF0000FFFF),
    (8, 0x00FF00FF00FF00FF),
    (4, 0x0F0F0F0F0F0F0F0F),
    (2, 0x3333333333333333),
    (1, 0x5555555555555555),
)
_COMPACT = (
    (1, 0x3333333333333333),
    (2, 0x0F0F0F0F0F0F0F0F),
    (4, 0x00FF00FF00FF00FF),
    (8, 0x0000FFFF0000FFFF),
    (16, 0x00000000FFFFFFFF),
)


def _validate_nside(nside: int) -> None:
    if nside <= 0 or (nside & (nside - 1)) != 0:
        raise ValueError("nside must be a positive power of two")


def depth2nside(depth: int) -> int:
    """NSIDE for a tree depth; depth 0 is the 12 base cells."""
    if depth < 0 or depth > MAX_DEPTH:
        raise ValueError(f"depth must be in [0, {MAX_DEPTH}]")
    return 1 << depth


def nside2npix(nside: int) -> int:
    _validate_nside(nside)
    return 12 * nside * nside


def _interleave(v: Tensor) -> Tensor:
    """Move bit k of `v` to bit 2k."""
    v = v.to(torch.int64)
    for shift, mask in _SPREAD:
        v = (v | (v << shift)) & mask
    return v


def _deinterleave(v: Tensor) -> Tensor:
    """Gather the even bits of `v` back together."""
    v = v.to(torch.int64) & _SPREAD[-1][1]
    for shift, mask in _COMPACT:
        v = (v | (v >> shift)) & mask
    return v


def _face_xy_to_nest(nside: int, face: Tensor, ix: Tensor, iy: Tensor) -> Tensor:
    return face * (nside * nside) + _interleave(ix) + (_interleave(iy) << 1)


def _nest_to_face_xy(nside: int, pix: Tensor) -> Tuple[Tensor, Tensor, Tensor]:
    face, within = torch.div(pix, nside * nside, rounding_mode="floor"), pix % (nside * nside)
    return face, _deinterleave(within), _deinterleave(within >> 1)


def _equatorial_face_xy(nside: int, z: Tensor, t: Tensor) -> Tuple[Tensor, Tensor, Tensor]:
    # Indices along the two families of face diagonals.
    base = nside * (0.5 + t)
    lift = nside * 0.75 * z
    asc = (base - lift).to(torch.int64)
    desc = (base + lift).to(torch.int64)
    f_asc = asc // nside
    f_desc = desc // nside
    face = torch.where(
        f_asc == f_desc, f_asc | 4, torch.where(f_asc < f_desc, f_asc, f_desc + 8)
    )
    ix = desc & (nside - 1)
    iy = nside - (asc & (nside - 1)) - 1
    return face, ix, iy


def _polar_face_xy(nside: int, z: Tensor, t: Tensor) -> Tuple[Tensor, Tensor, Tensor]:
    quadrant = t.to(torch.int64).clamp(max=3)
    frac = t - quadrant.to(torch.float64)
    scale = nside * torch.sqrt(3.0 * (1.0 - torch.abs(z)))
    a = (frac * scale).to(torch.int64).clamp(max=nside - 1)
    b = ((1.0 - frac) * scale).to(torch.int64).clamp(max=nside - 1)
    north = z >= 0
    face = torch.where(north, quadrant, quadrant + 8)
    ix = torch.where(north, nside - b - 1, a)
    iy = torch.where(north, nside - a - 1, b)
    return face, ix, iy


def vec2pix_nested(nside: int, vectors: Tensor) -> Tensor:
    """NESTED cell index of each unit vector [..., 3]."""
    _validate_nside(nside)
    v = torch.as_tensor(vectors, dtype=torch.float64)
    if v.shape[-1] != 3:
        raise ValueError("vectors must have last dimension size 3")
    v = v / torch.linalg.norm(v, dim=-1, keepdim=True).clamp_min(1e-15)

    z = v[..., 2].clamp(-1.0, 1.0)
    t = torch.remainder(torch.atan2(v[..., 1], v[..., 0]), 2.0 * math.pi) * (2.0 / math.pi)
    # remainder can return exactly 2*pi for tiny negative y
    t = torch.where(t >= 4.0, t - 4.0, t)

    face = torch.empty_like(z, dtype=torch.int64)
    ix = torch.empty_like(face)
    iy = torch.empty_like(face)
    equatorial = torch.abs(z) <= 2.0 / 3.0
    for mask, part in ((equatorial, _equatorial_face_xy), (~equatorial, _polar_face_xy)):
        if mask.any():
            face[mask], ix[mask], iy[mask] = part(nside, z[mask], t[mask])
    return _face_xy_to_nest(nside, face, ix, iy)


def pix2vec_nested(nside: int, pix: Tensor) -> Tensor:
    """Unit vectors [..., 3] of NESTED cell centers."""
    npix = nside2npix(nside)
    pix_t = torch.as_tensor(pix, dtype=torch.int64)
    if torch.any((pix_t < 0) | (pix_t >= npix)):
        raise ValueError("pixel index out of range for nside")

    face, ix, iy = _nest_to_face_xy(nside, pix_t)
    ring = _FACE_RING[face] * nside - ix - iy - 1
    north = ring < nside
    south = ring > 3 * nside
    belt = ~(north | south)

    # Cells per quarter ring, and z of the ring.
    per_quarter = torch.where(
        north, ring, torch.where(south, 4 * nside - ring, torch.full_like(ring, nside))
    )
    pq = per_quarter.to(torch.float64)
    z = torch.where(
        north,
        1.0 - pq * pq * (4.0 / npix),
        torch.where(
            south,
            pq * pq * (4.0 / npix) - 1.0,
            (2 * nside - ring).to(torch.float64) * (2.0 / (3.0 * nside)),
        ),
    ).clamp(-1.0, 1.0)
    shift = torch.where(belt, (ring - nside) & 1, torch.zeros_like(ring))

    col = torch.div(_FACE_PHI[face] * per_quarter + ix - iy + 1 + shift, 2, rounding_mode="floor")
    col = torch.remainder(col - 1, 4 * nside) + 1
    phi = (col.to(torch.float64) - 0.5 * (shift.to(torch.float64) + 1.0)) * (0.5 * math.pi / pq)

    sin_theta = torch.sqrt((1.0 - z * z).clamp_min(0.0))
    return torch.stack((sin_theta * torch.cos(phi), sin_theta * torch.sin(phi), z), dim=-1)


def children(pix: Tensor) -> Tensor:
    """The four NESTED children of each cell, shape [..., 4]."""
    pix_t = torch.as_tensor(pix, dtype=torch.int64)
    return (pix_t.unsqueeze(-1) << 2) + torch.arange(4, dtype=torch.int64)


@lru_cache(maxsize=None)
def max_pixel_radius(nside: int) -> float:
    """
    Largest angle (radians) between a cell center and any point of the cell.

    Closed form of ``Healpix_Base::max_pixrad``: the distance from the first
    equatorial-belt center to the nearest polar-cap corner.
    """
    _validate_nside(nside)
    za = 2.0 / 3.0
    phia = math.pi / (4 * nside)
    zb = 1.0 - (1.0 - 1.0 / nside) ** 2 / 3.0
    sa = math.sqrt(max(0.0, 1.0 - za * za))
    sb = math.sqrt(max(0.0, 1.0 - zb * zb))
    ax, ay, az = sa * math.cos(phia), sa * math.sin(phia), za
    bx, bz = sb, zb
    cross = math.hypot(ay * bz, az * bx - ax * bz, -ay * bx)
    return math.atan2(cross, ax * bx + az * bz)
