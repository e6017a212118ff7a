"""
Footprint index: which observation footprints contain a sky position.

Each footprint is registered in every nested HEALPix cell (at a fixed depth)
that its bounding cap may touch. A query looks up the one cell holding the
point with a binary search, then runs the exact polygon test only on the
footprints registered there.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import torch
from torch import Tensor

from .config import DEFAULT_DEPTH
from .errors import RegionError
from .footprints import FootprintDataset
from .logging import log_performance, log_skipped_region, logger
from .sphere import healpix as _healpix
from .sphere.core import SphericalPoint, angle_between
from .sphere.geom import SphericalPolygon, parse_region

# Footprints covered per descent pass; bounds the size of the pair tensors.
_COVER_CHUNK = 4096
# Slack added to cap/cell overlap tests, radians.
_COVER_MARGIN = 1e-9


@dataclass(frozen=True, eq=False)
class Footprint:
    """An observation ID and its polygon."""

    obs_id: str
    polygon: SphericalPolygon


def _cover_caps(centers: Tensor, radii: Tensor, depth: int) -> tuple[Tensor, Tensor]:
    """
    Cells at `depth` that may intersect each cap, by descent from the 12 base cells.

    Returns (owners, cells) sorted by owner; owner is the row in `centers`.
    """
    n = centers.shape[0]
    owners = torch.arange(n, dtype=torch.int64).repeat_interleave(12)
    cells = torch.arange(12, dtype=torch.int64).repeat(n)
    for level in range(depth + 1):
        if level > 0:
            cells = _healpix.children(cells).reshape(-1)
            owners = owners.repeat_interleave(4)
        nside = _healpix.depth2nside(level)
        cell_centers = _healpix.pix2vec_nested(nside, cells)
        limit = radii[owners] + _healpix.max_pixel_radius(nside) + _COVER_MARGIN
        keep = angle_between(cell_centers, centers[owners]) <= limit
        cells = cells[keep]
        owners = owners[keep]
    return owners, cells


class FootprintIndex:
    """
    Immutable collection of footprints with a cell lookup table.

    Safe for concurrent `search` calls from many threads: nothing is written
    after construction.
    """

    def __init__(self, footprints: Sequence[Footprint] = (), *,
                 depth: int = DEFAULT_DEPTH, skipped: int = 0):
        self._footprints = tuple(footprints)
        self.depth = depth
        self.nside = _healpix.depth2nside(depth)
        self.skipped = skipped
        self._cells, self._offsets, self._members = self._build_table()

    @classmethod
    @log_performance
    def build(cls, pairs: Iterable[tuple[str, str]], *,
              depth: int = DEFAULT_DEPTH) -> "FootprintIndex":
        """Parse (obs_id, region) pairs; unusable regions are logged and skipped."""
        footprints: list[Footprint] = []
        skipped = 0
        for obs_id, region in pairs:
            try:
                polygon = parse_region(region)
            except RegionError as e:
                log_skipped_region(obs_id, str(e))
                skipped += 1
                continue
            footprints.append(Footprint(obs_id, polygon))

        index = cls(footprints, depth=depth, skipped=skipped)
        if skipped:
            logger.warning(f"{skipped} footprints skipped")
        logger.info(f"Indexed {len(index)} footprints in {index.cell_count} cells (depth {depth})")
        return index

    @classmethod
    def from_dataset(cls, dataset: FootprintDataset, *,
                     depth: int = DEFAULT_DEPTH) -> "FootprintIndex":
        return cls.build(iter(dataset), depth=depth)

    def _build_table(self) -> tuple[Tensor, Tensor, Tensor]:
        if not self._footprints:
            empty = torch.empty(0, dtype=torch.int64)
            return empty, torch.zeros(1, dtype=torch.int64), empty

        owner_chunks: list[Tensor] = []
        cell_chunks: list[Tensor] = []
        for start in range(0, len(self._footprints), _COVER_CHUNK):
            chunk = self._footprints[start:start + _COVER_CHUNK]
            caps = [fp.polygon.bounding_cap() for fp in chunk]
            centers = torch.stack([c for c, _ in caps])
            radii = torch.tensor([r for _, r in caps], dtype=torch.float64)
            owners, cells = _cover_caps(centers, radii, self.depth)
            owner_chunks.append(owners + start)
            cell_chunks.append(cells)
        owners = torch.cat(owner_chunks)
        cells = torch.cat(cell_chunks)

        # Stable sort keeps owners ascending within a cell: catalog order.
        cells, order = torch.sort(cells, stable=True)
        members = owners[order]
        unique_cells, counts = torch.unique_consecutive(cells, return_counts=True)
        offsets = torch.zeros(unique_cells.shape[0] + 1, dtype=torch.int64)
        offsets[1:] = torch.cumsum(counts, dim=0)
        return unique_cells, offsets, members

    def __len__(self) -> int:
        return len(self._footprints)

    def __repr__(self) -> str:
        return (f"FootprintIndex(footprints={len(self)}, cells={self.cell_count}, "
                f"depth={self.depth}, skipped={self.skipped})")

    @property
    def footprints(self) -> tuple[Footprint, ...]:
        return self._footprints

    @property
    def cell_count(self) -> int:
        return int(self._cells.shape[0])

    def candidates(self, points: Tensor) -> tuple[Tensor, Tensor]:
        """
        Candidate (point row, footprint position) pairs for unit vectors [M, 3].

        Pairs are ordered by point, then by footprint position.
        """
        p = torch.as_tensor(points, dtype=torch.float64).reshape(-1, 3)
        empty = torch.empty(0, dtype=torch.int64)
        if p.shape[0] == 0 or self.cell_count == 0:
            return empty, empty

        pix = _healpix.vec2pix_nested(self.nside, p)
        pos = torch.searchsorted(self._cells, pix)
        pos_c = pos.clamp(max=self.cell_count - 1)
        found = (pos < self.cell_count) & (self._cells[pos_c] == pix)
        start = torch.where(found, self._offsets[pos_c], torch.zeros_like(pos_c))
        counts = torch.where(found, self._offsets[pos_c + 1] - self._offsets[pos_c], torch.zeros_like(pos_c))

        point_idx = torch.repeat_interleave(torch.arange(p.shape[0], dtype=torch.int64), counts)
        first = torch.cumsum(counts, dim=0) - counts
        within = torch.arange(point_idx.shape[0], dtype=torch.int64) - first[point_idx]
        return point_idx, self._members[start[point_idx] + within]

    def search_many(self, points: Tensor) -> list[list[str]]:
        """Observation IDs containing each of the unit vectors [M, 3]."""
        p = torch.as_tensor(points, dtype=torch.float64).reshape(-1, 3)
        results: list[list[str]] = [[] for _ in range(p.shape[0])]
        point_idx, cand = self.candidates(p)
        if cand.numel() == 0:
            return results

        # One vectorized exact test per candidate footprint.
        hits = torch.zeros(cand.shape[0], dtype=torch.bool)
        order = torch.argsort(cand, stable=True)
        positions, counts = torch.unique_consecutive(cand[order], return_counts=True)
        start = 0
        for position, count in zip(positions.tolist(), counts.tolist()):
            sel = order[start:start + count]
            polygon = self._footprints[position].polygon
            hits[sel] = polygon.contains_xyz(p[point_idx[sel]])
            start += count

        for i, j in zip(point_idx[hits].tolist(), cand[hits].tolist()):
            results[i].append(self._footprints[j].obs_id)
        return results

    def search(self, point: SphericalPoint | Tensor) -> list[str]:
        """Observation IDs of every footprint containing `point`, in catalog order."""
        if isinstance(point, SphericalPoint):
            point = point.to_tensor()
        return self.search_many(point.reshape(1, 3))[0]

    def brute_force_search(self, point: SphericalPoint | Tensor) -> list[str]:
        """Reference search testing every footprint; used to validate the table."""
        if isinstance(point, SphericalPoint):
            point = point.to_tensor()
        return [fp.obs_id for fp in self._footprints if fp.polygon.contains(point)]

    def stats(self) -> dict[str, float]:
        """Summary of the lookup table: registrations per cell and per footprint."""
        cells = self.cell_count
        registrations = int(self._offsets[-1])
        return {
            "footprints": float(len(self)),
            "skipped": float(self.skipped),
            "cells": float(cells),
            "registrations": float(registrations),
            "mean_per_cell": registrations / cells if cells else 0.0,
            "mean_per_footprint": registrations / len(self) if len(self) else 0.0,
            "cell_area_deg2": 4.0 * math.pi / _healpix.nside2npix(self.nside) * (180.0 / math.pi) ** 2,
        }
