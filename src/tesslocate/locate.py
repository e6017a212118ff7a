"""Batch lookup of target positions against a footprint index."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Sequence

import torch

from .config import LocateConfig
from .index import FootprintIndex
from .logging import log_performance, log_progress
from .sphere.core import radec_to_unit_xyz


class TargetRecord(NamedTuple):
    """One input row: target identifier and position in degrees."""

    ID: str
    ra: float
    dec: float


@dataclass
class Target:
    """Lookup result; `ra`/`dec` are the input values, not normalized."""

    ID: str
    ra: float
    dec: float
    observations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"ID": self.ID, "ra": self.ra, "dec": self.dec, "observations": list(self.observations)}


class _Progress:
    """Thread-safe counter that logs every `every` completed records."""

    def __init__(self, total: int, every: int):
        self.total = total
        self.every = every
        self._done = 0
        self._lock = threading.Lock()

    def advance(self, n: int) -> None:
        with self._lock:
            before = self._done
            self._done += n
            done = self._done
        if done // self.every > before // self.every or done == self.total:
            log_progress(done, self.total)


class BatchLocator:
    """
    Runs one index query per record on a thread pool.

    Records are split into contiguous chunks; each chunk is one unit of work
    and fills only its own slots of the pre-sized result list, so results come
    back in input order whatever the completion order.
    """

    def __init__(self, index: FootprintIndex, *, workers: Optional[int] = None,
                 chunk_size: int = 256, progress_every: int = 100):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.index = index
        self.workers = workers if workers is not None else LocateConfig.for_environment().workers
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        self.chunk_size = chunk_size
        self.progress_every = progress_every

    @classmethod
    def from_config(cls, index: FootprintIndex, config: LocateConfig) -> "BatchLocator":
        return cls(index, workers=config.workers, chunk_size=config.chunk_size,
                   progress_every=config.progress_every)

    def _run_chunk(self, records: Sequence[TargetRecord], start: int, stop: int,
                   results: list, progress: _Progress) -> None:
        chunk = records[start:stop]
        ra = torch.tensor([float(r.ra) for r in chunk], dtype=torch.float64)
        dec = torch.tensor([float(r.dec) for r in chunk], dtype=torch.float64)
        matches = self.index.search_many(radec_to_unit_xyz(ra, dec))
        for offset, (record, observations) in enumerate(zip(chunk, matches)):
            results[start + offset] = Target(str(record.ID), float(record.ra), float(record.dec), observations)
        progress.advance(len(chunk))

    @log_performance
    def locate(self, records: Sequence[TargetRecord]) -> list[Target]:
        records = [r if isinstance(r, TargetRecord) else TargetRecord(*r) for r in records]
        total = len(records)
        results: list[Optional[Target]] = [None] * total
        if total == 0:
            return []

        progress = _Progress(total, self.progress_every)
        bounds = [(s, min(s + self.chunk_size, total)) for s in range(0, total, self.chunk_size)]
        if self.workers == 1 or len(bounds) == 1:
            for start, stop in bounds:
                self._run_chunk(records, start, stop, results, progress)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                futures = [
                    executor.submit(self._run_chunk, records, start, stop, results, progress)
                    for start, stop in bounds
                ]
                for future in futures:
                    future.result()
        return results


def locate(index: FootprintIndex, records: Sequence[TargetRecord], *,
           workers: Optional[int] = None, chunk_size: int = 256) -> list[Target]:
    """Look up every record in `index`; output order matches input order."""
    return BatchLocator(index, workers=workers, chunk_size=chunk_size).locate(records)
