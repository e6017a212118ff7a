"""
Runtime configuration for tesslocate.

Settings are auto-detected from the machine and the environment, and can be
overridden explicitly (the command line does this).
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import psutil

FOOTPRINT_URL = (
    "https://stpubdata.s3.amazonaws.com/tess/public/footprints/"
    "tess_ffi_footprint_cache.json"
)
FOOTPRINT_FILENAME = "tess_ffi_footprint_cache.json"

# Nested HEALPix depth of the index cells (nside = 2**depth, ~1.8 deg cells).
DEFAULT_DEPTH = 5


def default_cache_dir() -> Path:
    """Resolve the directory holding the footprint cache file."""
    cache_dir = os.environ.get("TESSLOCATE_CACHE_DIR")
    if cache_dir:
        return Path(cache_dir)
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg)
    home = os.environ.get("HOME")
    if home:
        return Path(home) / ".cache"
    return Path(".")


class LocateConfig:
    """Configuration of an index build and a batch lookup."""

    def __init__(self, workers: int = 1, chunk_size: int = 256,
                 depth: int = DEFAULT_DEPTH, cache_dir: Optional[Path] = None,
                 url: str = FOOTPRINT_URL, progress_every: int = 100):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if progress_every < 1:
            raise ValueError("progress_every must be at least 1")
        self.workers = workers
        self.chunk_size = chunk_size
        self.depth = depth
        self.cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()
        self.url = url
        self.progress_every = progress_every

    @classmethod
    def for_environment(cls, **overrides: Any) -> 'LocateConfig':
        """Auto-detect worker count and cache location."""
        workers = cls._detect_workers()
        settings: Dict[str, Any] = {
            'workers': workers,
            'cache_dir': default_cache_dir(),
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**settings)

    @staticmethod
    def _detect_workers() -> int:
        env = os.environ.get('TESSLOCATE_WORKERS')
        if env:
            try:
                return max(1, int(env))
            except ValueError:
                raise ValueError(f"TESSLOCATE_WORKERS must be an integer, got {env!r}") from None
        # Respect batch-system CPU allotments over the machine total
        for var in ('SLURM_CPUS_PER_TASK', 'PBS_NUM_PPN', 'NSLOTS'):
            value = os.environ.get(var)
            if value and value.isdigit():
                return max(1, int(value))
        return psutil.cpu_count(logical=True) or 1

    @property
    def cache_path(self) -> Path:
        return self.cache_dir / FOOTPRINT_FILENAME

    def as_dict(self) -> Dict[str, Any]:
        return {
            'workers': self.workers,
            'chunk_size': self.chunk_size,
            'depth': self.depth,
            'cache_dir': str(self.cache_dir),
            'url': self.url,
            'progress_every': self.progress_every,
        }

    def __repr__(self) -> str:
        items = ", ".join(f"{k}={v!r}" for k, v in self.as_dict().items())
        return f"LocateConfig({items})"
