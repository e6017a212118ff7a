"""
TESS FFI footprint dataset: local cache and download.

The dataset is a JSON object with two same-length arrays, ``obs_id`` and
``s_region``. It is read from the cache directory when present, otherwise
downloaded from the public STScI bucket and saved there.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import requests

from .config import FOOTPRINT_FILENAME, FOOTPRINT_URL, default_cache_dir
from .errors import DatasetUnavailableError
from .logging import logger

DOWNLOAD_TIMEOUT = 60


@dataclass(frozen=True)
class FootprintDataset:
    """Observation IDs and their region descriptors, in catalog order."""

    obs_id: Tuple[str, ...]
    s_region: Tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "obs_id", tuple(self.obs_id))
        object.__setattr__(self, "s_region", tuple(self.s_region))
        if len(self.obs_id) != len(self.s_region):
            raise DatasetUnavailableError(
                f"footprint dataset is inconsistent: {len(self.obs_id)} ids "
                f"for {len(self.s_region)} regions"
            )

    def __len__(self) -> int:
        return len(self.obs_id)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(zip(self.obs_id, self.s_region))

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "FootprintDataset":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise DatasetUnavailableError(f"footprint dataset is not valid JSON: {e}") from e
        if not isinstance(data, dict) or "obs_id" not in data or "s_region" not in data:
            raise DatasetUnavailableError("footprint dataset must contain 'obs_id' and 's_region'")
        return cls([str(v) for v in data["obs_id"]], [str(v) for v in data["s_region"]])


def download_footprints(url: str = FOOTPRINT_URL,
                        session: Optional[requests.Session] = None) -> str:
    """Download the footprint cache file and return its text."""
    http = session or requests
    try:
        response = http.get(url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise DatasetUnavailableError(f"Failed to download footprint cache file: {e}") from e
    return response.text


def load_footprints(cache_dir: Optional[Union[str, Path]] = None,
                    url: str = FOOTPRINT_URL,
                    session: Optional[requests.Session] = None) -> FootprintDataset:
    """Load the footprint dataset from the cache, downloading it if missing."""
    directory = Path(cache_dir) if cache_dir is not None else default_cache_dir()
    path = directory / FOOTPRINT_FILENAME

    if path.exists():
        logger.info("Using cached FFI footprints.")
        try:
            text = path.read_text()
        except OSError as e:
            raise DatasetUnavailableError(f"Failed to open cached FFI footprints: {path}") from e
    else:
        logger.info("Footprint cache not found, downloading.")
        text = download_footprints(url, session=session)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path.write_text(text)
        except OSError as e:
            logger.warning(f"Failed to write footprint cache ({path}): {e}. Proceeding anyway.")
        else:
            logger.info("Saved footprints to cache file.")

    return FootprintDataset.from_json(text)
