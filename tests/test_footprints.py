import json
from pathlib import Path

import pytest
import requests

from tesslocate.config import FOOTPRINT_FILENAME
from tesslocate.errors import DatasetUnavailableError
from tesslocate.footprints import FootprintDataset, download_footprints, load_footprints

PAYLOAD = json.dumps(
    {
        "obs_id": ["tess-s0001-1-1", "tess-s0001-1-2"],
        "s_region": ["POLYGON -1 -1 1 -1 1 1 -1 1", "POLYGON 10 10 12 10 12 12 10 12"],
    }
)


class _Response:
    def __init__(self, text: str, status: int = 200):
        self.text = text
        self.status = status

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


class _Session:
    """Stand-in for requests.Session recording the requested URLs."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls: list[str] = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


def test_dataset_from_json() -> None:
    dataset = FootprintDataset.from_json(PAYLOAD)
    assert len(dataset) == 2
    assert list(dataset)[0] == ("tess-s0001-1-1", "POLYGON -1 -1 1 -1 1 1 -1 1")


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        json.dumps(["obs_id", "s_region"]),
        json.dumps({"obs_id": ["a"]}),
        json.dumps({"obs_id": ["a", "b"], "s_region": ["POLYGON 0 0 1 0 1 1"]}),
    ],
)
def test_dataset_from_bad_json(text: str) -> None:
    with pytest.raises(DatasetUnavailableError):
        FootprintDataset.from_json(text)


def test_cached_file_is_used(tmp_path: Path) -> None:
    (tmp_path / FOOTPRINT_FILENAME).write_text(PAYLOAD)
    session = _Session(error=AssertionError("must not download"))
    dataset = load_footprints(tmp_path, session=session)
    assert len(dataset) == 2
    assert session.calls == []


def test_missing_cache_is_downloaded_and_saved(tmp_path: Path) -> None:
    cache_dir = tmp_path / "nested" / "cache"
    session = _Session(response=_Response(PAYLOAD))
    dataset = load_footprints(cache_dir, url="https://example.invalid/fp.json", session=session)
    assert session.calls == ["https://example.invalid/fp.json"]
    assert dataset.obs_id == ("tess-s0001-1-1", "tess-s0001-1-2")
    assert (cache_dir / FOOTPRINT_FILENAME).read_text() == PAYLOAD


def test_download_failure_is_fatal(tmp_path: Path) -> None:
    session = _Session(error=requests.ConnectionError("offline"))
    with pytest.raises(DatasetUnavailableError, match="Failed to download"):
        load_footprints(tmp_path, session=session)
    assert not (tmp_path / FOOTPRINT_FILENAME).exists()


def test_http_error_is_fatal() -> None:
    with pytest.raises(DatasetUnavailableError):
        download_footprints("https://example.invalid/fp.json", session=_Session(response=_Response("", 404)))


def test_unwritable_cache_is_not_fatal(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    # A regular file where the cache directory should be.
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    session = _Session(response=_Response(PAYLOAD))
    dataset = load_footprints(blocker / "cache", session=session)
    assert len(dataset) == 2
    assert any("Proceeding anyway" in r.getMessage() for r in caplog.records)
