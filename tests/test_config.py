from pathlib import Path

import psutil
import pytest

from tesslocate.config import (
    DEFAULT_DEPTH,
    FOOTPRINT_FILENAME,
    LocateConfig,
    default_cache_dir,
)

_ENV = ("TESSLOCATE_WORKERS", "SLURM_CPUS_PER_TASK", "PBS_NUM_PPN", "NSLOTS",
        "TESSLOCATE_CACHE_DIR", "XDG_CACHE_HOME")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in _ENV:
        monkeypatch.delenv(var, raising=False)


def test_defaults(tmp_path: Path) -> None:
    config = LocateConfig(cache_dir=tmp_path)
    assert config.workers == 1
    assert config.depth == DEFAULT_DEPTH
    assert config.cache_path == tmp_path / FOOTPRINT_FILENAME
    assert config.as_dict()["cache_dir"] == str(tmp_path)
    assert repr(config).startswith("LocateConfig(")


@pytest.mark.parametrize("field", ["workers", "chunk_size", "progress_every"])
def test_rejects_non_positive(field: str) -> None:
    with pytest.raises(ValueError):
        LocateConfig(**{field: 0})


def test_cache_dir_resolution(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_cache_dir() == tmp_path / ".cache"
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg"))
    assert default_cache_dir() == tmp_path / "xdg"
    monkeypatch.setenv("TESSLOCATE_CACHE_DIR", str(tmp_path / "explicit"))
    assert default_cache_dir() == tmp_path / "explicit"


def test_workers_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(psutil, "cpu_count", lambda logical=True: 6)
    assert LocateConfig.for_environment().workers == 6
    monkeypatch.setenv("SLURM_CPUS_PER_TASK", "3")
    assert LocateConfig.for_environment().workers == 3
    monkeypatch.setenv("TESSLOCATE_WORKERS", "2")
    assert LocateConfig.for_environment().workers == 2
    monkeypatch.setenv("TESSLOCATE_WORKERS", "many")
    with pytest.raises(ValueError):
        LocateConfig.for_environment()


def test_overrides_win_and_none_is_ignored(tmp_path: Path) -> None:
    config = LocateConfig.for_environment(workers=5, chunk_size=None, depth=3, cache_dir=tmp_path)
    assert config.workers == 5
    assert config.chunk_size == 256
    assert config.depth == 3
    assert config.cache_dir == tmp_path
