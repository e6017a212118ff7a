import json
from pathlib import Path

import pytest

from tesslocate import cli
from tesslocate.errors import DatasetUnavailableError
from tesslocate.footprints import FootprintDataset


@pytest.fixture
def targets_csv(tmp_path: Path) -> Path:
    path = tmp_path / "targets.csv"
    path.write_text("ID,ra,dec\nt1,0,0\nt2,45,45\nt3,359.5,0.5\n")
    return path


@pytest.fixture
def fake_dataset(monkeypatch: pytest.MonkeyPatch) -> list:
    calls = []

    def load(cache_dir=None, url=None, session=None):
        calls.append((cache_dir, url))
        return FootprintDataset(
            ["tess-s0001-1-1", "bad"],
            ["POLYGON -1 -1 1 -1 1 1 -1 1", "LINE 1 2 3 4"],
        )

    monkeypatch.setattr(cli, "load_footprints", load)
    return calls


def test_json_output(targets_csv: Path, tmp_path: Path, fake_dataset: list) -> None:
    out = tmp_path / "out.json"
    code = cli.main([str(targets_csv), str(out), "--workers", "2", "--chunk-size", "1",
                     "--cache-dir", str(tmp_path)])
    assert code == 0
    data = json.loads(out.read_text())
    assert [t["ID"] for t in data] == ["t1", "t2", "t3"]
    assert [t["observations"] for t in data] == [["tess-s0001-1-1"], [], ["tess-s0001-1-1"]]
    assert data[2]["ra"] == 359.5
    assert fake_dataset[0][0] == tmp_path


def test_csv_output(targets_csv: Path, tmp_path: Path, fake_dataset: list) -> None:
    out = tmp_path / "out.csv"
    assert cli.main([str(targets_csv), str(out), "--depth", "2"]) == 0
    lines = out.read_text().splitlines()
    assert lines[0] == "ID,ra,dec,sector,camera,ccd"
    assert lines[1:] == ["t1,0.0,0.0,1,1,1", "t3,359.5,0.5,1,1,1"]


def test_missing_input(tmp_path: Path, fake_dataset: list) -> None:
    assert cli.main([str(tmp_path / "nope.csv"), str(tmp_path / "out.json")]) == 1
    assert fake_dataset == []


def test_bad_output_format(targets_csv: Path, tmp_path: Path, fake_dataset: list) -> None:
    assert cli.main([str(targets_csv), str(tmp_path / "out.txt")]) == 1
    assert fake_dataset == []


def test_dataset_unavailable(targets_csv: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def load(cache_dir=None, url=None, session=None):
        raise DatasetUnavailableError("Failed to download footprint cache file: offline")

    monkeypatch.setattr(cli, "load_footprints", load)
    out = tmp_path / "out.json"
    assert cli.main([str(targets_csv), str(out)]) == 2
    assert not out.exists()


def test_parser_defaults() -> None:
    args = cli.build_parser().parse_args(["in.csv", "out.json"])
    assert args.workers is None
    assert args.cache_dir is None
    assert args.log_level == "INFO"
