"""Target list input (CSV) and result output (JSON or CSV)."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Sequence, Union

from .locate import Target, TargetRecord
from .logging import log_errors, logger

PathLike = Union[str, Path]

OUTPUT_FORMATS = ("json", "csv")
CSV_HEADER = ("ID", "ra", "dec", "sector", "camera", "ccd")


@log_errors
def read_targets(path: PathLike) -> list[TargetRecord]:
    """Read a CSV with columns ``ID``, ``ra``, ``dec`` (extra columns ignored)."""
    records: list[TargetRecord] = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = {"ID", "ra", "dec"} - set(reader.fieldnames or ())
        if missing:
            raise ValueError(f"{path}: missing column(s) {', '.join(sorted(missing))}")
        for line, row in enumerate(reader, start=2):
            try:
                records.append(TargetRecord(row["ID"], float(row["ra"]), float(row["dec"])))
            except (TypeError, ValueError):
                raise ValueError(f"{path}:{line}: invalid ra/dec ({row['ra']!r}, {row['dec']!r})") from None
    return records


def parse_observation_id(obs_id: str) -> tuple[int, int, int]:
    """
    Sector, camera and CCD encoded in an FFI observation ID.

    ``tess-s0001-1-3`` -> ``(1, 1, 3)``: characters 6-9 hold the zero-padded
    sector, 11 the camera and 13 the CCD.
    """
    if len(obs_id) < 14:
        raise ValueError(f"observation ID too short: {obs_id!r}")
    return int(obs_id[6:10]), int(obs_id[11]), int(obs_id[13])


def output_format(path: PathLike) -> str:
    name = str(path)
    for fmt in OUTPUT_FORMATS:
        if name.endswith(fmt):
            return fmt
    raise ValueError(f"Invalid output format: {name} (expected .json or .csv)")


def write_json(path: PathLike, targets: Sequence[Target]) -> None:
    with open(path, "w") as f:
        json.dump([t.to_dict() for t in targets], f, indent=4)


def write_csv(path: PathLike, targets: Sequence[Target]) -> None:
    """One row per (target, observation); targets without matches produce no row."""
    with open(path, "w", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for t in targets:
            for obs in t.observations:
                try:
                    sector, camera, ccd = parse_observation_id(obs)
                except ValueError as e:
                    logger.warning(f"Cannot derive sector/camera/ccd for {t.ID}: {e}")
                    writer.writerow((t.ID, t.ra, t.dec, "", "", ""))
                    continue
                writer.writerow((t.ID, t.ra, t.dec, sector, camera, ccd))


@log_errors
def write_targets(path: PathLike, targets: Sequence[Target]) -> str:
    """Write `targets` in the format given by the file suffix; return the format."""
    fmt = output_format(path)
    logger.info(f"Writing results to {fmt}.")
    if fmt == "json":
        write_json(path, targets)
    else:
        write_csv(path, targets)
    logger.info(f"Wrote results to {path}.")
    return fmt
