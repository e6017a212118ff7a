import math

import numpy as np
import torch

from tesslocate.sphere.core import (
    SphericalPoint,
    angle_between,
    normalize_ra,
    radec_to_unit_xyz,
    unit_xyz_to_radec,
)


def test_normalize_ra_only_shifts_above_180() -> None:
    assert normalize_ra(0.0) == 0.0
    assert normalize_ra(180.0) == 180.0
    assert normalize_ra(359.0) == -1.0
    assert normalize_ra(-45.0) == -45.0
    # No modulo: out-of-range values are only shifted once.
    assert normalize_ra(540.0) == 180.0

    ra = torch.tensor([-10.0, 10.0, 180.0, 180.5, 359.0], dtype=torch.float64)
    expected = torch.tensor([-10.0, 10.0, 180.0, -179.5, -1.0], dtype=torch.float64)
    torch.testing.assert_close(normalize_ra(ra), expected, atol=0.0, rtol=0.0)


def test_radec_to_unit_xyz_axes() -> None:
    v = radec_to_unit_xyz(
        torch.tensor([0.0, 90.0, 0.0], dtype=torch.float64),
        torch.tensor([0.0, 0.0, 90.0], dtype=torch.float64),
    )
    expected = torch.eye(3, dtype=torch.float64)
    torch.testing.assert_close(v, expected, atol=1e-15, rtol=0.0)
    torch.testing.assert_close(
        torch.linalg.norm(radec_to_unit_xyz(123.0, -45.0)),
        torch.tensor(1.0, dtype=torch.float64),
        atol=1e-15,
        rtol=0.0,
    )


def test_equivalent_ra_values_give_identical_vectors() -> None:
    a = radec_to_unit_xyz(359.0, 12.5)
    b = radec_to_unit_xyz(-1.0, 12.5)
    assert torch.equal(a, b)
    assert SphericalPoint.from_degrees(359.0, 12.5) == SphericalPoint.from_degrees(-1.0, 12.5)


def test_spherical_point_degrees_roundtrip() -> None:
    p = SphericalPoint.from_degrees(200.0, -30.0)
    ra, dec = p.to_degrees()
    np.testing.assert_allclose(ra, -160.0, atol=1e-12, rtol=0.0)
    np.testing.assert_allclose(dec, -30.0, atol=1e-12, rtol=0.0)
    torch.testing.assert_close(p.to_tensor(), radec_to_unit_xyz(200.0, -30.0), atol=1e-15, rtol=0.0)


def test_spherical_point_is_immutable() -> None:
    p = SphericalPoint.from_degrees(10.0, 20.0)
    try:
        p.x = 0.0  # type: ignore[misc]
    except AttributeError:
        pass
    else:
        raise AssertionError("SphericalPoint must be frozen")


def test_unit_xyz_to_radec_range() -> None:
    v = radec_to_unit_xyz(
        torch.tensor([0.0, 179.0, 181.0, 270.0], dtype=torch.float64),
        torch.tensor([0.0, 10.0, -10.0, 45.0], dtype=torch.float64),
    )
    ra, dec = unit_xyz_to_radec(v)
    assert torch.all((ra >= -180.0) & (ra < 180.0))
    torch.testing.assert_close(
        ra, torch.tensor([0.0, 179.0, -179.0, -90.0], dtype=torch.float64), atol=1e-10, rtol=0.0
    )
    torch.testing.assert_close(
        dec, torch.tensor([0.0, 10.0, -10.0, 45.0], dtype=torch.float64), atol=1e-10, rtol=0.0
    )


def test_angle_between_small_and_large() -> None:
    a = radec_to_unit_xyz(0.0, 0.0)
    b = radec_to_unit_xyz(1e-9, 0.0)
    c = radec_to_unit_xyz(180.0, 0.0)
    np.testing.assert_allclose(float(angle_between(a, b)), math.radians(1e-9), rtol=1e-6)
    np.testing.assert_allclose(float(angle_between(a, c)), math.pi, atol=1e-12, rtol=0.0)
