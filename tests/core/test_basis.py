import numpy as np
import pytest

from hants.core.basis import build_design_matrix, design_rank
from hants.core.errors import InvalidArgumentError


def test_shape_and_constant_row():
    matrix = build_design_matrix(np.arange(10), nbase=10, nfreq=3)
    assert matrix.shape == (7, 10)
    assert np.all(matrix[0] == 1.0)


def test_rows_match_direct_evaluation():
    t = np.arange(20)
    nbase = 12
    matrix = build_design_matrix(t, nbase=nbase, nfreq=2)
    for k in (1, 2):
        ang = 2.0 * np.pi * k * t / nbase
        assert np.allclose(matrix[2 * k - 1], np.cos(ang))
        assert np.allclose(matrix[2 * k], np.sin(ang))


def test_time_indices_wrap_around_base_period():
    nbase = 8
    t = np.array([0, 3, 5, 3 + nbase, 5 + 3 * nbase, -1])
    matrix = build_design_matrix(t, nbase=nbase, nfreq=3)
    assert np.allclose(matrix[:, 3], matrix[:, 1])
    assert np.allclose(matrix[:, 4], matrix[:, 2])
    # Negative positions wrap to the end of the period
    assert np.isclose(matrix[1, 5], np.cos(2.0 * np.pi * (nbase - 1) / nbase))


def test_truncated_when_fewer_samples_than_terms():
    matrix = build_design_matrix(np.arange(4), nbase=12, nfreq=3)
    assert matrix.shape == (4, 4)
    assert design_rank(3, 4) == 4
    assert design_rank(3, 40) == 7


def test_dc_only():
    matrix = build_design_matrix(np.arange(5), nbase=5, nfreq=0)
    assert matrix.shape == (1, 5)


def test_matrix_is_read_only():
    matrix = build_design_matrix(np.arange(6), nbase=6, nfreq=1)
    assert not matrix.flags.writeable
    with pytest.raises(ValueError):
        matrix[0, 0] = 2.0


def test_integral_floats_accepted():
    from_float = build_design_matrix(np.array([0.0, 1.0, 2.0]), nbase=3, nfreq=1)
    from_int = build_design_matrix(np.array([0, 1, 2]), nbase=3, nfreq=1)
    assert np.array_equal(from_float, from_int)


@pytest.mark.parametrize(
    "t, nbase, nfreq",
    [
        (np.arange(5), 0, 1),
        (np.arange(5), 5, -1),
        (np.array([0.0, 0.5, 1.0]), 3, 1),
        (np.array([], dtype=int), 3, 1),
        (np.zeros((2, 2), dtype=int), 3, 1),
    ],
)
def test_invalid_arguments(t, nbase, nfreq):
    with pytest.raises(InvalidArgumentError):
        build_design_matrix(t, nbase=nbase, nfreq=nfreq)
