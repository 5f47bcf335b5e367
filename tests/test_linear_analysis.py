import random

import numpy as np
import pytest

from gfsbox.errors import IncompleteSBoxError, InvalidSBoxError
from gfsbox.linear_analysis import (
    find_deviations,
    input_conditions,
    max_deviation,
    row_maxima,
    sort_deviations,
    validate_sbox,
)
from gfsbox.sbox_math import sbox_math


def _odd(a):
    return bin(a & 0xFF).count("1") % 2 == 1


def _reference_cell(sbox, i, j):
    equal = notequal = 0
    total = 0.0
    for k in range(256):
        if _odd(j & k) or j == 0:
            if _odd(sbox[k] & i):
                equal += 1
            else:
                notequal += 1
            total += 1
    if equal > notequal:
        return 0.5 - notequal / total
    return 0.5 - equal / total


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def test_validate_sbox_short():
    with pytest.raises(IncompleteSBoxError) as exc:
        validate_sbox(list(range(100)))
    assert exc.value.found == 100


def test_validate_sbox_rejects_long_and_out_of_range():
    with pytest.raises(InvalidSBoxError):
        validate_sbox(list(range(256)) + [0])
    with pytest.raises(InvalidSBoxError):
        validate_sbox(list(range(255)) + [256])
    with pytest.raises(InvalidSBoxError):
        validate_sbox(list(range(255)) + [-1])
    with pytest.raises(InvalidSBoxError):
        validate_sbox(list(range(255)) + ["7"])


def test_input_conditions_population_sizes():
    cond = input_conditions()
    assert cond.shape == (256, 256)
    assert cond[0].sum() == 256
    assert all(cond[j].sum() == 128 for j in range(1, 256))


# ---------------------------------------------------------------------------
# LinearAnalyzer
# ---------------------------------------------------------------------------

def test_deviation_matrix_shape_and_unused_row(aes_analysis):
    devs = aes_analysis.deviations
    assert devs.shape == (256, 256)
    assert np.isnan(devs[0]).all()
    used = devs[1:]
    assert (used >= 0).all() and (used <= 0.5).all()


def test_identity_sbox_deviations(identity_analysis):
    devs = identity_analysis.deviations
    # Output parity of mask i equals input parity of mask i: fully determined
    assert devs[1, 1] == 0.5
    for i in range(1, 256):
        assert devs[i, i] == 0.5
    off_diagonal = devs[1:].copy()
    off_diagonal[np.arange(255), np.arange(1, 256)] = 0.0
    assert (off_diagonal == 0.0).all()


def test_matches_direct_count_on_random_sbox():
    sbox = sbox_math.random_sbox(seed=2024)
    devs = find_deviations(sbox)
    rng = random.Random(5)
    cells = [(1, 0), (255, 255), (0x80, 0x01)]
    cells += [(rng.randrange(1, 256), rng.randrange(256)) for _ in range(40)]
    for i, j in cells:
        assert devs[i, j] == pytest.approx(_reference_cell(sbox, i, j))


def test_denominator_follows_population():
    # Output bit 0 copies input bit 0: the condition j == 1 selects 128 bytes
    # that all agree, while the unconditional j == 0 population of 256 is balanced
    sbox = [k & 1 for k in range(256)]
    devs = find_deviations(sbox)
    assert devs[1, 1] == 0.5
    assert devs[1, 0] == 0.0
    assert devs[3, 1] == 0.5


def test_constant_sbox_is_fully_biased():
    devs = find_deviations([0] * 256)
    assert (devs[1:] == 0.5).all()


def test_aes_sbox_bijective_column_zero(aes_analysis):
    assert (aes_analysis.deviations[1:, 0] == 0.0).all()


def test_aes_max_deviation(aes_analysis):
    assert aes_analysis.max_deviation == 0.0625
    assert aes_analysis.elapsed_ms >= 0


def test_random_sbox_is_less_uniform_than_aes(aes_analysis):
    worst = max_deviation(sort_deviations(find_deviations(sbox_math.random_sbox(seed=11))))
    assert worst > aes_analysis.max_deviation


# ---------------------------------------------------------------------------
# TableSorter
# ---------------------------------------------------------------------------

def test_sorted_rows_non_decreasing(aes_analysis):
    sorted_devs = aes_analysis.sorted_deviations
    assert (np.diff(sorted_devs[1:], axis=1) >= 0).all()


def test_sorted_last_column_is_row_max(aes_analysis):
    raw = aes_analysis.deviations
    sorted_devs = aes_analysis.sorted_deviations
    for i in range(1, 256):
        assert sorted_devs[i, 255] == raw[i].max()
    assert row_maxima(sorted_devs) == raw[1:].max(axis=1).tolist()


def test_sort_does_not_mutate_input():
    devs = find_deviations(sbox_math.random_sbox(seed=3))
    before = devs.copy()
    sort_deviations(devs)
    np.testing.assert_array_equal(devs, before)


def test_sort_keeps_each_row_values():
    devs = find_deviations(sbox_math.random_sbox(seed=9))
    sorted_devs = sort_deviations(devs)
    for i in (1, 17, 255):
        assert sorted(devs[i].tolist()) == sorted_devs[i].tolist()


def test_max_deviation_is_global_row_max(identity_analysis):
    assert identity_analysis.max_deviation == 0.5
    assert identity_analysis.row_maxima() == [0.5] * 255
