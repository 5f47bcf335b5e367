"""Linear cryptanalysis of 8-bit S-boxes.

For every nonzero output mask i and every input mask j the population of input
bytes k with odd parity(j & k) (all 256 bytes when j == 0) is split by the parity
of S[k] & i. The deviation of that split from 50/50 is stored at [i, j]:

    deviation = 0.5 - min(equal, notequal) / (equal + notequal)

so a balanced split gives 0.0 and a fully determined one gives 0.5.
"""
import logging
import time
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .errors import IncompleteSBoxError, InvalidSBoxError

logger = logging.getLogger(__name__)

SBOX_SIZE = 256

PARITY = np.array([bin(v).count('1') & 1 for v in range(SBOX_SIZE)], dtype=np.int64)


@dataclass
class LinearAnalysis:
    deviations: np.ndarray
    sorted_deviations: np.ndarray
    max_deviation: float
    elapsed_ms: float

    def row_maxima(self) -> List[float]:
        return row_maxima(self.sorted_deviations)


def validate_sbox(sbox: Sequence[int]) -> np.ndarray:
    """Return the S-box as an int array, or raise if it is not 256 bytes"""
    values = list(sbox)
    if len(values) < SBOX_SIZE:
        raise IncompleteSBoxError(len(values))
    if len(values) > SBOX_SIZE:
        raise InvalidSBoxError(f"S-box has {len(values)} values, expected {SBOX_SIZE}")
    for idx, v in enumerate(values):
        if isinstance(v, bool) or not isinstance(v, (int, np.integer)) or not 0 <= v <= 255:
            raise InvalidSBoxError(f"S-box entry {idx} is not a byte: {v!r}")
    return np.asarray(values, dtype=np.int64)


def input_conditions() -> np.ndarray:
    """0/1 matrix [j, k]: 1 when input byte k is counted under input mask j"""
    masks = np.arange(SBOX_SIZE)
    cond = PARITY[masks[:, None] & masks[None, :]]
    cond[0, :] = 1
    return cond


def find_deviations(sbox: Sequence[int]) -> np.ndarray:
    """
    Deviation matrix indexed [output_mask, input_mask]. Row 0 is NaN since
    a zero output mask selects no bits.
    """
    table = validate_sbox(sbox)
    masks = np.arange(SBOX_SIZE)

    # out_parity[i, k] = parity(S[k] & i)
    out_parity = PARITY[masks[:, None] & table[None, :]]
    cond = input_conditions()

    equal = out_parity @ cond.T
    total = cond.sum(axis=1)
    notequal = total[None, :] - equal

    deviations = 0.5 - np.minimum(equal, notequal) / total[None, :]
    deviations[0, :] = np.nan
    return deviations


def sort_deviations(deviations: np.ndarray) -> np.ndarray:
    """Sort each output-mask row ascending. The input matrix is left untouched."""
    sorted_devs = np.array(deviations, dtype=np.float64, copy=True)
    sorted_devs[1:] = np.sort(sorted_devs[1:], axis=1)
    return sorted_devs


def row_maxima(sorted_deviations: np.ndarray) -> List[float]:
    return sorted_deviations[1:, SBOX_SIZE - 1].tolist()


def max_deviation(sorted_deviations: np.ndarray) -> float:
    return float(np.max(sorted_deviations[1:, SBOX_SIZE - 1]))


def analyze(sbox: Sequence[int]) -> LinearAnalysis:
    start = time.perf_counter()
    deviations = find_deviations(sbox)
    sorted_devs = sort_deviations(deviations)
    worst = max_deviation(sorted_devs)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("Linear analysis done in %.1f ms, maximum deviation %g", elapsed_ms, worst)
    return LinearAnalysis(
        deviations=deviations,
        sorted_deviations=sorted_devs,
        max_deviation=worst,
        elapsed_ms=elapsed_ms,
    )
