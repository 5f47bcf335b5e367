import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class InverseTable:
    poly: int
    values: List[int]
    # Bytes in 2..255 with no inverse under `poly` (mapped to the 0 sentinel)
    unresolved: List[int] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unresolved


@dataclass
class SBoxResult:
    poly: int
    values: List[int]
    inverses: InverseTable
    raw_inverse: bool = False


class SBoxMath:
    def __init__(self):
        # Default Irreducible polynomial: x^8 + x^4 + x^3 + x + 1 (0x11B)
        self.DEFAULT_POLY = 0x11B
        # First row of the AES affine matrix; row j is this byte rotated left j times
        self.AFFINE_ROW = 0xF1
        self.AFFINE_CONSTANT = 0x63

        self.AES_SBOX = self._get_aes_sbox()

    def _get_aes_sbox(self) -> List[int]:
        return [
            0x63, 0x7c, 0x77, 0x7b, 0xf2, 0x6b, 0x6f, 0xc5, 0x30, 0x01, 0x67, 0x2b, 0xfe, 0xd7, 0xab, 0x76,
            0xca, 0x82, 0xc9, 0x7d, 0xfa, 0x59, 0x47, 0xf0, 0xad, 0xd4, 0xa2, 0xaf, 0x9c, 0xa4, 0x72, 0xc0,
            0xb7, 0xfd, 0x93, 0x26, 0x36, 0x3f, 0xf7, 0xcc, 0x34, 0xa5, 0xe5, 0xf1, 0x71, 0xd8, 0x31, 0x15,
            0x04, 0xc7, 0x23, 0xc3, 0x18, 0x96, 0x05, 0x9a, 0x07, 0x12, 0x80, 0xe2, 0xeb, 0x27, 0xb2, 0x75,
            0x09, 0x83, 0x2c, 0x1a, 0x1b, 0x6e, 0x5a, 0xa0, 0x52, 0x3b, 0xd6, 0xb3, 0x29, 0xe3, 0x2f, 0x84,
            0x53, 0xd1, 0x00, 0xed, 0x20, 0xfc, 0xb1, 0x5b, 0x6a, 0xcb, 0xbe, 0x39, 0x4a, 0x4c, 0x58, 0xcf,
            0xd0, 0xef, 0xaa, 0xfb, 0x43, 0x4d, 0x33, 0x85, 0x45, 0xf9, 0x02, 0x7f, 0x50, 0x3c, 0x9f, 0xa8,
            0x51, 0xa3, 0x40, 0x8f, 0x92, 0x9d, 0x38, 0xf5, 0xbc, 0xb6, 0xda, 0x21, 0x10, 0xff, 0xf3, 0xd2,
            0xcd, 0x0c, 0x13, 0xec, 0x5f, 0x97, 0x44, 0x17, 0xc4, 0xa7, 0x7e, 0x3d, 0x64, 0x5d, 0x19, 0x73,
            0x60, 0x81, 0x4f, 0xdc, 0x22, 0x2a, 0x90, 0x88, 0x46, 0xee, 0xb8, 0x14, 0xde, 0x5e, 0x0b, 0xdb,
            0xe0, 0x32, 0x3a, 0x0a, 0x49, 0x06, 0x24, 0x5c, 0xc2, 0xd3, 0xac, 0x62, 0x91, 0x95, 0xe4, 0x79,
            0xe7, 0xc8, 0x37, 0x6d, 0x8d, 0xd5, 0x4e, 0xa9, 0x6c, 0x56, 0xf4, 0xea, 0x65, 0x7a, 0xae, 0x08,
            0xba, 0x78, 0x25, 0x2e, 0x1c, 0xa6, 0xb4, 0xc6, 0xe8, 0xdd, 0x74, 0x1f, 0x4b, 0xbd, 0x8b, 0x8a,
            0x70, 0x3e, 0xb5, 0x66, 0x48, 0x03, 0xf6, 0x0e, 0x61, 0x35, 0x57, 0xb9, 0x86, 0xc1, 0x1d, 0x9e,
            0xe1, 0xf8, 0x98, 0x11, 0x69, 0xd9, 0x8e, 0x94, 0x9b, 0x1e, 0x87, 0xe9, 0xce, 0x55, 0x28, 0xdf,
            0x8c, 0xa1, 0x89, 0x0d, 0xbf, 0xe6, 0x42, 0x68, 0x41, 0x99, 0x2d, 0x0f, 0xb0, 0x54, 0xbb, 0x16
        ]

    # --- FIELD ARITHMETIC ---

    def gf_mult(self, a: int, b: int) -> int:
        """Carryless multiplication of two bytes over GF(2), no reduction (up to 15 bits)"""
        p = 0
        for i in range(8):
            if (b >> i) & 1:
                p ^= a << i
        return p

    def gf_reduce(self, poly: int, irr_poly: int) -> int:
        """
        Reduce a wide polynomial modulo a degree-8 reduction polynomial by long division.
        The leading bit of irr_poly is aligned with every bit of poly from the top down
        to bit 8 and XORed in when that bit is set.
        """
        for shift in range(poly.bit_length() - 9, -1, -1):
            if poly & (0x100 << shift):
                poly ^= irr_poly << shift
        return poly

    def is_unity(self, poly: int, irr_poly: int) -> bool:
        return self.gf_reduce(poly, irr_poly) == 1

    def gf_mult_mod(self, a: int, b: int, irr_poly: int) -> int:
        """Galois Field multiplication in GF(2^8)"""
        return self.gf_reduce(self.gf_mult(a, b), irr_poly)

    def parity(self, a: int) -> int:
        """1 if the right-most 8 bits of a hold an odd number of ones"""
        return bin(a & 0xFF).count('1') & 1

    # --- INVERSES ---

    def _pair_inverses(self, irr_poly: int, stop_on_missing: bool = False):
        invs = [0] * 256
        invs[1] = 1
        found = [False] * 256
        found[0] = found[1] = True
        unresolved = []

        for i in range(2, 256):
            if found[i]:
                continue
            # Every j < i is already paired, so i's inverse can only sit at or above i
            for j in range(i, 256):
                if self.is_unity(self.gf_mult(i, j), irr_poly):
                    invs[i] = j
                    invs[j] = i
                    found[i] = found[j] = True
                    break
            else:
                unresolved.append(i)
                if stop_on_missing:
                    break
        return invs, unresolved

    def find_inverses(self, irr_poly: Optional[int] = None) -> InverseTable:
        """
        Multiplicative inverses of every byte under irr_poly, found by brute force.
        0 has no inverse and maps to itself. Bytes left without an inverse (only
        possible when irr_poly is reducible) also map to 0 and are listed in
        `unresolved`.
        """
        if irr_poly is None:
            irr_poly = self.DEFAULT_POLY
        invs, unresolved = self._pair_inverses(irr_poly)
        if unresolved:
            logger.warning(
                "Polynomial 0x%x is not irreducible: %d bytes have no inverse",
                irr_poly, len(unresolved),
            )
        return InverseTable(poly=irr_poly, values=invs, unresolved=unresolved)

    def is_irreducible(self, irr_poly: int) -> bool:
        _, unresolved = self._pair_inverses(irr_poly, stop_on_missing=True)
        return not unresolved

    def list_irreducible_polys(self) -> List[int]:
        """All degree-8 polynomials under which every nonzero byte has an inverse"""
        # An even candidate has x as a factor, so only odd ones are tried
        polys = [p for p in range(0x101, 0x200, 2) if self.is_irreducible(p)]
        logger.info("Found %d irreducible polynomials of degree 8", len(polys))
        return polys

    # --- AFFINE TRANSFORM ---

    def affine_transform(self, x: int) -> int:
        """
        b = A * x + c over GF(2), with row j of A being AFFINE_ROW rotated left by j
        and c = AFFINE_CONSTANT. Bit j of the result comes from row j.
        """
        row = self.AFFINE_ROW
        result = 0
        for j in range(8):
            result |= self.parity(row & x) << j
            row = ((row << 1) | (row >> 7)) & 0xFF
        return result ^ self.AFFINE_CONSTANT

    def generate_sbox(self, irr_poly: Optional[int] = None, raw_inverse: bool = False) -> SBoxResult:
        """
        Generates S-Box using S(x) = A * x^(-1) + c.
        With raw_inverse the affine step is skipped and the inverse table is returned as is.
        """
        inverses = self.find_inverses(irr_poly)
        if raw_inverse:
            values = list(inverses.values)
        else:
            values = [self.affine_transform(inv) for inv in inverses.values]
        return SBoxResult(poly=inverses.poly, values=values, inverses=inverses, raw_inverse=raw_inverse)

    # --- RANDOM S-BOX ---

    def random_sbox(self, seed: Optional[int] = None) -> List[int]:
        """A uniformly random permutation of 0..255, the baseline for linear analysis"""
        rng = np.random.default_rng(seed)
        return rng.permutation(256).tolist()

    def check_bijective(self, sbox: List[int]) -> bool:
        return len(set(sbox)) == 256 and max(sbox) == 255 and min(sbox) == 0

    def check_balance_bits(self, sbox: List[int]) -> bool:
        """
        Check if each output bit is balanced (has 128 zeros and 128 ones).
        """
        for i in range(8):
            count_ones = sum((val >> i) & 1 for val in sbox)
            if count_ones != 128:
                return False
        return True

sbox_math = SBoxMath()
