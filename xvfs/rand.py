"""MT19937 pseudo-random generator with Knuth seeding and bounded draws."""

from __future__ import annotations

_N = 624
_M = 397
_MATRIX_A = 0x9908B0DF
_UPPER_MASK = 0x80000000
_LOWER_MASK = 0x7FFFFFFF
_TEMPERING_MASK_B = 0x9D2C5680
_TEMPERING_MASK_C = 0xEFC60000
_MASK32 = 0xFFFFFFFF
_MAG01 = (0, _MATRIX_A)

RAND_MAX = 0x7FFFFFFF
DEFAULT_SEED = 4357


class MersenneTwister:
    """Generator of 31-bit pseudo-random integers."""

    def __init__(self, seed: int | None = None) -> None:
        self._mt = [0] * _N
        self._mti = _N
        self.seed(DEFAULT_SEED if seed is None else seed)

    def seed(self, seed: int) -> None:
        """Reset the state from ``seed``."""
        mt = self._mt
        mt[0] = seed & _MASK32
        for i in range(1, _N):
            mt[i] = (69069 * mt[i - 1]) & _MASK32
        self._mti = _N

    def _generate(self) -> None:
        mt = self._mt
        for kk in range(_N):
            y = (mt[kk] & _UPPER_MASK) | (mt[(kk + 1) % _N] & _LOWER_MASK)
            mt[kk] = mt[(kk + _M) % _N] ^ (y >> 1) ^ _MAG01[y & 1]
        self._mti = 0

    def genrand(self) -> int:
        """Return the next value in [0, RAND_MAX]."""
        if self._mti >= _N:
            self._generate()
        y = self._mt[self._mti]
        self._mti += 1
        y ^= y >> 11
        y ^= (y << 7) & _TEMPERING_MASK_B
        y ^= (y << 15) & _TEMPERING_MASK_C
        y ^= y >> 18
        return y & RAND_MAX

    def random_at_most(self, max_value: int) -> int:
        """Return a uniformly distributed value in [0, max_value]."""
        if not 0 <= max_value <= RAND_MAX:
            raise ValueError(f"max_value must lie in [0, {RAND_MAX}]")
        num_bins = max_value + 1
        num_rand = RAND_MAX + 1
        bin_size, defect = divmod(num_rand, num_bins)
        while True:
            x = self.genrand()
            if x < num_rand - defect:
                return x // bin_size