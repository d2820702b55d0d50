"""Seeded pseudo-random number generation.

Every stochastic decision made during a simulation run (arrival times,
service times) is drawn from a single :class:`Mulberry32` stream. The stream
is fully determined by its 32-bit seed, so identical seeds produce
bit-identical sequences on every platform.

"""

_MASK = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK


class Mulberry32:
    """Mulberry32 generator with a 32-bit state and a period of 2**32.

    :param int seed: Seed value. Only the low 32 bits are significant.

    """

    def __init__(self, seed: int) -> None:
        self._state = 0
        self.reset(seed)

    def reset(self, seed: int) -> None:
        """Reinitialize the stream from `seed`."""
        self._state = int(seed) & _MASK

    def next(self) -> float:
        """Return the next uniform float in [0, 1)."""
        self._state = (self._state + 0x6D2B79F5) & _MASK
        s = self._state
        t = _imul(s ^ (s >> 15), 1 | s)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK) ^ t
        return ((t ^ (t >> 14)) & _MASK) / 4294967296

    def next_int(self, lo: int, hi: int) -> int:
        """Return a uniformly distributed integer in [lo, hi], inclusive."""
        return lo + int(self.next() * (hi - lo + 1))

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(state={self._state:#010x})'


def create_rng(seed: int) -> Mulberry32:
    return Mulberry32(seed)
