"""
Seeded random source and distribution sampling for Monte Carlo runs.

RandomSource wraps a NumPy PCG64 generator keyed by a SeedSequence:
- integer seed n (>= 0)        -> SeedSequence(n)
- digit string "n"             -> same as integer n
- any other string s           -> first 8 bytes of sha256(s), big-endian
- per-path source (seed, i)    -> SeedSequence(seed, spawn_key=(i,))

Per-path streams depend only on (seed, i), never on how many paths run
or on the master stream.
"""

import hashlib
import math

import numpy as np

_BLOCK = 512


def seed_to_int(seed: int | str) -> int:
    """Map an integer or string seed to the non-negative integer fed to SeedSequence."""
    if isinstance(seed, (int, np.integer)) and not isinstance(seed, bool):
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}")
        return int(seed)
    if isinstance(seed, str):
        if seed.isdigit():
            return int(seed)
        digest = hashlib.sha256(seed.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big")
    raise TypeError(f"seed must be int or str, got {type(seed).__name__}")


class RandomSource:
    """
    Deterministic uniform [0, 1) source.

    Draws are served from a block buffer; PCG64 yields the same doubles
    whether drawn one at a time or in blocks.
    """

    def __init__(self, seed: int | str, path_index: int | None = None):
        self.seed = seed
        self.path_index = path_index
        if path_index is None:
            seq = np.random.SeedSequence(seed_to_int(seed))
        else:
            if path_index < 0:
                raise ValueError("path_index must be non-negative")
            seq = np.random.SeedSequence(seed_to_int(seed), spawn_key=(int(path_index),))
        self._gen = np.random.Generator(np.random.PCG64(seq))
        self._buffer = np.empty(0)
        self._pos = 0

    @classmethod
    def for_path(cls, seed: int | str, path_index: int) -> "RandomSource":
        return cls(seed, path_index=path_index)

    def uniform(self) -> float:
        if self._pos >= self._buffer.size:
            self._buffer = self._gen.random(_BLOCK)
            self._pos = 0
        u = float(self._buffer[self._pos])
        self._pos += 1
        return u

    __call__ = uniform


def uniform(rng: RandomSource) -> float:
    """Uniform [0,1)."""
    return rng.uniform()


def normal(rng: RandomSource, mean: float = 0.0, std_dev: float = 1.0) -> float:
    """
    Normal draw via Box-Muller (cosine branch).

    Both uniforms are redrawn while the first is <= 1e-10, keeping log() finite.
    """
    while True:
        u1 = rng.uniform()
        u2 = rng.uniform()
        if u1 > 1e-10:
            break
    return mean + std_dev * math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def log_normal(rng: RandomSource, mu: float, sigma: float) -> float:
    return math.exp(normal(rng, mu, sigma))


def exponential(rng: RandomSource, lam: float) -> float:
    """Exponential via inverse CDF; 0 on the degenerate draw u >= 1."""
    if lam <= 0:
        raise ValueError(f"rate must be positive, got {lam}")
    u = rng.uniform()
    if u >= 1.0:
        return 0.0
    return -math.log(1.0 - u) / lam


def weighted(rng: RandomSource, weights) -> int:
    """Sample an index with probability proportional to `weights`."""
    weights = [float(w) for w in weights]
    if not weights:
        raise ValueError("weights must not be empty")
    if any(w < 0 for w in weights):
        raise ValueError("weights must be non-negative")
    total = sum(weights)
    if total <= 0:
        raise ValueError("weights sum to zero")
    r = rng.uniform() * total
    for i, w in enumerate(weights):
        r -= w
        if r <= 0:
            return i
    return len(weights) - 1
