"""Random-normal sources used by every simulation strategy.

Both algorithms are approximations of a standard normal draw and are
interchangeable; they are kept side by side so a strategy can reproduce the
output shape it has always produced.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from models import SamplerName


class GaussianSampler(ABC):
    """Standard-normal draws over an owned uniform source.

    Each instance holds its own ``numpy.random.Generator``, so independent
    simulations never share random state.
    """

    name: str = "abstract"

    def __init__(self, seed: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        self.seed = seed
        self._rng = rng if rng is not None else np.random.default_rng(seed)

    def uniform(self, size: int) -> np.ndarray:
        """Uniform draws in [0, 1)."""
        return self._rng.random(size)

    @abstractmethod
    def sample(self, size: int) -> np.ndarray:
        """Return ``size`` approximately standard-normal draws."""

    def next(self) -> float:
        return float(self.sample(1)[0])


class BoxMullerSampler(GaussianSampler):
    name = "box_muller"

    def _open_uniform(self, size: int) -> np.ndarray:
        # ln(0) is undefined, so zeros are redrawn until u is in (0, 1).
        u = self._rng.random(size)
        zeros = u == 0.0
        while zeros.any():
            u[zeros] = self._rng.random(int(zeros.sum()))
            zeros = u == 0.0
        return u

    def sample(self, size: int) -> np.ndarray:
        u1 = self._open_uniform(size)
        u2 = self._open_uniform(size)
        return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


class CentralLimitSampler(GaussianSampler):
    """Sum of six uniforms minus 3, scaled to unit variance (var = 6/12)."""

    name = "central_limit"
    terms = 6

    def sample(self, size: int) -> np.ndarray:
        u = self._rng.random((size, self.terms))
        return (u.sum(axis=1) - self.terms / 2.0) / np.sqrt(self.terms / 12.0)


SAMPLERS = {
    BoxMullerSampler.name: BoxMullerSampler,
    CentralLimitSampler.name: CentralLimitSampler,
}


def make_sampler(name: SamplerName, seed: Optional[int] = None) -> GaussianSampler:
    try:
        sampler_cls = SAMPLERS[name]
    except KeyError:
        raise ValueError(f"Unknown sampler: {name}") from None
    return sampler_cls(seed=seed)
