"""
Market shock model: GBM + jump-diffusion collateral price multipliers.
"""

import math

import numpy as np

from config.params import MARKET, MarketShockParams
from models.distributions import RandomSource, normal


class MarketShockModel:
    """
    Per-period log return:

        r = drift*dt + volatility*sqrt(dt)*Z  (+ N(jump_mean, jump_vol) w.p. jump_probability)

    with dt = 1/periods_per_year. The path is the running product of
    exp(r), starting at 1.0.
    """

    def __init__(self, params: MarketShockParams = MARKET):
        self.params = params
        self.dt = 1.0 / params.periods_per_year
        self.mu = params.drift * self.dt
        self.sigma = params.volatility * math.sqrt(self.dt)

    def simulate(self, rng: RandomSource, periods: int) -> np.ndarray:
        """Return `periods` price multipliers; element 0 is the 1.0 baseline."""
        if periods <= 0:
            raise ValueError("periods must be positive")
        p = self.params
        path = np.empty(periods, dtype=np.float64)
        path[0] = 1.0
        level = 1.0
        for i in range(1, periods):
            ret = self.mu + self.sigma * normal(rng)
            if rng.uniform() < p.jump_probability:
                ret += normal(rng, p.jump_mean, p.jump_vol)
            level = level * math.exp(ret)
            path[i] = level
        return path


def simulate_price_path(rng: RandomSource, params: MarketShockParams,
                        periods: int) -> np.ndarray:
    return MarketShockModel(params).simulate(rng, periods)


def worst_price(path: np.ndarray) -> float:
    """Minimum multiplier reached by the path."""
    return float(np.min(path))
