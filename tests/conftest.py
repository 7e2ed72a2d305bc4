import numpy as np
import pytest

from indicator_engine.indicators.registry import get_registry, reset_registry
from indicator_engine.indicators.series import BarSeries


def random_walk_bars(n: int = 200, seed: int = 7) -> BarSeries:
    rng = np.random.default_rng(seed)
    close = 100 + np.cumsum(rng.normal(0, 1, n))
    open_ = close + rng.normal(0, 0.5, n)
    high = np.maximum(open_, close) + rng.uniform(0, 1, n)
    low = np.minimum(open_, close) - rng.uniform(0, 1, n)
    volume = rng.integers(1_000, 10_000, n).astype(float)
    return BarSeries(open_, high, low, close, volume)


@pytest.fixture
def bars_factory():
    return random_walk_bars


@pytest.fixture
def bars():
    return random_walk_bars()


@pytest.fixture
def benchmark_bars():
    return random_walk_bars(seed=11)


@pytest.fixture
def fresh_registry():
    reset_registry()
    yield get_registry()
    reset_registry()
