"""
Catalog-wide properties: causality, determinism, numeric fallbacks, warm-up length.
"""
import numpy as np
import pytest

from indicator_engine.indicators.registry import get_registry
from indicator_engine.indicators.series import BarSeries
from indicator_engine.shared.hashing import hash_values

CUT = 120


def _truncate(bars: BarSeries, k: int) -> BarSeries:
    return BarSeries(bars.open[:k], bars.high[:k], bars.low[:k], bars.close[:k], bars.volume[:k])


def _invoke_all(bars, benchmark, params=None):
    registry = get_registry()
    return {d.id: registry.invoke(d.id, bars, params, benchmark=benchmark) for d in registry.list_all()}


def test_outputs_never_look_ahead(bars, benchmark_bars):
    full = _invoke_all(bars, benchmark_bars.close)
    prefix = _invoke_all(_truncate(bars, CUT), benchmark_bars.close[:CUT])
    for indicator_id, result in full.items():
        short = prefix[indicator_id]
        for key in result.keys():
            np.testing.assert_array_equal(
                result[key].values[:CUT], short[key].values, err_msg=f"{indicator_id}.{key}"
            )
        assert result.signals[:CUT] == short.signals, indicator_id


def test_reruns_are_bit_identical(bars, benchmark_bars):
    first = _invoke_all(bars, benchmark_bars.close)
    second = _invoke_all(bars, benchmark_bars.close)
    for indicator_id, result in first.items():
        for key in result.keys():
            assert hash_values(result[key].values) == hash_values(second[indicator_id][key].values), indicator_id


def test_degenerate_bars_stay_finite():
    n = 40
    zeros = np.zeros(n)
    flat = BarSeries(zeros, zeros, zeros, zeros, zeros)
    for indicator_id, result in _invoke_all(flat, zeros).items():
        for key in result.keys():
            assert np.isfinite(result[key].values).all(), f"{indicator_id}.{key}"


@pytest.mark.parametrize("n", [1, 2, 5])
def test_short_series_keep_full_length(bars_factory, n):
    short = bars_factory(n=n, seed=3)
    bench = bars_factory(n=n, seed=4).close
    for indicator_id, result in _invoke_all(short, bench, None).items():
        assert len(result) == n, indicator_id
        assert all(len(series) == n for series in result.outputs.values()), indicator_id


def test_windows_longer_than_history(bars_factory):
    short = bars_factory(n=8)
    result = get_registry().invoke("SMA", short, {"period": 50})
    assert len(result) == 8
    assert result.primary.values[0] == short.close[0]
    np.testing.assert_allclose(result.primary.values[-1], short.close.mean())
