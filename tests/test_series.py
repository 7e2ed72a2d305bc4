import numpy as np
import pandas as pd
import pytest

from indicator_engine.contracts import IndicatorInputError
from indicator_engine.indicators.series import Bar, BarSeries, ComputedSeries, InputName, as_input


@pytest.fixture
def two_bars():
    return BarSeries(open=[1.0, 2.0], high=[4.0, 6.0], low=[2.0, 2.0], close=[3.0, 4.0], volume=[10.0, 20.0])


def test_derived_price_views(two_bars):
    np.testing.assert_array_equal(two_bars.field(InputName.MEDIAN_PRICE), [3.0, 4.0])
    np.testing.assert_array_equal(two_bars.field("typical_price"), [3.0, 4.0])
    np.testing.assert_array_equal(two_bars.field(InputName.WEIGHTED_CLOSE), [3.0, 4.0])
    np.testing.assert_array_equal(two_bars.field(InputName.FULL_TYPICAL_PRICE), [2.5, 3.5])
    np.testing.assert_array_equal(two_bars.field(InputName.VOLUME), [10.0, 20.0])


def test_length_mismatch_rejected_at_construction():
    with pytest.raises(IndicatorInputError):
        BarSeries(open=[1, 2], high=[1, 2], low=[1, 2], close=[1, 2, 3])


def test_arrays_are_read_only(two_bars):
    with pytest.raises(ValueError):
        two_bars.close[0] = 99.0
    with pytest.raises(ValueError):
        two_bars.field(InputName.TYPICAL_PRICE)[0] = 99.0


def test_volume_defaults_to_zero():
    bars = BarSeries(open=[1, 2], high=[1, 2], low=[1, 2], close=[1, 2])
    np.testing.assert_array_equal(bars.volume, [0.0, 0.0])


def test_with_input_returns_new_series(two_bars):
    high_bars = two_bars.with_input("high")
    assert two_bars.primary.name == "close"
    assert high_bars.primary.name == "high"
    np.testing.assert_array_equal(high_bars.primary.values, [4.0, 6.0])


def test_with_primary_checks_length(two_bars):
    custom = ComputedSeries("rsi__rsi", [50.0, 60.0])
    assert two_bars.with_primary(custom).primary is custom
    assert two_bars.primary.name == "close"
    with pytest.raises(IndicatorInputError):
        two_bars.with_primary(ComputedSeries("short", [1.0]))


def test_from_dataframe_is_case_insensitive():
    df = pd.DataFrame({"Open": [1.0], "HIGH": [2.0], "low": [0.5], "Close": [1.5]})
    bars = BarSeries.from_dataframe(df, input_name="median_price")
    assert len(bars) == 1
    assert bars.primary.values[0] == pytest.approx(1.25)


def test_from_dataframe_missing_column():
    with pytest.raises(IndicatorInputError):
        BarSeries.from_dataframe(pd.DataFrame({"open": [1.0], "high": [1.0], "low": [1.0]}))


def test_from_bars_round_trip_frame():
    bars = BarSeries.from_bars([Bar(1, 2, 0.5, 1.5, 100), Bar(1.5, 2.5, 1, 2, 200)])
    frame = bars.to_frame()
    assert list(frame["close"]) == [1.5, 2.0]
    assert bars.fingerprint() == BarSeries.from_bars([Bar(1, 2, 0.5, 1.5, 100), Bar(1.5, 2.5, 1, 2, 200)]).fingerprint()


def test_as_input_accepts_all_sources(two_bars):
    assert as_input(two_bars).name == "close"
    series = ComputedSeries("x", [1.0, 2.0])
    assert as_input(series) is series
    arr = as_input([1, 2, 3])
    assert arr.values.dtype == np.float64
    assert len(arr) == 3


def test_computed_series_to_series():
    s = ComputedSeries("sma__sma", [1.0, 2.0]).to_series(index=["a", "b"])
    assert s.name == "sma__sma"
    assert s["b"] == 2.0
