"""
변동성 지표: True Range, ATR, 표준편차 변동성, Bollinger Bands, 상대 정규화 변동성(벤치마크 비교).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional

import numpy as np

from indicator_engine.contracts import IndicatorConfig, IndicatorInputError, ParamSpec
from indicator_engine.shared.logger import get_logger
from indicator_engine.shared.numeric import safe_divide_array
from .helpers import abs_values, changes, check_same_length, max_rows, previous, resolve_config, shift_right_and_fill_by
from .result import IndicatorResult, OutputAggregator
from .rolling import WindowPolicy, resolve_policy, rolling_std
from .series import BarSeries, as_input
from .signals import bollinger_bands_signal, classify, compare_signals, volatility_signal
from .trend import PERIOD_SPEC, POLICY_SPEC, MovingAvgType, ma_type_spec, moving_average, period_spec

logger = get_logger("indicator.volatility")


def _volatility_signals(values: np.ndarray, baseline: np.ndarray, metric: np.ndarray, threshold) -> tuple:
    delta = values - baseline
    threshold = np.broadcast_to(np.asarray(threshold, dtype=np.float64), metric.shape)
    return classify(volatility_signal, delta, previous(delta), metric, threshold)


def true_range_values(highs, lows, closings) -> np.ndarray:
    """max(h - l, |h - prev_c|, |l - prev_c|). 첫 봉의 prev_c는 자기 종가."""
    check_same_length(highs, lows, closings)
    if len(closings) == 0:
        return np.zeros(0)
    prev_close = shift_right_and_fill_by(1, closings[0], closings)
    highs = np.asarray(highs, dtype=np.float64)
    lows = np.asarray(lows, dtype=np.float64)
    return max_rows(highs - lows, abs_values(highs - prev_close), abs_values(lows - prev_close))


def _bars_true_range(bars: BarSeries) -> np.ndarray:
    high, low = bars.input_range()
    return true_range_values(high, low, bars.primary.values)


def true_range(bars: BarSeries, config: Optional[Dict[str, Any]] = None) -> IndicatorResult:
    tr = _bars_true_range(bars)
    return (
        OutputAggregator("tr", len(bars))
        .add("tr", tr, primary=True)
        .set_signals(compare_signals(changes(1, tr)))
        .build()
    )


@dataclass
class ATRConfig(IndicatorConfig):
    period: int = 14
    ma_type: MovingAvgType = MovingAvgType.WILDERS

    PARAMS: ClassVar[List[ParamSpec]] = [PERIOD_SPEC, ma_type_spec(MovingAvgType.WILDERS)]


def atr(bars: BarSeries, config: ATRConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """ATR. 신호: 종가-EMA 방향, ATR이 자기 이동평균보다 낮으면 Neutral."""
    cfg = resolve_config(config, ATRConfig)
    values = bars.primary.values
    tr = _bars_true_range(bars)
    atr_line = moving_average(tr, cfg.period, cfg.ma_type)
    atr_ma = moving_average(atr_line, cfg.period, MovingAvgType.SIMPLE)
    baseline = moving_average(values, cfg.period, MovingAvgType.EXPONENTIAL)
    return (
        OutputAggregator("atr", len(values))
        .add("atr", atr_line, primary=True)
        .add("tr", tr)
        .set_signals(_volatility_signals(values, baseline, atr_line, atr_ma))
        .build()
    )


@dataclass
class StdDevConfig(IndicatorConfig):
    period: int = 20
    window_policy: Optional[WindowPolicy] = None

    PARAMS: ClassVar[List[ParamSpec]] = [period_spec(20), POLICY_SPEC]


def std_dev_volatility(source, config: StdDevConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, StdDevConfig)
    values = as_input(source).values
    std = rolling_std(values, cfg.period, resolve_policy(cfg.window_policy))
    std_ma = moving_average(std, cfg.period, MovingAvgType.EXPONENTIAL)
    baseline = moving_average(values, cfg.period, MovingAvgType.EXPONENTIAL)
    return (
        OutputAggregator("std_dev", len(values))
        .add("std_dev", std, primary=True)
        .add("variance", std * std)
        .set_signals(_volatility_signals(values, baseline, std, std_ma))
        .build()
    )


@dataclass
class BBConfig(IndicatorConfig):
    period: int = 20
    std_mult: float = 2.0
    ma_type: MovingAvgType = MovingAvgType.SIMPLE

    PARAMS: ClassVar[List[ParamSpec]] = [
        period_spec(20),
        ParamSpec("std_mult", "float", min=0.0, max=10.0, default=2.0),
        ma_type_spec(MovingAvgType.SIMPLE),
    ]


def bollinger_bands(source, config: BBConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """상/중/하단 밴드. 중심선(middle)이 합성용 primary."""
    cfg = resolve_config(config, BBConfig)
    values = as_input(source).values
    middle = moving_average(values, cfg.period, cfg.ma_type)
    std = rolling_std(values, cfg.period, WindowPolicy.PARTIAL)
    upper = middle + cfg.std_mult * std
    lower = middle - cfg.std_mult * std
    delta = values - middle
    signals = classify(
        bollinger_bands_signal,
        delta, previous(delta), values, previous(values), upper, previous(upper), lower, previous(lower),
    )
    return (
        OutputAggregator("bbands", len(values))
        .add("upper", upper)
        .add("middle", middle, primary=True)
        .add("lower", lower)
        .add("width", safe_divide_array(upper - lower, middle))
        .set_signals(signals)
        .build()
    )


@dataclass
class RNVConfig(IndicatorConfig):
    period: int = 14
    ma_type: MovingAvgType = MovingAvgType.SIMPLE
    threshold: float = 1.0

    PARAMS: ClassVar[List[ParamSpec]] = [
        PERIOD_SPEC,
        ma_type_spec(MovingAvgType.SIMPLE),
        ParamSpec("threshold", "float", min=0.0, default=1.0),
    ]


def relative_normalized_volatility(source, benchmark, config: RNVConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """
    종목 대비 벤치마크(시장) 정규화 변동성 비율.
    z = 1봉 변화 / 표준편차, r = MA(|z_src|) / MA(|z_benchmark|). 분모 0 -> 0.
    두 시리즈 길이가 다르면 계산 전에 IndicatorInputError.
    """
    cfg = resolve_config(config, RNVConfig)
    values = as_input(source).values
    bench = as_input(benchmark, "benchmark").values
    if len(values) != len(bench):
        logger.error(f"[RNV] Benchmark length {len(bench)} != series length {len(values)}")
        raise IndicatorInputError(f"benchmark length {len(bench)} not {len(values)}")

    std = rolling_std(values, cfg.period, WindowPolicy.PARTIAL)
    bench_std = rolling_std(bench, cfg.period, WindowPolicy.PARTIAL)
    z_src = np.abs(safe_divide_array(changes(1, values), std))
    z_bench = np.abs(safe_divide_array(changes(1, bench), bench_std))
    ratio = safe_divide_array(
        moving_average(z_src, cfg.period, cfg.ma_type),
        moving_average(z_bench, cfg.period, cfg.ma_type),
    )
    baseline = moving_average(values, cfg.period, cfg.ma_type)
    return (
        OutputAggregator("rnv", len(values))
        .add("rnv", ratio, primary=True)
        .add("abs_z", z_src)
        .add("abs_z_benchmark", z_bench)
        .set_signals(_volatility_signals(values, baseline, ratio, cfg.threshold))
        .build()
    )
