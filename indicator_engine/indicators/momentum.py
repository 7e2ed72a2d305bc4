"""
모멘텀 지표: RSI, Stochastic Oscillator, Rate of Change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List

import numpy as np

from indicator_engine.contracts import IndicatorConfig, ParamSpec
from indicator_engine.shared.numeric import safe_divide_array
from .helpers import changes, previous, resolve_config
from .result import IndicatorResult, OutputAggregator
from .rolling import WindowPolicy, rolling_max, rolling_min
from .series import BarSeries, as_input
from .signals import classify, compare_signals, rsi_signal
from .trend import PERIOD_SPEC, MovingAvgType, ma_type_spec, moving_average, period_spec


@dataclass
class RSIConfig(IndicatorConfig):
    period: int = 14
    signal_period: int = 3
    ma_type: MovingAvgType = MovingAvgType.WILDERS
    overbought: float = 70.0
    oversold: float = 30.0

    PARAMS: ClassVar[List[ParamSpec]] = [
        PERIOD_SPEC,
        ParamSpec("signal_period", "int", min=1, max=1000, default=3),
        ma_type_spec(MovingAvgType.WILDERS),
        ParamSpec("overbought", "float", min=0, max=100, default=70.0),
        ParamSpec("oversold", "float", min=0, max=100, default=30.0),
    ]


def rsi_values(values, period: int = 14, ma_type: MovingAvgType | str = MovingAvgType.WILDERS) -> np.ndarray:
    """
    평균 손실이 0이면 100, 평균 이익이 0이면 0, 그 외 100 - 100 / (1 + RS) (0..100 클램프).
    """
    change = changes(1, values)
    avg_gain = moving_average(np.where(change > 0, change, 0.0), period, ma_type)
    avg_loss = moving_average(np.where(change < 0, -change, 0.0), period, ma_type)
    rs = safe_divide_array(avg_gain, avg_loss)
    rsi_line = np.clip(100 - 100 / (1 + rs), 0, 100)
    rsi_line = np.where(avg_gain == 0, 0.0, rsi_line)
    return np.where(avg_loss == 0, 100.0, rsi_line)


def rsi(source, config: RSIConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, RSIConfig)
    values = as_input(source).values
    rsi_line = rsi_values(values, cfg.period, cfg.ma_type)
    signal_line = moving_average(rsi_line, cfg.signal_period, cfg.ma_type)
    histogram = rsi_line - signal_line
    signals = classify(
        lambda h, ph, v, pv: rsi_signal(h, ph, v, pv, cfg.overbought, cfg.oversold),
        histogram, previous(histogram), rsi_line, previous(rsi_line),
    )
    return (
        OutputAggregator("rsi", len(values))
        .add("rsi", rsi_line, primary=True)
        .add("signal", signal_line)
        .add("histogram", histogram)
        .set_signals(signals)
        .build()
    )


@dataclass
class StochasticConfig(IndicatorConfig):
    period: int = 14
    smooth_k: int = 3
    smooth_d: int = 3
    ma_type: MovingAvgType = MovingAvgType.SIMPLE
    overbought: float = 80.0
    oversold: float = 20.0

    PARAMS: ClassVar[List[ParamSpec]] = [
        PERIOD_SPEC,
        ParamSpec("smooth_k", "int", min=1, max=1000, default=3),
        ParamSpec("smooth_d", "int", min=1, max=1000, default=3),
        ma_type_spec(MovingAvgType.SIMPLE),
        ParamSpec("overbought", "float", min=0, max=100, default=80.0),
        ParamSpec("oversold", "float", min=0, max=100, default=20.0),
    ]


def stochastic(bars: BarSeries, config: StochasticConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """
    fast %K = (x - LL) / (HH - LL) * 100, HH == LL 이면 0.
    HH/LL은 BarSeries.input_range() 기준 (가격이 아닌 입력이면 입력 자체의 범위).
    %D = MA(%K, smooth_k), slow %D = MA(%D, smooth_d).
    """
    cfg = resolve_config(config, StochasticConfig)
    values = bars.primary.values
    high, low = bars.input_range()
    highest = rolling_max(high, cfg.period, WindowPolicy.PARTIAL)
    lowest = rolling_min(low, cfg.period, WindowPolicy.PARTIAL)
    fast_k = np.clip(safe_divide_array(values - lowest, highest - lowest) * 100, 0, 100)
    fast_d = moving_average(fast_k, cfg.smooth_k, cfg.ma_type)
    slow_d = moving_average(fast_d, cfg.smooth_d, cfg.ma_type)
    spread = fast_d - slow_d
    signals = classify(
        lambda d, pd_, v, pv: rsi_signal(d, pd_, v, pv, cfg.overbought, cfg.oversold),
        spread, previous(spread), fast_d, previous(fast_d),
    )
    return (
        OutputAggregator("stochastic", len(values))
        .add("fast_k", fast_k, primary=True)
        .add("fast_d", fast_d)
        .add("slow_d", slow_d)
        .set_signals(signals)
        .build()
    )


@dataclass
class ROCConfig(IndicatorConfig):
    period: int = 12

    PARAMS: ClassVar[List[ParamSpec]] = [period_spec(12)]


def rate_of_change(source, config: ROCConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """(x_i - x_{i-n}) / x_{i-n} * 100. 이력 부족 또는 x_{i-n} == 0 이면 0."""
    cfg = resolve_config(config, ROCConfig)
    values = as_input(source).values
    roc = safe_divide_array(changes(cfg.period, values), previous(values, cfg.period)) * 100
    return (
        OutputAggregator("roc", len(values))
        .add("roc", roc, primary=True)
        .set_signals(compare_signals(roc))
        .build()
    )
