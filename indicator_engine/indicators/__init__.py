"""
지표 계산 기반(substrate)과 대표 지표 카탈로그.
rolling/filters/signals/result/graph 하위 모듈과 trend/momentum/volatility/volume 지표를 통해 사용하세요.
"""

from .series import Bar, BarSeries, ComputedSeries, InputName, as_input
from .rolling import (
    MonotonicWindow,
    RollingWindow,
    RunningMoments,
    RunningSum,
    WindowPolicy,
    WindowSpec,
    rolling_average,
    rolling_max,
    rolling_min,
    rolling_std,
    rolling_sum,
    window_average,
    window_max,
    window_min,
    window_std,
    window_sum,
)
from .filters import (
    AdaptiveFilter,
    CascadedFilter,
    ExponentialFilter,
    FilterState,
    SecondOrderFilter,
    SeedPolicy,
    SuperSmootherFilter,
    WilderFilter,
)
from .signals import (
    Signal,
    bollinger_bands_signal,
    bullish_bearish_signal,
    compare_signal,
    condition_signal,
    rsi_signal,
    volatility_signal,
)
from .result import IndicatorResult, OutputAggregator
from .trend import (
    MovingAvgType,
    moving_average,
    sma,
    wma,
    ema,
    wilders_ma,
    kama,
    dema,
    tema,
    t3,
    hull_ma,
    super_smoother,
    macd,
)
from .momentum import rsi, stochastic, rate_of_change
from .volatility import true_range, atr, std_dev_volatility, bollinger_bands, relative_normalized_volatility
from .volume import vwap, obv, mfi, vwma
from .registry import IndicatorRegistry, get_registry, inject_registry, reset_registry
from .graph import CompositionGraph, GraphNode, compose

__all__ = [
    # series
    "Bar",
    "BarSeries",
    "ComputedSeries",
    "InputName",
    "as_input",
    # rolling
    "MonotonicWindow",
    "RollingWindow",
    "RunningMoments",
    "RunningSum",
    "WindowPolicy",
    "WindowSpec",
    "rolling_average",
    "rolling_max",
    "rolling_min",
    "rolling_std",
    "rolling_sum",
    "window_average",
    "window_max",
    "window_min",
    "window_std",
    "window_sum",
    # filters
    "AdaptiveFilter",
    "CascadedFilter",
    "ExponentialFilter",
    "FilterState",
    "SecondOrderFilter",
    "SeedPolicy",
    "SuperSmootherFilter",
    "WilderFilter",
    # signals
    "Signal",
    "bollinger_bands_signal",
    "bullish_bearish_signal",
    "compare_signal",
    "condition_signal",
    "rsi_signal",
    "volatility_signal",
    # result
    "IndicatorResult",
    "OutputAggregator",
    # trend
    "MovingAvgType",
    "moving_average",
    "sma",
    "wma",
    "ema",
    "wilders_ma",
    "kama",
    "dema",
    "tema",
    "t3",
    "hull_ma",
    "super_smoother",
    "macd",
    # momentum
    "rsi",
    "stochastic",
    "rate_of_change",
    # volatility
    "true_range",
    "atr",
    "std_dev_volatility",
    "bollinger_bands",
    "relative_normalized_volatility",
    # volume
    "vwap",
    "obv",
    "mfi",
    "vwma",
    # composition
    "IndicatorRegistry",
    "get_registry",
    "inject_registry",
    "reset_registry",
    "CompositionGraph",
    "GraphNode",
    "compose",
]
