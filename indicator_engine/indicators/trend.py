"""
추세성 지표: SMA/WMA/EMA/Wilder/KAMA/DEMA/TEMA/T3/Hull/SuperSmoother/MACD.

*_values 함수는 float64 배열을, 지표 함수(sma, ema, ...)는 IndicatorResult를 돌려준다.
입력(source)은 BarSeries, ComputedSeries, IndicatorResult(primary 사용), 배열 모두 가능.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

import numpy as np

from indicator_engine.contracts import IndicatorConfig, ParamSpec
from indicator_engine.shared.numeric import clamp_length, safe_divide_array
from .filters import AdaptiveFilter, CascadedFilter, ExponentialFilter, SuperSmootherFilter, WilderFilter
from .helpers import as_float_array, changes, resolve_config
from .result import IndicatorResult, OutputAggregator, line_result
from .rolling import RunningSum, WindowPolicy, resolve_policy, rolling_average, rolling_sum
from .series import as_input
from .signals import compare_signals, crossover_signals


class MovingAvgType(str, Enum):
    SIMPLE = "sma"
    WEIGHTED = "wma"
    EXPONENTIAL = "ema"
    WILDERS = "wilders"
    KAUFMAN = "kama"
    DOUBLE_EXPONENTIAL = "dema"
    TRIPLE_EXPONENTIAL = "tema"
    T3 = "t3"
    HULL = "hull"
    SUPER_SMOOTHER = "super_smoother"


def period_spec(default: int = 14) -> ParamSpec:
    return ParamSpec("period", "int", min=1, max=10_000, default=default)


PERIOD_SPEC = period_spec()
POLICY_SPEC = ParamSpec("window_policy", "categorical", enum_cls=WindowPolicy)


def ma_type_spec(default: MovingAvgType = MovingAvgType.SIMPLE) -> ParamSpec:
    """ma_type 파라미터 스펙. default는 설정 클래스의 필드 기본값과 같아야 한다."""
    return ParamSpec("ma_type", "categorical", enum_cls=MovingAvgType, default=default)


# ============================================
# Array-level moving averages
# ============================================
def sma_values(values, period: int, policy: WindowPolicy | str | None = None) -> np.ndarray:
    return rolling_average(values, period, policy)


def wma_values(values, period: int) -> np.ndarray:
    """
    선형 가중 이동평균 (가중치 period..1). 이력이 없는 샘플은 0으로 간주하고
    분모는 항상 전체 가중치 합을 쓴다.
    W_i = W_{i-1} + period * x_i - S_{i-1}, S = 직전 period개 샘플 합.
    """
    arr = as_float_array(values)
    weight_total = period * (period + 1) / 2
    weighted = RunningSum()
    window = RunningSum()
    out = np.empty(len(arr), dtype=np.float64)
    for i, v in enumerate(arr):
        weighted.add(period * v)
        weighted.remove(window.value)
        window.add(v)
        if i >= period:
            window.remove(arr[i - period])
        out[i] = weighted.value / weight_total
    return out


def ema_values(values, period: int) -> np.ndarray:
    return ExponentialFilter(length=period).run(values)


def wilders_values(values, period: int) -> np.ndarray:
    return WilderFilter(period).run(values)


def efficiency_ratio(values, period: int) -> np.ndarray:
    """|x_i - x_{i-period}| / sum(|x_k - x_{k-1}|, period). 분모 0 -> 0."""
    arr = as_float_array(values)
    volatility = np.abs(changes(1, arr))
    momentum = np.abs(changes(period, arr))
    return safe_divide_array(momentum, rolling_sum(volatility, period, WindowPolicy.PARTIAL))


def kama_values(values, period: int = 10, fast: int = 2, slow: int = 30) -> Tuple[np.ndarray, np.ndarray]:
    er = efficiency_ratio(values, period)
    return AdaptiveFilter(fast, slow).run(values, aux=er), er


def _ema_cascade(values, period: int, depth: int) -> List[np.ndarray]:
    return CascadedFilter.repeat(lambda: ExponentialFilter(length=period), depth).run_stages(values)


def dema_values(values, period: int) -> np.ndarray:
    e1, e2 = _ema_cascade(values, period, 2)
    return 2 * e1 - e2


def tema_values(values, period: int) -> np.ndarray:
    e1, e2, e3 = _ema_cascade(values, period, 3)
    return 3 * e1 - 3 * e2 + e3


def t3_values(values, period: int = 5, v_factor: float = 0.7) -> np.ndarray:
    """Tillson T3: 6단 EMA 캐스케이드의 3~6단 가중 합."""
    v = v_factor
    c1 = -v ** 3
    c2 = 3 * v ** 2 + 3 * v ** 3
    c3 = -6 * v ** 2 - 3 * v - 3 * v ** 3
    c4 = 1 + 3 * v + v ** 3 + 3 * v ** 2
    stages = _ema_cascade(values, period, 6)
    return c1 * stages[5] + c2 * stages[4] + c3 * stages[3] + c4 * stages[2]


def super_smoother_values(values, period: int = 10) -> np.ndarray:
    return SuperSmootherFilter(period).run(values)


def hull_values(values, period: int = 20, ma_type: MovingAvgType | str = MovingAvgType.WEIGHTED) -> np.ndarray:
    half = clamp_length(math.ceil(period / 2))
    root = clamp_length(math.ceil(math.sqrt(period)))
    raw = 2 * moving_average(values, half, ma_type) - moving_average(values, period, ma_type)
    return moving_average(raw, root, ma_type)


def moving_average(values, period: int, kind: MovingAvgType | str = MovingAvgType.SIMPLE,
                   policy: WindowPolicy | str | None = None) -> np.ndarray:
    """MovingAvgType으로 이동평균 구현을 선택한다."""
    kind = MovingAvgType(kind)
    if kind is MovingAvgType.SIMPLE:
        return sma_values(values, period, policy)
    if kind is MovingAvgType.WEIGHTED:
        return wma_values(values, period)
    if kind is MovingAvgType.EXPONENTIAL:
        return ema_values(values, period)
    if kind is MovingAvgType.WILDERS:
        return wilders_values(values, period)
    if kind is MovingAvgType.KAUFMAN:
        return kama_values(values, period)[0]
    if kind is MovingAvgType.DOUBLE_EXPONENTIAL:
        return dema_values(values, period)
    if kind is MovingAvgType.TRIPLE_EXPONENTIAL:
        return tema_values(values, period)
    if kind is MovingAvgType.T3:
        return t3_values(values, period)
    if kind is MovingAvgType.HULL:
        return hull_values(values, period)
    return super_smoother_values(values, period)


# ============================================
# Indicators
# ============================================
@dataclass
class SMAConfig(IndicatorConfig):
    period: int = 14
    window_policy: Optional[WindowPolicy] = None

    PARAMS: ClassVar[List[ParamSpec]] = [PERIOD_SPEC, POLICY_SPEC]


def sma(source, config: SMAConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, SMAConfig)
    values = as_input(source).values
    line = sma_values(values, cfg.period, resolve_policy(cfg.window_policy))
    return line_result("sma", "sma", values, line)


@dataclass
class WMAConfig(IndicatorConfig):
    period: int = 14

    PARAMS: ClassVar[List[ParamSpec]] = [PERIOD_SPEC]


def wma(source, config: WMAConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, WMAConfig)
    values = as_input(source).values
    return line_result("wma", "wma", values, wma_values(values, cfg.period))


@dataclass
class EMAConfig(IndicatorConfig):
    period: int = 14

    PARAMS: ClassVar[List[ParamSpec]] = [PERIOD_SPEC]


def ema(source, config: EMAConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, EMAConfig)
    values = as_input(source).values
    return line_result("ema", "ema", values, ema_values(values, cfg.period))


@dataclass
class WildersConfig(IndicatorConfig):
    period: int = 14

    PARAMS: ClassVar[List[ParamSpec]] = [PERIOD_SPEC]


def wilders_ma(source, config: WildersConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, WildersConfig)
    values = as_input(source).values
    return line_result("wilders", "wilders", values, wilders_values(values, cfg.period))


@dataclass
class KAMAConfig(IndicatorConfig):
    period: int = 10
    fast: int = 2
    slow: int = 30

    PARAMS: ClassVar[List[ParamSpec]] = [
        period_spec(10),
        ParamSpec("fast", "int", min=1, max=1000, default=2),
        ParamSpec("slow", "int", min=1, max=1000, default=30),
    ]


def kama(source, config: KAMAConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, KAMAConfig)
    values = as_input(source).values
    line, er = kama_values(values, cfg.period, cfg.fast, cfg.slow)
    return (
        OutputAggregator("kama", len(values))
        .add("kama", line, primary=True)
        .add("er", er)
        .set_signals(crossover_signals(values, line))
        .build()
    )


@dataclass
class DEMAConfig(IndicatorConfig):
    period: int = 14

    PARAMS: ClassVar[List[ParamSpec]] = [PERIOD_SPEC]


def dema(source, config: DEMAConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, DEMAConfig)
    values = as_input(source).values
    return line_result("dema", "dema", values, dema_values(values, cfg.period))


@dataclass
class TEMAConfig(IndicatorConfig):
    period: int = 14

    PARAMS: ClassVar[List[ParamSpec]] = [PERIOD_SPEC]


def tema(source, config: TEMAConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, TEMAConfig)
    values = as_input(source).values
    return line_result("tema", "tema", values, tema_values(values, cfg.period))


@dataclass
class T3Config(IndicatorConfig):
    period: int = 5
    v_factor: float = 0.7

    PARAMS: ClassVar[List[ParamSpec]] = [
        period_spec(5),
        ParamSpec("v_factor", "float", min=0.0, max=1.0, default=0.7),
    ]


def t3(source, config: T3Config | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, T3Config)
    values = as_input(source).values
    return line_result("t3", "t3", values, t3_values(values, cfg.period, cfg.v_factor))


@dataclass
class HullConfig(IndicatorConfig):
    period: int = 20
    ma_type: MovingAvgType = MovingAvgType.WEIGHTED

    PARAMS: ClassVar[List[ParamSpec]] = [
        period_spec(20),
        ma_type_spec(MovingAvgType.WEIGHTED),
    ]


def hull_ma(source, config: HullConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, HullConfig)
    values = as_input(source).values
    return line_result("hma", "hma", values, hull_values(values, cfg.period, cfg.ma_type))


@dataclass
class SuperSmootherConfig(IndicatorConfig):
    period: int = 10

    PARAMS: ClassVar[List[ParamSpec]] = [period_spec(10)]


def super_smoother(source, config: SuperSmootherConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, SuperSmootherConfig)
    values = as_input(source).values
    return line_result("super_smoother", "filter", values, super_smoother_values(values, cfg.period))


@dataclass
class MACDConfig(IndicatorConfig):
    fast: int = 12
    slow: int = 26
    signal: int = 9
    ma_type: MovingAvgType = MovingAvgType.EXPONENTIAL

    PARAMS: ClassVar[List[ParamSpec]] = [
        ParamSpec("fast", "int", min=1, max=1000, default=12),
        ParamSpec("slow", "int", min=1, max=1000, default=26),
        ParamSpec("signal", "int", min=1, max=1000, default=9),
        ma_type_spec(MovingAvgType.EXPONENTIAL),
    ]


def macd(source, config: MACDConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """MACD = MA(fast) - MA(slow), signal = MA(MACD), histogram = MACD - signal."""
    cfg = resolve_config(config, MACDConfig)
    values = as_input(source).values
    macd_line = moving_average(values, cfg.fast, cfg.ma_type) - moving_average(values, cfg.slow, cfg.ma_type)
    signal_line = moving_average(macd_line, cfg.signal, cfg.ma_type)
    histogram = macd_line - signal_line
    return (
        OutputAggregator("macd", len(values))
        .add("macd", macd_line, primary=True)
        .add("signal", signal_line)
        .add("histogram", histogram)
        .set_signals(compare_signals(histogram))
        .build()
    )
