"""
거래량 기반 지표: VWAP, OBV, MFI, VWMA.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List

import numpy as np

from indicator_engine.contracts import IndicatorConfig, ParamSpec
from indicator_engine.shared.numeric import safe_divide_array
from .helpers import changes, previous, resolve_config
from .result import IndicatorResult, OutputAggregator, line_result
from .rolling import WindowPolicy, rolling_sum
from .series import BarSeries, InputName
from .signals import classify, crossover_signals, rsi_signal
from .trend import PERIOD_SPEC, MovingAvgType, ma_type_spec, moving_average, period_spec

INPUT_SPEC = ParamSpec("input_name", "categorical", enum_cls=InputName, default=InputName.TYPICAL_PRICE)


@dataclass
class VWAPConfig(IndicatorConfig):
    input_name: InputName = InputName.TYPICAL_PRICE

    PARAMS: ClassVar[List[ParamSpec]] = [INPUT_SPEC]


def vwap(bars: BarSeries, config: VWAPConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """누적 VWAP = sum(price * volume) / sum(volume). 누적 거래량 0 -> 0."""
    cfg = resolve_config(config, VWAPConfig)
    price = bars.price_input(cfg.input_name)
    line = safe_divide_array(np.cumsum(price * bars.volume), np.cumsum(bars.volume))
    return line_result("vwap", "vwap", price, line)


@dataclass
class OBVConfig(IndicatorConfig):
    period: int = 20
    ma_type: MovingAvgType = MovingAvgType.EXPONENTIAL

    PARAMS: ClassVar[List[ParamSpec]] = [period_spec(20), ma_type_spec(MovingAvgType.EXPONENTIAL)]


def obv_values(values, volumes) -> np.ndarray:
    direction = np.sign(changes(1, values))
    return np.cumsum(direction * np.asarray(volumes, dtype=np.float64))


def obv(bars: BarSeries, config: OBVConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    cfg = resolve_config(config, OBVConfig)
    line = obv_values(bars.primary.values, bars.volume)
    signal_line = moving_average(line, cfg.period, cfg.ma_type)
    return (
        OutputAggregator("obv", len(bars))
        .add("obv", line, primary=True)
        .add("signal", signal_line)
        .set_signals(crossover_signals(line, signal_line))
        .build()
    )


@dataclass
class MFIConfig(IndicatorConfig):
    period: int = 14
    input_name: InputName = InputName.TYPICAL_PRICE
    overbought: float = 80.0
    oversold: float = 20.0

    PARAMS: ClassVar[List[ParamSpec]] = [
        PERIOD_SPEC,
        INPUT_SPEC,
        ParamSpec("overbought", "float", min=0, max=100, default=80.0),
        ParamSpec("oversold", "float", min=0, max=100, default=20.0),
    ]


def mfi(bars: BarSeries, config: MFIConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """
    Money Flow Index. 음의 자금 흐름 합이 0이면 100, 양의 합이 0이면 0.
    """
    cfg = resolve_config(config, MFIConfig)
    price = bars.price_input(cfg.input_name)
    raw_flow = price * bars.volume
    change = changes(1, price)
    positive = rolling_sum(np.where(change > 0, raw_flow, 0.0), cfg.period, WindowPolicy.PARTIAL)
    negative = rolling_sum(np.where(change < 0, raw_flow, 0.0), cfg.period, WindowPolicy.PARTIAL)
    ratio = safe_divide_array(positive, negative)
    line = np.clip(100 - 100 / (1 + ratio), 0, 100)
    line = np.where(positive == 0, 0.0, line)
    line = np.where(negative == 0, 100.0, line)

    prev1 = previous(line)
    prev2 = previous(line, 2)
    signals = classify(
        lambda d, pd_, v, pv: rsi_signal(d, pd_, v, pv, cfg.overbought, cfg.oversold),
        line - prev1, prev1 - prev2, line, prev1,
    )
    return (
        OutputAggregator("mfi", len(bars))
        .add("mfi", line, primary=True)
        .set_signals(signals)
        .build()
    )


@dataclass
class VWMAConfig(IndicatorConfig):
    period: int = 20

    PARAMS: ClassVar[List[ParamSpec]] = [period_spec(20)]


def vwma(bars: BarSeries, config: VWMAConfig | Dict[str, Any] | None = None) -> IndicatorResult:
    """거래량 가중 이동평균 = sum(x * v, n) / sum(v, n). 거래량 합 0 -> 0."""
    cfg = resolve_config(config, VWMAConfig)
    values = bars.primary.values
    line = safe_divide_array(
        rolling_sum(values * bars.volume, cfg.period, WindowPolicy.PARTIAL),
        rolling_sum(bars.volume, cfg.period, WindowPolicy.PARTIAL),
    )
    return line_result("vwma", "vwma", values, line)
