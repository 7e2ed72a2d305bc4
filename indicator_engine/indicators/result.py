"""
IndicatorResult / OutputAggregator.

하나 이상의 이름 붙은 출력 시리즈(길이 N), Signal[N], 그리고 정확히 하나의 primary 시리즈를 묶는다.
불변식 len(signals) == N == len(모든 출력) 위반은 구성 버그이므로 ResultShapeError.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import pandas as pd

from indicator_engine.config import config
from indicator_engine.contracts import CalculationError, ResultShapeError
from .helpers import as_float_array, round_digits_all
from .series import ComputedSeries
from .signals import Signal, crossover_signals


def column_name(indicator: str, key: str) -> str:
    return f"{indicator}__{key}"


@dataclass(frozen=True, eq=False)
class IndicatorResult:
    name: str
    outputs: Mapping[str, ComputedSeries]
    signals: Tuple[Signal, ...]
    primary_key: str

    def __post_init__(self) -> None:
        outputs = dict(self.outputs)
        if not outputs:
            raise ResultShapeError(f"[{self.name}] result has no outputs")
        if self.primary_key not in outputs:
            raise ResultShapeError(f"[{self.name}] primary '{self.primary_key}' not among {list(outputs)}")
        n = len(self.signals)
        bad = {key: len(series) for key, series in outputs.items() if len(series) != n}
        if bad:
            raise ResultShapeError(f"[{self.name}] output lengths {bad} differ from signal length {n}")
        object.__setattr__(self, "outputs", MappingProxyType(outputs))
        object.__setattr__(self, "signals", tuple(Signal(s) for s in self.signals))

    def __len__(self) -> int:
        return len(self.signals)

    def __getitem__(self, key: str) -> ComputedSeries:
        try:
            return self.outputs[key]
        except KeyError as exc:
            raise CalculationError(f"[{self.name}] has no output '{key}' (available: {list(self.outputs)})") from exc

    def keys(self):
        return self.outputs.keys()

    @property
    def primary(self) -> ComputedSeries:
        return self.outputs[self.primary_key]

    def to_frame(self, index: Optional[Sequence[Any]] = None) -> pd.DataFrame:
        data: Dict[str, Any] = {s.name: s.values for s in self.outputs.values()}
        data[column_name(self.name, "signals")] = [s.value for s in self.signals]
        return pd.DataFrame(data, index=index)


class OutputAggregator:
    """
    IndicatorResult 빌더.

    Example:
        >>> agg = OutputAggregator("sma", len(values))
        >>> agg.add("sma", sma_values, primary=True)
        >>> agg.set_signals(signals)
        >>> result = agg.build()
    """

    def __init__(self, name: str, length: int, round_digits: Optional[int] = None):
        self.name = name
        self.length = length
        self.round_digits = round_digits if round_digits is not None else config.OUTPUT_ROUND_DIGITS
        self._outputs: Dict[str, ComputedSeries] = {}
        self._primary: Optional[str] = None
        self._signals: Optional[Tuple[Signal, ...]] = None

    def add(self, key: str, values: Sequence[float], primary: bool = False) -> "OutputAggregator":
        arr = as_float_array(values)
        if len(arr) != self.length:
            raise ResultShapeError(f"[{self.name}] output '{key}' has length {len(arr)}, expected {self.length}")
        if key in self._outputs:
            raise ResultShapeError(f"[{self.name}] duplicate output '{key}'")
        if primary:
            if self._primary is not None:
                raise ResultShapeError(f"[{self.name}] primary already set to '{self._primary}'")
            self._primary = key
        if self.round_digits is not None:
            arr = round_digits_all(self.round_digits, arr)
        self._outputs[key] = ComputedSeries(column_name(self.name, key), arr)
        return self

    def set_signals(self, signals: Sequence[Signal]) -> "OutputAggregator":
        signals = tuple(signals)
        if len(signals) != self.length:
            raise ResultShapeError(f"[{self.name}] {len(signals)} signals, expected {self.length}")
        self._signals = signals
        return self

    def build(self) -> IndicatorResult:
        if self._primary is None:
            raise ResultShapeError(f"[{self.name}] no primary output designated")
        signals = self._signals if self._signals is not None else (Signal.NEUTRAL,) * self.length
        return IndicatorResult(self.name, self._outputs, signals, self._primary)


def line_result(name: str, key: str, values: Sequence[float], line: Sequence[float]) -> IndicatorResult:
    """단일 라인 지표: line이 primary, 신호는 compare(value - line, prev_value - prev_line)."""
    return (
        OutputAggregator(name, len(values))
        .add(key, line, primary=True)
        .set_signals(crossover_signals(values, line))
        .build()
    )
